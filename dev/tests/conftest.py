from __future__ import annotations

from typing import Any, Dict, List, Optional

import pytest

from duplicates_index.app.duplicates_service import DuplicatesIndexService
from duplicates_index.app.record_source import InMemoryRecordSource
from duplicates_index.config.models import DuplicatesIndexSettings
from duplicates_index.database.store import DuplicatesStore
from duplicates_index.plugins.registry import create_builtin_registry


def make_customer(customer_id: int, lastname: str, zip_code: str = "10115", **extra: Any) -> Dict[str, Any]:
    record = {
        "id": customer_id,
        "published": True,
        "active": True,
        "firstname": "Anna",
        "lastname": lastname,
        "zip": zip_code,
        "city": "berlin",
        "email": f"customer{customer_id}@example.com",
    }
    record.update(extra)
    return record


def make_settings(field_sets: Optional[List[Dict[str, Any]]] = None, **overrides: Any) -> DuplicatesIndexSettings:
    payload: Dict[str, Any] = {
        "enabled": True,
        "database_path": ":memory:",
        "duplicate_check_fields": field_sets if field_sets is not None else [{"lastname": {}, "zip": {}}],
    }
    payload.update(overrides)
    return DuplicatesIndexSettings.model_validate(payload)


@pytest.fixture
def make_customer_record():
    return make_customer


@pytest.fixture
def records() -> InMemoryRecordSource:
    return InMemoryRecordSource()


@pytest.fixture
def store():
    db = DuplicatesStore(":memory:")
    yield db
    db.close()


@pytest.fixture
def registry():
    return create_builtin_registry()


@pytest.fixture
def build_service(records, registry):
    """Factory: ``build_service(field_sets, **settings)`` on an in-memory store."""
    created: List[DuplicatesIndexService] = []

    def _build(field_sets: Optional[List[Dict[str, Any]]] = None, **overrides: Any) -> DuplicatesIndexService:
        service = DuplicatesIndexService(make_settings(field_sets, **overrides), records, registry=registry)
        created.append(service)
        return service

    yield _build
    for service in created:
        service.close()

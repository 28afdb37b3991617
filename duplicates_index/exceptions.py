#!/usr/bin/env python3
# -*-coding: utf-8-*-
"""
Duplicates Index - Consolidated Exception Classes

This module contains all exception classes used by the duplicates index,
centralized in one place so callers can catch the whole family via BaseError.
"""

from datetime import datetime
from typing import Dict, Any, Optional


class BaseError(Exception):
    """Base class for all project-specific errors."""

    def __init__(self, message: str, error_code: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.error_code = error_code or "ERROR"
        self.details = details or {}
        self.timestamp = datetime.now()

    def to_dict(self) -> Dict[str, Any]:
        """Converts the exception to a dictionary for structured logging."""
        return {
            'error_code': self.error_code,
            'message': str(self),
            'details': self.details,
            'timestamp': self.timestamp.isoformat()
        }


# =====================================================================================================
# Configuration-related errors
# =====================================================================================================

class ConfigurationError(BaseError):
    """Raised when the duplicate check configuration cannot be used."""

    def __init__(self, message: str, error_code: Optional[str] = None,
                 file_path: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        config_details = details or {}
        if file_path:
            config_details['file_path'] = file_path
        super().__init__(message, error_code or "CONFIG_ERROR", config_details)


class ValidationError(ConfigurationError):
    """Raised when configuration validation fails."""

    def __init__(self, message: str, field_name: Optional[str] = None,
                 expected_type: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        validation_details = details or {}
        if field_name:
            validation_details['field_name'] = field_name
        if expected_type:
            validation_details['expected_type'] = expected_type
        super().__init__(message, "VALIDATION_ERROR", None, validation_details)


# =====================================================================================================
# Storage-related errors
# =====================================================================================================

class DataError(BaseError):
    """Base class for data-related errors."""

    def __init__(self, message: str, error_code: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code or "DATA_ERROR", details)


class DatabaseError(DataError):
    """Raised when database errors occur."""

    def __init__(self, message: str, query: Optional[str] = None,
                 error_code: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        db_details = details or {}
        if query:
# Make sure that no sensitive data appear in the log
            db_details['query_type'] = query.split()[0] if query else "UNKNOWN"
        super().__init__(message, error_code or "DB_ERROR", db_details)


class TransientStorageError(DatabaseError):
    """Raised when the index transaction of a single customer was rolled back."""

    def __init__(self, message: str, customer_id: Optional[int] = None,
                 details: Optional[Dict[str, Any]] = None):
        storage_details = details or {}
        if customer_id is not None:
            storage_details['customer_id'] = customer_id
        super().__init__(message, None, "TRANSIENT_STORAGE_ERROR", storage_details)
        self.customer_id = customer_id


class IndexLockedError(DataError):
    """Raised when another live process holds the rebuild lock."""

    def __init__(self, message: str, lock_path: Optional[str] = None,
                 pid: Optional[int] = None,
                 details: Optional[Dict[str, Any]] = None):
        lock_details = details or {}
        if lock_path:
            lock_details['lock_path'] = str(lock_path)
        if pid is not None:
            lock_details['pid'] = pid
        super().__init__(message, "INDEX_LOCKED", lock_details)


# =====================================================================================================
# Processing errors
# =====================================================================================================

class ProcessingError(BaseError):
    """Base class for errors during index processing."""

    def __init__(self, message: str, error_code: Optional[str] = None,
                 phase: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        proc_details = details or {}
        if phase:
            proc_details['phase'] = phase
        super().__init__(message, error_code or "PROCESSING_ERROR", proc_details)


class IndexRebuildError(ProcessingError):
    """Raised at the end of a strict rebuild when customers failed to index."""

    def __init__(self, message: str, failed: Optional[Dict[int, str]] = None,
                 details: Optional[Dict[str, Any]] = None):
        rebuild_details = details or {}
        rebuild_details['failed'] = dict(failed or {})
        super().__init__(message, "REBUILD_ERROR", "rebuild", rebuild_details)
        self.failed = rebuild_details['failed']


class ResolutionError(ProcessingError):
    """Raised when a cluster references a record that no longer exists."""

    def __init__(self, message: str, customer_id: Optional[int] = None,
                 cluster_id: Optional[int] = None,
                 details: Optional[Dict[str, Any]] = None):
        res_details = details or {}
        if customer_id is not None:
            res_details['customer_id'] = customer_id
        if cluster_id is not None:
            res_details['cluster_id'] = cluster_id
        super().__init__(message, "RESOLUTION_ERROR", "review", res_details)


class RecordNotFoundError(ProcessingError):
    """Raised when a moderation action targets an unknown cluster."""

    def __init__(self, message: str, cluster_id: Optional[int] = None,
                 details: Optional[Dict[str, Any]] = None):
        nf_details = details or {}
        if cluster_id is not None:
            nf_details['cluster_id'] = cluster_id
        super().__init__(message, "RECORD_NOT_FOUND", "moderation", nf_details)
        self.cluster_id = cluster_id

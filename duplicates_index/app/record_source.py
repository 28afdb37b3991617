"""Record source contract and an in-memory implementation."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence, runtime_checkable

from ..core.extraction import is_relevant, record_id


@runtime_checkable
class RecordPager(Protocol):
    @property
    def has_next(self) -> bool:
        ...

    @property
    def total(self) -> int:
        ...

    def next_page(self) -> Sequence[Any]:
        ...


@runtime_checkable
class RecordSource(Protocol):
    """Paged access to customer records plus lookup by id."""

    def pager(self, page_size: int) -> RecordPager:
        ...

    def get_by_id(self, customer_id: int) -> Optional[Any]:
        ...


class ListPager:
    def __init__(self, records: Sequence[Any], page_size: int) -> None:
        if page_size < 1:
            raise ValueError("page_size must be >= 1")
        self._records = list(records)
        self._page_size = int(page_size)
        self._offset = 0

    @property
    def has_next(self) -> bool:
        return self._offset < len(self._records)

    @property
    def total(self) -> int:
        return len(self._records)

    def next_page(self) -> List[Any]:
        page = self._records[self._offset:self._offset + self._page_size]
        self._offset += self._page_size
        return page


class InMemoryRecordSource:
    """Holds records keyed by id; the pager walks relevant records in id order."""

    def __init__(self, records: Iterable[Any] = ()) -> None:
        self._records: Dict[int, Any] = {}
        for record in records:
            self.put(record)

    def put(self, record: Any) -> None:
        self._records[record_id(record)] = record

    def remove(self, customer_id: int) -> None:
        self._records.pop(int(customer_id), None)

    def get_by_id(self, customer_id: int) -> Optional[Any]:
        return self._records.get(int(customer_id))

    def pager(self, page_size: int) -> ListPager:
        relevant = [self._records[key] for key in sorted(self._records) if is_relevant(self._records[key])]
        return ListPager(relevant, page_size)

    def __len__(self) -> int:
        return len(self._records)

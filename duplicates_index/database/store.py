"""SQLite store for fingerprints, memberships, clusters and false positives."""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

from ..core.field_combination import FieldCombination

logger = logging.getLogger(__name__)

MEMORY_DATABASE = ":memory:"

# Column names are interpolated into SQL; keep this the only source
PHONETIC_COLUMNS = {"soundex": "soundex", "metaphone": "metaphone"}


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class FingerprintRecord:
    id: int
    field_combination: FieldCombination
    field_combination_hash: int
    duplicate_data: str
    duplicate_data_hash: str
    soundex: Optional[str]
    metaphone: Optional[str]
    created_at: str


@dataclass(frozen=True)
class BucketRow:
    """One membership joined with its fingerprint inside a phonetic bucket."""

    customer_id: int
    fingerprint_id: int
    field_combination: FieldCombination
    duplicate_data: str

    @property
    def values(self) -> Dict[str, str]:
        return json.loads(self.duplicate_data)

    def details(self) -> Dict[str, Any]:
        return {
            "customer_id": self.customer_id,
            "fingerprint_id": self.fingerprint_id,
            "field_combination": list(self.field_combination.fields),
            "duplicate_data": self.values,
        }


@dataclass(frozen=True)
class ClusterRecord:
    id: int
    member_key: str
    member_ids: Tuple[int, ...]
    field_combinations: Tuple[FieldCombination, ...]
    declined: bool
    created_at: str
    modified_at: str


@dataclass(frozen=True)
class FalsePositiveRecord:
    id: int
    row1: str
    row2: str
    row1_details: Dict[str, Any]
    row2_details: Dict[str, Any]
    created_at: str


def encode_field_combinations(combinations: Iterable[FieldCombination]) -> str:
    ordered = sorted(set(combinations))
    return json.dumps([list(c.fields) for c in ordered], ensure_ascii=False, separators=(",", ":"))


def decode_field_combinations(raw: Optional[str]) -> Tuple[FieldCombination, ...]:
    if not raw:
        return ()
    return tuple(FieldCombination(tuple(fields)) for fields in json.loads(raw))


class DuplicatesStore:
    """Persistence for the duplicates index.

    The connection runs in autocommit mode; multi-statement units of work go
    through :meth:`transaction`, which nests by joining the outer transaction.
    """

    def __init__(self, db_path: Union[str, Path]) -> None:
        self.db_path = str(db_path)
        if self.db_path != MEMORY_DATABASE:
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()
        self.conn = sqlite3.connect(self.db_path, check_same_thread=False, isolation_level=None)
        self.conn.row_factory = sqlite3.Row
        self._apply_pragmas()
        self._init_schema()

    @classmethod
    def from_settings(cls, settings: Any) -> "DuplicatesStore":
        return cls(getattr(settings, "database_path", None) or MEMORY_DATABASE)

    def close(self) -> None:
        with self._lock:
            self.conn.close()

    def _apply_pragmas(self) -> None:
        cur = self.conn.cursor()
        if self.db_path != MEMORY_DATABASE:
            cur.execute("PRAGMA journal_mode=WAL")
        cur.execute("PRAGMA synchronous=NORMAL")
        cur.execute("PRAGMA temp_store=MEMORY")
        cur.execute("PRAGMA foreign_keys=ON")
        cur.execute("PRAGMA cache_size=-20000")
        cur.execute("PRAGMA busy_timeout=3000")

    def _init_schema(self) -> None:
        cur = self.conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS duplicates_index (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                field_combination TEXT NOT NULL,
                field_combination_hash INTEGER NOT NULL,
                duplicate_data TEXT NOT NULL,
                duplicate_data_hash TEXT NOT NULL,
                soundex TEXT,
                metaphone TEXT,
                created_at TEXT NOT NULL
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS duplicates_index_customers (
                customer_id INTEGER NOT NULL,
                duplicate_id INTEGER NOT NULL REFERENCES duplicates_index(id) ON DELETE CASCADE,
                PRIMARY KEY (customer_id, duplicate_id)
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS potential_duplicates (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                member_key TEXT UNIQUE NOT NULL,
                field_combinations TEXT NOT NULL,
                declined INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL,
                modified_at TEXT NOT NULL
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS potential_duplicate_members (
                cluster_id INTEGER NOT NULL REFERENCES potential_duplicates(id) ON DELETE CASCADE,
                customer_id INTEGER NOT NULL,
                position INTEGER NOT NULL,
                PRIMARY KEY (cluster_id, customer_id)
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS duplicates_false_positives (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                row1 TEXT NOT NULL,
                row2 TEXT NOT NULL,
                row1_details TEXT NOT NULL,
                row2_details TEXT NOT NULL,
                created_at TEXT NOT NULL
            )
            """
        )
        cur.execute(
            "CREATE UNIQUE INDEX IF NOT EXISTS idx_duplicates_index_hashes "
            "ON duplicates_index(duplicate_data_hash, field_combination_hash)"
        )
        cur.execute("CREATE INDEX IF NOT EXISTS idx_duplicates_index_soundex ON duplicates_index(soundex)")
        cur.execute("CREATE INDEX IF NOT EXISTS idx_duplicates_index_metaphone ON duplicates_index(metaphone)")
        cur.execute(
            "CREATE INDEX IF NOT EXISTS idx_duplicates_index_customers_duplicate "
            "ON duplicates_index_customers(duplicate_id)"
        )
        cur.execute(
            "CREATE INDEX IF NOT EXISTS idx_potential_duplicate_members_customer "
            "ON potential_duplicate_members(customer_id)"
        )
        cur.execute("CREATE INDEX IF NOT EXISTS idx_false_positives_row1 ON duplicates_false_positives(row1)")

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            if self.conn.in_transaction:
                yield self.conn
                return
            self.conn.execute("BEGIN IMMEDIATE")
            try:
                yield self.conn
            except BaseException:
                if self.conn.in_transaction:
                    self.conn.execute("ROLLBACK")
                raise
            self.conn.execute("COMMIT")

    # -- fingerprints and memberships -------------------------------------

    def find_fingerprint_id(self, data_hash: str, combination_hash: int) -> Optional[int]:
        with self._lock:
            row = self.conn.execute(
                "SELECT id FROM duplicates_index WHERE duplicate_data_hash=? AND field_combination_hash=?",
                (data_hash, combination_hash),
            ).fetchone()
        return int(row["id"]) if row else None

    def insert_fingerprint(
        self,
        combination: FieldCombination,
        duplicate_data: str,
        data_hash: str,
        soundex: Optional[str],
        metaphone: Optional[str],
    ) -> int:
        with self._lock:
            cur = self.conn.execute(
                """
                INSERT INTO duplicates_index (
                    field_combination, field_combination_hash, duplicate_data,
                    duplicate_data_hash, soundex, metaphone, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    combination.to_storage(),
                    combination.storage_hash,
                    duplicate_data,
                    data_hash,
                    soundex,
                    metaphone,
                    _utc_now(),
                ),
            )
            return int(cur.lastrowid)

    def insert_membership(self, customer_id: int, fingerprint_id: int) -> None:
        with self._lock:
            self.conn.execute(
                "INSERT OR IGNORE INTO duplicates_index_customers (customer_id, duplicate_id) VALUES (?, ?)",
                (int(customer_id), int(fingerprint_id)),
            )

    def delete_memberships(self, customer_id: int) -> int:
        with self._lock:
            cur = self.conn.execute(
                "DELETE FROM duplicates_index_customers WHERE customer_id=?",
                (int(customer_id),),
            )
            return int(cur.rowcount)

    def memberships_for(self, customer_id: int) -> List[FingerprintRecord]:
        with self._lock:
            rows = self.conn.execute(
                """
                SELECT i.* FROM duplicates_index i
                JOIN duplicates_index_customers c ON c.duplicate_id = i.id
                WHERE c.customer_id=?
                ORDER BY i.id
                """,
                (int(customer_id),),
            ).fetchall()
        return [self._fingerprint(row) for row in rows]

    def fingerprints(self) -> List[FingerprintRecord]:
        with self._lock:
            rows = self.conn.execute("SELECT * FROM duplicates_index ORDER BY id").fetchall()
        return [self._fingerprint(row) for row in rows]

    def shared_fingerprints(self) -> List[Tuple[int, FieldCombination, int]]:
        """Fingerprints with more than one member, largest groups first."""
        with self._lock:
            rows = self.conn.execute(
                """
                SELECT c.duplicate_id AS id, i.field_combination AS field_combination, COUNT(*) AS members
                FROM duplicates_index_customers c
                JOIN duplicates_index i ON i.id = c.duplicate_id
                GROUP BY c.duplicate_id
                HAVING COUNT(*) > 1
                ORDER BY members DESC, c.duplicate_id ASC
                """
            ).fetchall()
        return [
            (int(row["id"]), FieldCombination.from_storage(row["field_combination"]), int(row["members"]))
            for row in rows
        ]

    def fingerprint_members(self, fingerprint_id: int) -> List[int]:
        with self._lock:
            rows = self.conn.execute(
                "SELECT customer_id FROM duplicates_index_customers WHERE duplicate_id=? ORDER BY customer_id",
                (int(fingerprint_id),),
            ).fetchall()
        return [int(row["customer_id"]) for row in rows]

    def shared_phonetic_hashes(self, algorithm: str) -> List[str]:
        """Non-empty ``algorithm`` hashes carried by more than one fingerprint."""
        column = self._phonetic_column(algorithm)
        with self._lock:
            rows = self.conn.execute(
                f"""
                SELECT {column} AS hash FROM duplicates_index
                WHERE {column} IS NOT NULL AND {column} != ''
                GROUP BY {column}
                HAVING COUNT(*) > 1
                ORDER BY {column}
                """
            ).fetchall()
        return [str(row["hash"]) for row in rows]

    def phonetic_bucket(self, algorithm: str, hash_value: str) -> List[BucketRow]:
        column = self._phonetic_column(algorithm)
        with self._lock:
            rows = self.conn.execute(
                f"""
                SELECT c.customer_id, i.id AS fingerprint_id, i.field_combination, i.duplicate_data
                FROM duplicates_index i
                JOIN duplicates_index_customers c ON c.duplicate_id = i.id
                WHERE i.{column}=?
                ORDER BY c.customer_id ASC, i.id ASC
                """,
                (hash_value,),
            ).fetchall()
        return [
            BucketRow(
                customer_id=int(row["customer_id"]),
                fingerprint_id=int(row["fingerprint_id"]),
                field_combination=FieldCombination.from_storage(row["field_combination"]),
                duplicate_data=str(row["duplicate_data"]),
            )
            for row in rows
        ]

    def truncate_index(self) -> None:
        with self.transaction() as conn:
            conn.execute("DELETE FROM duplicates_index_customers")
            conn.execute("DELETE FROM duplicates_index")

    # -- false positives --------------------------------------------------

    def insert_false_positive(
        self,
        row1: str,
        row2: str,
        row1_details: Dict[str, Any],
        row2_details: Dict[str, Any],
    ) -> int:
        with self._lock:
            cur = self.conn.execute(
                """
                INSERT INTO duplicates_false_positives (row1, row2, row1_details, row2_details, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    row1,
                    row2,
                    json.dumps(row1_details, ensure_ascii=False),
                    json.dumps(row2_details, ensure_ascii=False),
                    _utc_now(),
                ),
            )
            return int(cur.lastrowid)

    def list_false_positives(self, offset: int, limit: int) -> List[FalsePositiveRecord]:
        with self._lock:
            rows = self.conn.execute(
                "SELECT * FROM duplicates_false_positives ORDER BY row1 ASC, id ASC LIMIT ? OFFSET ?",
                (int(limit), int(offset)),
            ).fetchall()
        return [
            FalsePositiveRecord(
                id=int(row["id"]),
                row1=str(row["row1"]),
                row2=str(row["row2"]),
                row1_details=json.loads(row["row1_details"]),
                row2_details=json.loads(row["row2_details"]),
                created_at=str(row["created_at"]),
            )
            for row in rows
        ]

    def count_false_positives(self) -> int:
        with self._lock:
            row = self.conn.execute("SELECT COUNT(*) AS n FROM duplicates_false_positives").fetchone()
        return int(row["n"])

    def truncate_false_positives(self) -> None:
        with self._lock:
            self.conn.execute("DELETE FROM duplicates_false_positives")

    # -- clusters ---------------------------------------------------------

    def cluster(self, cluster_id: int) -> Optional[ClusterRecord]:
        with self._lock:
            row = self.conn.execute("SELECT * FROM potential_duplicates WHERE id=?", (int(cluster_id),)).fetchone()
            return self._cluster(row) if row else None

    def cluster_by_key(self, member_key: str) -> Optional[ClusterRecord]:
        with self._lock:
            row = self.conn.execute("SELECT * FROM potential_duplicates WHERE member_key=?", (member_key,)).fetchone()
            return self._cluster(row) if row else None

    def insert_cluster(
        self,
        member_key: str,
        member_ids: Sequence[int],
        field_combinations: Iterable[FieldCombination],
    ) -> int:
        now = _utc_now()
        with self.transaction() as conn:
            cur = conn.execute(
                """
                INSERT INTO potential_duplicates (member_key, field_combinations, declined, created_at, modified_at)
                VALUES (?, ?, 0, ?, ?)
                """,
                (member_key, encode_field_combinations(field_combinations), now, now),
            )
            cluster_id = int(cur.lastrowid)
            conn.executemany(
                "INSERT INTO potential_duplicate_members (cluster_id, customer_id, position) VALUES (?, ?, ?)",
                [(cluster_id, int(member_id), position) for position, member_id in enumerate(member_ids)],
            )
        return cluster_id

    def update_cluster_combinations(self, cluster_id: int, field_combinations: Iterable[FieldCombination]) -> None:
        with self._lock:
            self.conn.execute(
                "UPDATE potential_duplicates SET field_combinations=?, modified_at=? WHERE id=?",
                (encode_field_combinations(field_combinations), _utc_now(), int(cluster_id)),
            )

    def set_declined(self, cluster_id: int, declined: bool = True) -> bool:
        """Returns False when no cluster has ``cluster_id``."""
        with self._lock:
            cur = self.conn.execute(
                "UPDATE potential_duplicates SET declined=? WHERE id=?",
                (1 if declined else 0, int(cluster_id)),
            )
            return cur.rowcount > 0

    def cluster_ids(self) -> List[int]:
        with self._lock:
            rows = self.conn.execute("SELECT id FROM potential_duplicates ORDER BY id").fetchall()
        return [int(row["id"]) for row in rows]

    def delete_clusters(self, cluster_ids: Iterable[int]) -> int:
        ids = [(int(cluster_id),) for cluster_id in cluster_ids]
        if not ids:
            return 0
        with self.transaction() as conn:
            conn.executemany("DELETE FROM potential_duplicates WHERE id=?", ids)
        return len(ids)

    def delete_clusters_with_member(self, customer_id: int) -> int:
        with self._lock:
            cur = self.conn.execute(
                """
                DELETE FROM potential_duplicates WHERE id IN (
                    SELECT cluster_id FROM potential_duplicate_members WHERE customer_id=?
                )
                """,
                (int(customer_id),),
            )
            return int(cur.rowcount)

    def list_clusters(self, declined: bool, offset: int, limit: int) -> List[ClusterRecord]:
        with self._lock:
            rows = self.conn.execute(
                "SELECT * FROM potential_duplicates WHERE declined=? ORDER BY id ASC LIMIT ? OFFSET ?",
                (1 if declined else 0, int(limit), int(offset)),
            ).fetchall()
            return [self._cluster(row) for row in rows]

    def count_clusters(self, declined: Optional[bool] = None) -> int:
        with self._lock:
            if declined is None:
                row = self.conn.execute("SELECT COUNT(*) AS n FROM potential_duplicates").fetchone()
            else:
                row = self.conn.execute(
                    "SELECT COUNT(*) AS n FROM potential_duplicates WHERE declined=?",
                    (1 if declined else 0,),
                ).fetchone()
        return int(row["n"])

    def statistics(self) -> Dict[str, int]:
        with self._lock:
            fingerprints = self.conn.execute("SELECT COUNT(*) AS n FROM duplicates_index").fetchone()["n"]
            memberships = self.conn.execute("SELECT COUNT(*) AS n FROM duplicates_index_customers").fetchone()["n"]
        return {
            "fingerprints": int(fingerprints),
            "memberships": int(memberships),
            "active_clusters": self.count_clusters(declined=False),
            "declined_clusters": self.count_clusters(declined=True),
            "false_positives": self.count_false_positives(),
        }

    # -- row mapping ------------------------------------------------------

    @staticmethod
    def _phonetic_column(algorithm: str) -> str:
        try:
            return PHONETIC_COLUMNS[algorithm]
        except KeyError:
            raise ValueError(f"Unsupported phonetic algorithm: {algorithm}") from None

    @staticmethod
    def _fingerprint(row: sqlite3.Row) -> FingerprintRecord:
        return FingerprintRecord(
            id=int(row["id"]),
            field_combination=FieldCombination.from_storage(row["field_combination"]),
            field_combination_hash=int(row["field_combination_hash"]),
            duplicate_data=str(row["duplicate_data"]),
            duplicate_data_hash=str(row["duplicate_data_hash"]),
            soundex=row["soundex"],
            metaphone=row["metaphone"],
            created_at=str(row["created_at"]),
        )

    def _cluster(self, row: sqlite3.Row) -> ClusterRecord:
        members = self.conn.execute(
            "SELECT customer_id FROM potential_duplicate_members WHERE cluster_id=? ORDER BY position",
            (int(row["id"]),),
        ).fetchall()
        return ClusterRecord(
            id=int(row["id"]),
            member_key=str(row["member_key"]),
            member_ids=tuple(int(member["customer_id"]) for member in members),
            field_combinations=decode_field_combinations(row["field_combinations"]),
            declined=bool(row["declined"]),
            created_at=str(row["created_at"]),
            modified_at=str(row["modified_at"]),
        )

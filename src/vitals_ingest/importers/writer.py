"""Batched transactional writer shared by every importer.

Entities are buffered per table and written one transaction per batch.
A failed batch is rolled back, logged and dropped: delivery is
at-most-once, and the run carries on with the next batch.
"""

import logging
import sqlite3
from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple, Type

from ..db.database import HealthDatabase
from ..db.models import (
    ActivitySummary,
    BodyMetrics,
    HealthRecord,
    Nutrition,
    UserProfile,
    Workout,
)
from ..exceptions import BatchWriteError

logger = logging.getLogger(__name__)

FlushCallback = Callable[[str, int, int], None]


class ConflictPolicy(str, Enum):
    """What happens when an incoming row hits an existing identity key."""

    REPLACE = "replace"      # last write wins, whole row
    MERGE = "merge"          # only non-null incoming columns overwrite
    OVERWRITE = "overwrite"  # upsert every column from the incoming row


@dataclass(frozen=True)
class TableSpec:
    """How one entity type maps onto its table."""

    table: str
    columns: Tuple[str, ...]
    conflict_columns: Tuple[str, ...]
    policy: ConflictPolicy

    @property
    def sql(self) -> str:
        column_list = ", ".join(self.columns)
        placeholders = ", ".join("?" for _ in self.columns)

        if self.policy == ConflictPolicy.REPLACE:
            return f"INSERT OR REPLACE INTO {self.table} ({column_list}) VALUES ({placeholders})"

        insert = f"INSERT INTO {self.table} ({column_list}) VALUES ({placeholders})"
        updatable = [c for c in self.columns if c not in self.conflict_columns]
        if self.policy == ConflictPolicy.MERGE:
            assignments = [f"{c} = COALESCE(excluded.{c}, {self.table}.{c})" for c in updatable]
        else:
            assignments = [f"{c} = excluded.{c}" for c in updatable]
        return (
            f"{insert} ON CONFLICT({', '.join(self.conflict_columns)}) "
            f"DO UPDATE SET {', '.join(assignments)}"
        )

    def row(self, entity: Any) -> tuple:
        values = []
        for column in self.columns:
            value = getattr(entity, column)
            if isinstance(value, bool):
                value = int(value)
            values.append(value)
        return tuple(values)


def _columns(model: type, exclude: Tuple[str, ...] = ()) -> Tuple[str, ...]:
    return tuple(f.name for f in fields(model) if f.name not in exclude)


TABLE_SPECS: Dict[Type, TableSpec] = {
    HealthRecord: TableSpec(
        table="health_metrics",
        columns=_columns(HealthRecord),
        conflict_columns=("user_id", "metric_type", "start_date", "end_date", "source_name"),
        policy=ConflictPolicy.REPLACE,
    ),
    # has_route is owned by the route matcher, never by re-imports
    Workout: TableSpec(
        table="workouts",
        columns=_columns(Workout, exclude=("id", "has_route")),
        conflict_columns=("user_id", "uuid"),
        policy=ConflictPolicy.MERGE,
    ),
    Nutrition: TableSpec(
        table="nutrition",
        columns=_columns(Nutrition),
        conflict_columns=("user_id", "date"),
        policy=ConflictPolicy.MERGE,
    ),
    BodyMetrics: TableSpec(
        table="body_metrics",
        columns=_columns(BodyMetrics),
        conflict_columns=("user_id", "date"),
        policy=ConflictPolicy.MERGE,
    ),
    ActivitySummary: TableSpec(
        table="activity_summaries",
        columns=_columns(ActivitySummary),
        conflict_columns=("user_id", "date"),
        policy=ConflictPolicy.OVERWRITE,
    ),
    UserProfile: TableSpec(
        table="user_profile",
        columns=_columns(UserProfile),
        conflict_columns=("user_id",),
        policy=ConflictPolicy.OVERWRITE,
    ),
}

DEFAULT_BATCH_SIZES = {
    "health_metrics": 10000,
    "workouts": 100,
    "nutrition": 500,
    "body_metrics": 500,
}


class TableBuffer:
    """Pending rows for one table."""

    def __init__(self, spec: TableSpec, threshold: int):
        self.spec = spec
        self.threshold = max(1, threshold)
        self.entries: List[Any] = []

    def append(self, entity: Any) -> None:
        self.entries.append(entity)

    @property
    def is_full(self) -> bool:
        return len(self.entries) >= self.threshold

    def drain(self) -> List[Any]:
        entries, self.entries = self.entries, []
        return entries

    def __len__(self) -> int:
        return len(self.entries)


class BatchWriter:
    """Buffers entities per table and flushes each buffer in one transaction.

    `enqueue` flushes synchronously when a buffer reaches its threshold,
    so the caller never runs ahead of the store. Buffers belong to the
    instance; separate pipelines never share them.

    Args:
        db: Target database.
        batch_sizes: Flush threshold per table name. Tables not listed use
            DEFAULT_BATCH_SIZES, or flush on every entity.
        on_flush: Called as ``on_flush(table, batch_count, total_committed)``
            after each successful commit.
    """

    def __init__(
        self,
        db: HealthDatabase,
        batch_sizes: Optional[Dict[str, int]] = None,
        on_flush: Optional[FlushCallback] = None,
    ):
        self.db = db
        self.on_flush = on_flush
        self.batch_sizes = {**DEFAULT_BATCH_SIZES, **(batch_sizes or {})}
        self.committed: Dict[str, int] = {}
        self.errors: List[str] = []
        self._buffers: Dict[str, TableBuffer] = {}

    def _spec_for(self, entity_type: Type) -> TableSpec:
        spec = TABLE_SPECS.get(entity_type)
        if spec is None:
            raise TypeError(f"No table mapping for {entity_type.__name__}")
        return spec

    def _buffer_for(self, spec: TableSpec) -> TableBuffer:
        buffer = self._buffers.get(spec.table)
        if buffer is None:
            buffer = TableBuffer(spec, self.batch_sizes.get(spec.table, 1))
            self._buffers[spec.table] = buffer
        return buffer

    def enqueue(self, entity: Any) -> None:
        """Buffer an entity, flushing its table if the buffer is full."""
        buffer = self._buffer_for(self._spec_for(type(entity)))
        buffer.append(entity)
        if buffer.is_full:
            self._flush_buffer(buffer)

    def flush(self, entity_type: Optional[Type] = None) -> int:
        """Flush one entity type's buffer, or every non-empty buffer.

        Returns the number of rows committed by this call.
        """
        if entity_type is not None:
            buffer = self._buffers.get(self._spec_for(entity_type).table)
            return self._flush_buffer(buffer) if buffer else 0

        return sum(self._flush_buffer(buffer) for buffer in list(self._buffers.values()))

    def write_now(self, entity: Any) -> bool:
        """Write a single entity in its own transaction, bypassing buffers.

        Used for low-volume upserts (daily summaries, the profile).
        Returns False, and records the error, if the write failed.
        """
        spec = self._spec_for(type(entity))
        return self._write(spec, [entity]) == 1

    def discard(self) -> int:
        """Drop every buffered entity without writing it. Returns how many."""
        dropped = sum(len(buffer.drain()) for buffer in self._buffers.values())
        if dropped:
            logger.warning(f"Discarded {dropped} uncommitted rows")
        return dropped

    def pending(self, entity_type: Type) -> int:
        buffer = self._buffers.get(self._spec_for(entity_type).table)
        return len(buffer) if buffer else 0

    def committed_for(self, entity_type: Type) -> int:
        return self.committed.get(self._spec_for(entity_type).table, 0)

    def _flush_buffer(self, buffer: TableBuffer) -> int:
        if not buffer.entries:
            return 0
        return self._write(buffer.spec, buffer.drain())

    def _write(self, spec: TableSpec, entities: List[Any]) -> int:
        """Write rows in one transaction. Returns rows committed (0 on failure)."""
        try:
            with self.db.transaction() as conn:
                conn.executemany(spec.sql, [spec.row(entity) for entity in entities])
        except sqlite3.Error as e:
            error = BatchWriteError(spec.table, len(entities), e)
            logger.warning(error.message)
            self.errors.append(error.message)
            return 0

        total = self.committed.get(spec.table, 0) + len(entities)
        self.committed[spec.table] = total
        logger.debug(f"Committed {len(entities)} rows to {spec.table} ({total} total)")
        if self.on_flush:
            self.on_flush(spec.table, len(entities), total)
        return len(entities)

"""
Performance Monitor - point-in-time operational snapshot.

Assembles currentOp, dbStats and serverStatus into one record. The three
sources are cross-referenced in the same report, so the snapshot is
all-or-nothing: any failing command raises SnapshotAssemblyError.

"Slow in-flight" means an operation that is still running and has been for
longer than the threshold (100ms by default). This is unrelated to the
500/1000ms bands used for completed queries.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Mapping

from pymongo.database import Database

from indexsense.db.probe import MongoProbe, as_probe
from indexsense.exceptions import SnapshotAssemblyError, StoreError
from indexsense.models import OperationalSnapshot

logger = logging.getLogger(__name__)

DEFAULT_SLOW_OP_THRESHOLD_MS = 100


def running_micros(op: Mapping[str, Any]) -> int:
    """Running time of an in-flight op in microseconds (0 when unknown)."""
    micros = op.get("microsecs_running")
    if micros is not None:
        return int(micros)
    secs = op.get("secs_running")
    if secs is not None:
        return int(secs) * 1_000_000
    return 0


def slow_operations(
    in_progress: list[Mapping[str, Any]],
    threshold_ms: int = DEFAULT_SLOW_OP_THRESHOLD_MS,
) -> list[dict[str, Any]]:
    """Operations running strictly longer than threshold_ms."""
    threshold_micros = threshold_ms * 1000
    return [dict(op) for op in in_progress if running_micros(op) > threshold_micros]


def _fetch(command: str, fn: Callable[[], dict[str, Any]]) -> dict[str, Any]:
    try:
        return fn()
    except StoreError as e:
        logger.error("Snapshot aborted, %s failed: %s", command, e.message)
        raise SnapshotAssemblyError(
            f"Cannot assemble snapshot: {command} failed: {e.message}",
            failed_command=command,
        ) from e


def snapshot(
    db: "MongoProbe | Database",
    slow_op_threshold_ms: int = DEFAULT_SLOW_OP_THRESHOLD_MS,
) -> OperationalSnapshot:
    """
    Sample live operational state.

    Raises:
        SnapshotAssemblyError: If currentOp, dbStats or serverStatus fails.
    """
    probe = as_probe(db)

    current_ops = _fetch("currentOp", probe.current_op)
    db_stats = _fetch("dbStats", probe.database_stats)
    server_status = _fetch("serverStatus", probe.server_status)

    in_progress = list(current_ops.get("inprog") or [])
    slow = slow_operations(in_progress, slow_op_threshold_ms)
    if slow:
        logger.warning(
            "%d of %d in-flight operations running longer than %dms",
            len(slow),
            len(in_progress),
            slow_op_threshold_ms,
        )

    return OperationalSnapshot(
        in_flight_op_count=len(in_progress),
        slow_in_flight_ops=tuple(slow),
        collections=int(db_stats.get("collections", 0)),
        objects=int(db_stats.get("objects", 0)),
        avg_object_size=float(db_stats.get("avgObjSize", 0.0)),
        data_bytes=int(db_stats.get("dataSize", 0)),
        storage_bytes=int(db_stats.get("storageSize", 0)),
        index_count=int(db_stats.get("indexes", 0)),
        index_bytes=int(db_stats.get("indexSize", 0)),
        connections=dict(server_status.get("connections") or {}),
        memory=dict(server_status.get("mem") or {}),
        uptime_seconds=float(server_status.get("uptime", 0.0)),
        sampled_at=datetime.now(timezone.utc),
    )

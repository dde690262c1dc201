"""
Activity log -- best-effort reporting of transitions and movements.

Responsibility:
    Collects one ``ActivityEntry`` per document creation, transition,
    deletion and stock movement during a unit of work and hands them to an
    ``ActivitySink`` only after the business transaction committed.

Architecture position:
    Kernel > Services.  The sink is an external collaborator: the kernel
    ships a database-backed sink and a null sink.

Invariants enforced:
    - Fire-and-forget: a sink failure is logged (``activity_sink_failed``)
      and never propagates, so it can neither block nor revert the
      primary transaction.
    - Nothing is reported for a rolled-back unit of work.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable
from uuid import UUID

from sqlalchemy.orm import Session

from stock_kernel.logging_config import get_logger
from stock_kernel.models.activity import ActivityLogEntry

logger = get_logger("services.activity")


@dataclass(frozen=True)
class ActivityEntry:
    tenant_id: UUID
    actor_id: UUID | None
    action: str
    entity_type: str
    entity_id: str
    summary: str
    occurred_at: datetime
    details: dict[str, Any] = field(default_factory=dict)


class ActivitySink(ABC):
    """Receiver of committed activity."""

    @abstractmethod
    def record(self, entry: ActivityEntry) -> None:
        ...


class NullActivitySink(ActivitySink):
    def record(self, entry: ActivityEntry) -> None:
        return None


class DatabaseActivitySink(ActivitySink):
    """Writes ``activity_log`` rows in a session of its own."""

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def record(self, entry: ActivityEntry) -> None:
        session = self._session_factory()
        try:
            session.add(
                ActivityLogEntry(
                    tenant_id=entry.tenant_id,
                    actor_id=entry.actor_id,
                    action=entry.action,
                    entity_type=entry.entity_type,
                    entity_id=entry.entity_id,
                    summary=entry.summary[:500],
                    details=_jsonable(entry.details),
                    occurred_at=entry.occurred_at,
                )
            )
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()


def _jsonable(details: dict[str, Any]) -> dict[str, Any]:
    return {
        key: value if isinstance(value, (int, float, bool, type(None))) else str(value)
        for key, value in details.items()
    }


class ActivityRecorder:
    """Per-unit-of-work buffer of activity entries."""

    def __init__(self, sink: ActivitySink | None = None):
        self.sink = sink or NullActivitySink()
        self._pending: list[ActivityEntry] = []

    @property
    def pending(self) -> tuple[ActivityEntry, ...]:
        return tuple(self._pending)

    def add(self, entry: ActivityEntry) -> None:
        self._pending.append(entry)

    def clear(self) -> None:
        self._pending.clear()

    def emit(self) -> int:
        """
        Hand every buffered entry to the sink; return how many were accepted.

        Called after commit only.  Failures are logged and swallowed.
        """
        entries, self._pending = self._pending, []
        accepted = 0
        for entry in entries:
            try:
                self.sink.record(entry)
                accepted += 1
            except Exception:
                logger.warning(
                    "activity_sink_failed",
                    exc_info=True,
                    extra={
                        "action": entry.action,
                        "entity_type": entry.entity_type,
                        "entity_id": entry.entity_id,
                    },
                )
        return accepted

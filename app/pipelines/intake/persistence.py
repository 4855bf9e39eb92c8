"""Background persistence of emergency records for one call."""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Any, Optional, Protocol

from app.config.settings import settings
from app.services.call_repository import EmergencyCallWrite
from app.services.response_contract import Severity
from app.telemetry import record_persistence_write

from .session import ConversationSession
from .types import EmergencyRecord

logger = logging.getLogger("app.services.intake_pipeline")


class CallGateway(Protocol):
    async def create_call(self, payload: EmergencyCallWrite) -> Any: ...

    async def update_call(self, call_id: str, payload: EmergencyCallWrite) -> Any: ...


def build_call_write(record: EmergencyRecord, transcript: str) -> EmergencyCallWrite:
    """Full snapshot of ``record`` plus transcript and escalation flags."""

    escalate = record.severity == Severity.CRITICAL
    return EmergencyCallWrite(
        type=record.type,
        severity=record.severity,
        description=record.description,
        casualties=record.casualties,
        location=record.location,
        latitude=record.latitude,
        longitude=record.longitude,
        transcript=transcript,
        auto_escalated=True if escalate else None,
        human_takeover=True if escalate else None,
    )


class PersistenceQueue:
    """Serialize record writes so at most one is in flight per call.

    The first write creates the call; every later write updates it by id.
    Only the newest ``maxsize`` snapshots are kept while a write is in
    flight, since each snapshot is complete and supersedes older ones.
    """

    def __init__(
        self,
        session: ConversationSession,
        gateway: CallGateway,
        *,
        timeout_seconds: float | None = None,
        maxsize: int | None = None,
    ) -> None:
        self._session = session
        self._gateway = gateway
        self._timeout_seconds = (
            settings.intake.persistence_timeout_seconds
            if timeout_seconds is None
            else timeout_seconds
        )
        self._pending: deque[EmergencyCallWrite] = deque(
            maxlen=max(1, maxsize or settings.intake.persistence_queue_size)
        )
        self._worker: Optional[asyncio.Task] = None
        self._call_id: Optional[str] = None
        self._closed = False

    @property
    def call_id(self) -> Optional[str]:
        return self._call_id

    @property
    def pending(self) -> int:
        return len(self._pending)

    def submit(self, record: EmergencyRecord, transcript: str) -> bool:
        if self._closed:
            return False
        if len(self._pending) == self._pending.maxlen:
            logger.warning("Persistence queue full; dropping oldest pending snapshot")
            record_persistence_write("queued", "dropped")
        self._pending.append(build_call_write(record, transcript))
        if self._worker is None or self._worker.done():
            self._worker = asyncio.get_running_loop().create_task(self._run())
        return True

    async def _run(self) -> None:
        while self._pending:
            payload = self._pending.popleft()
            await self._write(payload)

    async def _write(self, payload: EmergencyCallWrite) -> None:
        operation = "create" if self._call_id is None else "update"
        try:
            if self._call_id is None:
                stored = await asyncio.wait_for(
                    self._gateway.create_call(payload), timeout=self._timeout_seconds
                )
                self._call_id = str(stored.id)
                if self._session.is_active:
                    self._session.assign_call_id(self._call_id)
                logger.info(
                    "Call record created session=%s call_id=%s",
                    self._session.session_id,
                    self._call_id,
                )
            else:
                await asyncio.wait_for(
                    self._gateway.update_call(self._call_id, payload),
                    timeout=self._timeout_seconds,
                )
                logger.info(
                    "Call record updated session=%s call_id=%s",
                    self._session.session_id,
                    self._call_id,
                )
        except asyncio.CancelledError:
            raise
        except asyncio.TimeoutError:
            logger.warning(
                "Persistence %s timed out after %.1fs session=%s",
                operation,
                self._timeout_seconds,
                self._session.session_id,
            )
            record_persistence_write(operation, "timeout")
            return
        except Exception:
            logger.exception(
                "Persistence %s failed session=%s", operation, self._session.session_id
            )
            record_persistence_write(operation, "failed")
            return
        record_persistence_write(operation, "ok")

    def close(self) -> None:
        """Stop accepting snapshots; already queued ones are still written."""

        self._closed = True

    async def wait_idle(self) -> None:
        worker = self._worker
        if worker is not None and not worker.done():
            await asyncio.shield(worker)


__all__ = ["CallGateway", "PersistenceQueue", "build_call_write"]

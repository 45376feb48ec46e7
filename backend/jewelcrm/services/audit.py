"""Fire-and-forget audit writer and read-only log queries.

The writer is the only path that inserts into `access_attempts`,
`security_events` and `audit_logs`. Callers hand entries off through
plain, non-async methods that return nothing and never raise; a single
background task drains the queue and commits each entry in its own
session, so an audit failure can never fail or slow down the operation
being audited.

Usage:
    audit_logger.log_access_attempt(user_id, "global", None, "view_customers", True)
    ...
    await audit_logger.drain()   # tests / shutdown: wait for pending writes
"""

import asyncio
import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from jewelcrm.config import settings
from jewelcrm.database import async_session
from jewelcrm.models.audit import AccessAttempt, AuditLog, SecurityEvent
from jewelcrm.schemas.audit import (
    AccessAttemptEntry,
    AuditLogEntry,
    SecurityEventEntry,
)

logger = logging.getLogger("jewelcrm.audit")

SEVERITIES = ("low", "medium", "high", "critical")


class AuditLogger:
    """Queue-backed writer for the append-only compliance logs."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        max_queue_size: int = 1000,
    ):
        self._session_factory = session_factory
        self._max_queue_size = max_queue_size
        self._queue: asyncio.Queue | None = None
        self._worker: asyncio.Task | None = None
        self.dropped = 0

    # ── Hand-off (never raises) ─────────────────────────────

    def log_access_attempt(
        self,
        user_id: str | None,
        resource_type: str,
        resource_id: str | None,
        permission_required: str | None,
        access_granted: bool,
    ) -> None:
        self._submit(
            AccessAttempt,
            user_id=user_id,
            resource_type=resource_type,
            resource_id=resource_id,
            permission_required=permission_required,
            access_granted=access_granted,
        )

    def log_security_event(
        self,
        user_id: str | None,
        event_type: str,
        severity: str,
        description: str | None,
        metadata: dict | None = None,
    ) -> None:
        if severity not in SEVERITIES:
            logger.warning("Unknown severity %r for %s, recording as high", severity, event_type)
            severity = "high"
        self._submit(
            SecurityEvent,
            user_id=user_id,
            event_type=event_type,
            severity=severity,
            description=description,
            event_metadata=metadata,
        )

    def log_audit(
        self,
        user_id: str | None,
        action: str,
        resource_type: str,
        resource_id: str | None = None,
        old_values: dict | None = None,
        new_values: dict | None = None,
        success: bool = True,
        error_message: str | None = None,
    ) -> None:
        self._submit(
            AuditLog,
            user_id=user_id,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            old_values=old_values,
            new_values=new_values,
            success=success,
            error_message=error_message,
        )

    def _submit(self, model, **values) -> None:
        try:
            values["created_at"] = datetime.utcnow()
            self._ensure_worker()
            self._queue.put_nowait((model, values))
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(
                "Audit queue full, dropping %s entry (%d dropped so far)",
                model.__tablename__,
                self.dropped,
            )
        except Exception:
            logger.exception("Failed to enqueue %s entry", model.__tablename__)

    # ── Worker ──────────────────────────────────────────────

    def _ensure_worker(self) -> None:
        """Start the writer task in the running loop on first use."""
        if self._worker is not None and not self._worker.done():
            return
        if self._queue is None:
            self._queue = asyncio.Queue(maxsize=self._max_queue_size)
        self._worker = asyncio.get_running_loop().create_task(
            self._run(), name="audit-writer"
        )

    async def _run(self) -> None:
        while True:
            model, values = await self._queue.get()
            try:
                await self._write(model, values)
            finally:
                self._queue.task_done()

    async def _write(self, model, values: dict) -> None:
        try:
            async with self._session_factory() as db:
                db.add(model(**values))
                await db.commit()
        except Exception:
            logger.exception("Audit write failed for %s", model.__tablename__)

    async def drain(self) -> None:
        """Wait until every entry handed off so far has been written."""
        if self._queue is not None and self._worker is not None:
            await self._queue.join()

    async def stop(self) -> None:
        """Flush pending entries and stop the writer task."""
        if self._worker is None:
            return
        await self.drain()
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None
        self._queue = None

    @property
    def pending(self) -> int:
        return self._queue.qsize() if self._queue is not None else 0


audit_logger = AuditLogger(async_session, max_queue_size=settings.audit_queue_size)


# ── Queries ──────────────────────────────────────────────────

async def get_audit_logs(
    db: AsyncSession,
    limit: int = 100,
    offset: int = 0,
    user_id: str | None = None,
    action: str | None = None,
) -> list[AuditLogEntry]:
    """Most recent audit log entries, optionally filtered."""
    query = select(AuditLog)
    if user_id:
        query = query.where(AuditLog.user_id == user_id)
    if action:
        query = query.where(AuditLog.action == action)

    result = await db.execute(
        query.order_by(AuditLog.created_at.desc()).offset(offset).limit(limit)
    )
    return [AuditLogEntry.model_validate(r) for r in result.scalars().all()]


async def get_security_events(
    db: AsyncSession,
    limit: int = 100,
    offset: int = 0,
    severity: str | None = None,
) -> list[SecurityEventEntry]:
    """Most recent security events, optionally filtered by severity."""
    query = select(SecurityEvent)
    if severity:
        query = query.where(SecurityEvent.severity == severity)

    result = await db.execute(
        query.order_by(SecurityEvent.created_at.desc()).offset(offset).limit(limit)
    )
    return [SecurityEventEntry.model_validate(r) for r in result.scalars().all()]


async def get_access_attempts(
    db: AsyncSession,
    limit: int = 100,
    offset: int = 0,
    user_id: str | None = None,
    access_granted: bool | None = None,
) -> list[AccessAttemptEntry]:
    """Most recent access attempts, optionally filtered by user or outcome."""
    query = select(AccessAttempt)
    if user_id:
        query = query.where(AccessAttempt.user_id == user_id)
    if access_granted is not None:
        query = query.where(AccessAttempt.access_granted == access_granted)

    result = await db.execute(
        query.order_by(AccessAttempt.created_at.desc()).offset(offset).limit(limit)
    )
    return [AccessAttemptEntry.model_validate(r) for r in result.scalars().all()]



"""Application lifespan: owns the audit writer task.

The writer starts lazily on the first hand-off; on shutdown every entry
still queued is written before the task is cancelled.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from jewelcrm.database import engine
from jewelcrm.services.audit import audit_logger

logger = logging.getLogger("jewelcrm.lifespan")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Access control service starting")
    try:
        yield
    finally:
        pending = audit_logger.pending
        await audit_logger.stop()
        logger.info("Audit writer stopped (%d entries flushed)", pending)
        await engine.dispose()

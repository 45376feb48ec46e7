import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from jewelcrm.config import settings
from jewelcrm.middleware.exceptions import register_exception_handlers
from jewelcrm.routers import access_control, health
from jewelcrm.services.lifespan import lifespan

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title="JewelCRM Access Control",
    description="Role-based permission resolution and audit for jewelry-store staff",
    version="0.1.0",
    lifespan=lifespan,
)

# ── Exception Handlers ───────────────────────────────────────
register_exception_handlers(app)

# ── Middleware ───────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Routers ──────────────────────────────────────────────────
app.include_router(health.router)
app.include_router(access_control.router, prefix="/api/access", tags=["access-control"])

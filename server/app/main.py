import logging

import app.models  # noqa: F401
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from app.core.config import settings
from app.core.db import engine
from app.routers import admin_sponsorship as admin_sponsorship_router
from app.routers import checkout as checkout_router
from app.routers import home as home_router
from app.routers import sponsorship_requests as sponsorship_requests_router
from app.services.sponsorship_errors import SponsorshipError

app = FastAPI(title="Sponsor Slots API", version="0.1.0")

logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(sponsorship_requests_router.router)
app.include_router(checkout_router.router)
app.include_router(home_router.router)
app.include_router(admin_sponsorship_router.router)


@app.exception_handler(SponsorshipError)
async def sponsorship_error_handler(request: Request, exc: SponsorshipError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "code": exc.code, "retryable": exc.retryable},
    )


@app.on_event("startup")
def ensure_slot_constraints() -> None:
    """Bring legacy Postgres databases up to the grant schema the allocator relies on."""

    if engine.dialect.name != "postgresql":
        # SQLite-based test runs skip Postgres-specific guards.
        return

    with engine.begin() as connection:
        connection.execute(text("CREATE EXTENSION IF NOT EXISTS btree_gist"))
        # Only databases predating the column get it here, with the same unique constraint as the migration.
        connection.execute(
            text("ALTER TABLE sponsorship_grants ADD COLUMN IF NOT EXISTS order_id VARCHAR(64) UNIQUE")
        )
        connection.execute(
            text(
                """
                DO $$
                BEGIN
                    IF NOT EXISTS (
                        SELECT 1 FROM pg_constraint WHERE conname = 'ex_sponsorship_grants_slot_window'
                    ) THEN
                        ALTER TABLE sponsorship_grants
                            ADD CONSTRAINT ex_sponsorship_grants_slot_window
                            EXCLUDE USING gist (
                                placement WITH =,
                                slot_index WITH =,
                                tstzrange(starts_at, ends_at, '[)') WITH &&
                            );
                    END IF;
                END
                $$;
                """
            )
        )
    logger.info("sponsorship_schema_guard_applied")


@app.get("/health", tags=["health"])
def health() -> dict[str, str]:
    return {"status": "ok"}

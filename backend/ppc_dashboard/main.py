"""
PPC Dashboard — FastAPI Backend
Sponsored Products reporting grouped by keyword syntax, budget pacing,
alerts, and change sets exported as Amazon bulksheets.
All data persisted to PostgreSQL.
"""

import logging
from contextlib import asynccontextmanager
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from ppc_dashboard.config import get_settings
from ppc_dashboard.database import init_db, check_db_connection
from ppc_dashboard.auth import require_auth
from ppc_dashboard.routers import alerts, change_sets, cron, dashboard, reports, syntax

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting PPC Dashboard...")
    try:
        await init_db()
        logger.info("Database initialized — all tables ready.")
    except Exception as e:
        logger.error(f"Startup failed (DB/init): {e}", exc_info=True)
        # Still yield so app can serve /api/health (degraded) and logs are visible
    yield
    logger.info("Shutting down...")


app = FastAPI(
    title="PPC Dashboard",
    description="Sponsored Products syntax reporting and change-set workflow",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Register Routers (all require auth) ──────────────────────────────
_auth = [Depends(require_auth)]
app.include_router(dashboard.router, prefix="/api/dashboard", tags=["Dashboard"], dependencies=_auth)
app.include_router(syntax.router, prefix="/api/syntax", tags=["Syntax Groups"], dependencies=_auth)
app.include_router(change_sets.router, prefix="/api/change-sets", tags=["Change Sets"], dependencies=_auth)
app.include_router(alerts.router, prefix="/api/alerts", tags=["Alerts"], dependencies=_auth)
app.include_router(reports.router, prefix="/api/reports", tags=["Reports"], dependencies=_auth)
app.include_router(cron.router, prefix="/api")  # No auth — uses CRON_SECRET


@app.get("/api/health")
async def health_check():
    db_ok = await check_db_connection()
    return {
        "status": "healthy" if db_ok else "degraded",
        "service": "PPC Dashboard",
        "database": "connected" if db_ok else "disconnected",
    }

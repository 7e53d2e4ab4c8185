"""
MBG Watch - FastAPI Application

Main entry point for the report credibility & verification backend.

Pipeline:
- Submission -> validation -> ReportSnapshot
- ReportSnapshot -> six factor evaluators -> Aggregator -> credibility level
- Report -> Verification State Machine -> append-only status history
"""
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .database import init_db
from .errors import register_error_handlers
from .routers import admin_router, auth_router, reports_router

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database on startup."""
    init_db()
    yield


app = FastAPI(
    lifespan=lifespan,
    title="MBG Watch",
    description="""
    MBG Watch - Report Credibility & Verification Engine

    Citizens report irregularities in the school meal program; administrators
    review them through a scored, auditable workflow.

    ## Credibility
    Six factors (relation, location/time, evidence, narrative, reporter
    history, similarity), each 0-3, summed to 0-18 and classified as
    high / medium / low.

    ## Workflow
    pending -> analyzing -> {needs_evidence, invalid, in_progress},
    needs_evidence -> analyzing, in_progress -> resolved.
    """,
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

app.include_router(auth_router)
app.include_router(reports_router)
app.include_router(admin_router)


@app.get("/health")
async def health_check():
    return {"status": "healthy", "version": __version__}


# For running with: python -m mbg_watch.main
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)

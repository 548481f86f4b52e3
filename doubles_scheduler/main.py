import logging
import os
from typing import List

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from doubles_scheduler import __version__
from doubles_scheduler.database import init_db
from doubles_scheduler.routes import runtime, schedule, tournaments

logger = logging.getLogger(__name__)

APP_NAME = "Doubles Scheduler API"
DEFAULT_CORS_ORIGINS = "http://localhost:3000,http://localhost:5173"


def cors_origins() -> List[str]:
    """Comma-separated CORS_ORIGINS, falling back to the local dev frontends"""
    raw = os.getenv("CORS_ORIGINS", DEFAULT_CORS_ORIGINS)
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


app = FastAPI(title=APP_NAME, version=__version__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(tournaments.router, prefix="/api", tags=["tournaments"])
app.include_router(schedule.router, prefix="/api", tags=["schedule"])
# Match status only; times and courts change through the schedule router
app.include_router(runtime.router, prefix="/api", tags=["runtime"])


@app.on_event("startup")
def on_startup():
    init_db()
    logger.info("%s %s listening for schedule requests", APP_NAME, __version__)


@app.get("/api/health")
def health_check():
    return {"app_name": APP_NAME, "version": __version__, "status": "healthy"}

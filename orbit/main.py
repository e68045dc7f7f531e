from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging
import os
from pathlib import Path

from orbit.database import engine, Base, SessionLocal
from orbit import models  # Import all models to register them with Base
from orbit.repositories.settings_repository import SettingsRepository
from orbit.routes import system, users
from orbit.services.scheduler_service import start_scheduler, stop_scheduler
from orbit.constants import (
    DEFAULT_LOG_DIRECTORY_PROD, DEFAULT_LOG_DIRECTORY_DEV,
    CORS_ALLOWED_ORIGINS, SCHEDULER_ENABLED
)

LOG_DIR = os.getenv("ORBIT_LOG_DIR", DEFAULT_LOG_DIRECTORY_PROD)
LOG_FILE = os.getenv("ORBIT_LOG_FILE", "app.log")

# Create log directory if it doesn't exist (for development)
try:
    Path(LOG_DIR).mkdir(parents=True, exist_ok=True)
    log_path = Path(LOG_DIR) / LOG_FILE
except PermissionError:
    # Fallback to local directory if no permissions for /var/log
    LOG_DIR = DEFAULT_LOG_DIRECTORY_DEV
    Path(LOG_DIR).mkdir(parents=True, exist_ok=True)
    log_path = Path(LOG_DIR) / LOG_FILE

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.FileHandler(log_path),
        logging.StreamHandler()  # Also log to console
    ]
)

logger = logging.getLogger("orbit")

# Create database tables
Base.metadata.create_all(bind=engine)

app = FastAPI(
    title="Orbit Core API",
    description="Recurring obligations, daily snapshots and gamification",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def startup_event():
    logger.info(f"Orbit Core API started. Logging to: {log_path}")

    # Seed the settings row so request handlers never create it mid-transaction
    db = SessionLocal()
    try:
        SettingsRepository.get(db)
        db.commit()
    finally:
        db.close()

    if SCHEDULER_ENABLED:
        start_scheduler()


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Shutting down Orbit Core API")
    stop_scheduler()


@app.get("/")
async def root():
    return {"message": "Orbit Core API", "status": "active"}


app.include_router(system.router)
app.include_router(users.router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("orbit.main:app", host="0.0.0.0", port=8000, reload=False)

from fastapi import FastAPI
from fastapi.responses import JSONResponse

# Internal imports
from config import config
from data.database import create_tables
from api.experiment_routes import experiment_router
from api.events_routes import events_router
from errors import register_error_handlers

import contextlib
import logging
import middleware

logger = logging.getLogger(__name__)


@contextlib.asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Handles startup and shutdown events for the application.
    Code before 'yield' runs on startup.
    Code after 'yield' runs on shutdown.
    """
    logger.info("Application starting up with %s", config)
    create_tables()
    logger.info("Database tables initialized successfully.")

    yield

    logger.info("Application shutting down.")

# --- FastAPI App Initialization ---
app = FastAPI(
    lifespan=lifespan,
    title="Experiment Results API",
    version="1.0.0",
    description="A/B experiment management, session assignment, event ingestion and significance results."
)

app.add_middleware(middleware.RequestIDMiddleware)
register_error_handlers(app)

app.include_router(experiment_router)
app.include_router(events_router)


@app.get("/health")
def health_check():
    return JSONResponse(content={"status": "healthy"}, status_code=200)

from fastapi import APIRouter, Query, Response, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from datetime import datetime, timedelta, timezone
from typing import Literal

from models.experiments import ExperimentCreate, ExperimentResponse, ExperimentStatus, ExperimentStatusUpdate, ExperimentAssignmentResponse
from models.results import ExperimentResults
from data.repository import ExperimentRepository, EventStore
from services import assignment, experiments, results
from services.cache import CacheClient
from api.depends import CLIENT_AUTH, DB_DEPENDENCY, CACHE_CLIENT

import logging

logger = logging.getLogger(__name__)

experiment_router = APIRouter(
    prefix="/experiments",
    tags=["experiments"],
    dependencies=[CLIENT_AUTH], # CLIENT_AUTH is applied to all routes in this router
)


def _parse_datetime(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@experiment_router.post("", response_model=ExperimentResponse, status_code=status.HTTP_201_CREATED)
def create_experiment_route(
    experiment_data: ExperimentCreate,
    db: Session = DB_DEPENDENCY
):
    """Create a new draft experiment with its variants and traffic weights."""
    return experiments.create_new_experiment(db, experiment_data)


@experiment_router.get("", response_model=list[ExperimentResponse])
def list_experiments_route(
    db: Session = DB_DEPENDENCY,
    status: ExperimentStatus | Literal["all"] = "running",
):
    """List experiments newest first; status=all disables the filter."""
    return experiments.list_experiments(db, None if status == "all" else status)


@experiment_router.get("/{experiment_id}", response_model=ExperimentResponse)
def get_experiment_route(
    experiment_id: str,
    db: Session = DB_DEPENDENCY,
    cache: CacheClient = CACHE_CLIENT
):
    return experiments.get_experiment(db, cache, experiment_id)


@experiment_router.patch("/{experiment_id}/status", response_model=ExperimentResponse)
def update_experiment_status_route(
    experiment_id: str,
    update: ExperimentStatusUpdate,
    db: Session = DB_DEPENDENCY,
    cache: CacheClient = CACHE_CLIENT
):
    return experiments.update_experiment_status(db, cache, experiment_id, update.status)


@experiment_router.delete("/{experiment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_experiment_route(
    experiment_id: str,
    db: Session = DB_DEPENDENCY,
    cache: CacheClient = CACHE_CLIENT
):
    experiments.delete_experiment(db, cache, experiment_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# GET /experiments/{experiment_id}/assignment/{session_id} (The Idempotent Logic)
@experiment_router.get("/{experiment_id}/assignment/{session_id}", response_model=ExperimentAssignmentResponse)
def get_session_assignment_route(
    experiment_id: str,
    session_id: str,
    db: Session = DB_DEPENDENCY,
    cache: CacheClient = CACHE_CLIENT
):
    """Get a session's variant assignment. Performs assignment if none exists."""
    return assignment.get_or_create_assignment(db, cache, experiment_id, session_id)


@experiment_router.get("/{experiment_id}/results", response_model=ExperimentResults)
def get_experiment_results_route(
    experiment_id: str,
    db: Session = DB_DEPENDENCY,
    cache: CacheClient = CACHE_CLIENT,
    start_date: str | None = None,      # YYYY-MM-DDTHH:MM:SS, UTC when no offset is given
    end_date: str | None = None,
    last_day: int | None = Query(default=None, ge=1)    # eg: 7 for 7day
):
    """
    Retrieve per-variant counts, significance tests and the daily conversion series.
    """
    start_datetime = None
    end_datetime = None

    try:
        # last days will override start_date
        if last_day:
            start_datetime = datetime.now(timezone.utc) - timedelta(days=last_day)
        elif start_date:
            start_datetime = _parse_datetime(start_date)
        if end_date:
            end_datetime = _parse_datetime(end_date)
    except ValueError as e:
        logger.info("datetime conversion ValueError error: %s", str(e))
        return JSONResponse(content={"error": f"Invalid date: {e}"}, status_code=status.HTTP_400_BAD_REQUEST)

    return results.calculate_results(
        repository=ExperimentRepository(db, cache),
        event_store=EventStore(db),
        experiment_id=experiment_id,
        start_datetime=start_datetime,
        end_datetime=end_datetime,
    )

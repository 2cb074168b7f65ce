from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from typing import Any
from models.events import EventCreate
from api.depends import CLIENT_AUTH

from celery_tasks.event_tasks import insert_event_to_db
import json
import logging

logger = logging.getLogger(__name__)

events_router = APIRouter(
    prefix="/events",
    tags=["events"],
    dependencies=[CLIENT_AUTH]
)

@events_router.post("", status_code=status.HTTP_202_ACCEPTED)
def record_event_route(event_data: EventCreate):
    """
    Record an exposure or conversion event for a session.
    The event is handed to a celery worker, which inserts it into the events table.
    """
    properties_json = json.dumps(event_data.properties) if event_data.properties else None

    # Celery requires simple serializable types (like string for datetime)
    task_payload: dict[str, Any] = {
        'experiment_id': event_data.experiment_id,
        'variant_id': event_data.variant_id,
        'session_id': event_data.session_id,
        'event_type': event_data.event_type,
        'timestamp': event_data.timestamp.isoformat(),
        'properties_json': properties_json
    }

    task = insert_event_to_db.delay(task_payload)
    logger.debug("insert_event_to_db task queued: %s", task.id)

    return JSONResponse(content={"status": "accepted", "task_id": task.id}, status_code=status.HTTP_202_ACCEPTED)

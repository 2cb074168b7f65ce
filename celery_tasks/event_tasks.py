from celery_config import celery_app
from sqlalchemy.exc import OperationalError
from data.database import Event, SessionLocal
from data.repository import to_naive_utc
from typing import Any
from datetime import datetime
import logging

logger = logging.getLogger(__name__)


# Results are never read back, ignore them to avoid backend bloat
@celery_app.task(bind=True, max_retries=3, default_retry_delay=30, ignore_result=True)
def insert_event_to_db(self, event_data_dict: dict[str, Any]):
    """
    Asynchronously inserts an exposure or conversion event into the events table.
    This function must handle its own database session.
    """
    db = SessionLocal()
    db_event = None
    try:
        db_event = Event(
            experiment_id=event_data_dict['experiment_id'],
            variant_id=event_data_dict['variant_id'],
            session_id=event_data_dict['session_id'],
            event_type=event_data_dict['event_type'],
            timestamp=to_naive_utc(datetime.fromisoformat(event_data_dict['timestamp'])),
            properties_json=event_data_dict['properties_json']
        )

        db.add(db_event)
        db.commit()

        logger.info("Task %s[%s]. Inserted %s event for session %s (EID %s).",
                    self.name, self.request.id, db_event.event_type, db_event.session_id, db_event.experiment_id)
    except OperationalError as exc:
        db.rollback()
        logger.error("Database unavailable in Celery task. Retrying...")
        raise self.retry(exc=exc)
    except Exception as exc:
        db.rollback()
        logger.error("Failed to insert event to DB: %s. Payload: %s", exc, event_data_dict)
        raise  # re-raise so Celery marks FAILURE

    finally:
        db.close()

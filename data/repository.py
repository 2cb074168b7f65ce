from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from datetime import datetime, timezone
from data.database import Experiment, Variant, Event
from models.events import EventRecord
from services.cache import CacheClient
from errors import NotFound, UpstreamUnavailable
import logging

logger = logging.getLogger(__name__)


def to_naive_utc(value: datetime | None) -> datetime | None:
    """Timestamps are stored as naive UTC; aware values are converted first."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def control_first(variants: list[Variant]) -> list[Variant]:
    """Orders variants control first, the rest in creation order."""
    ordered = sorted(variants, key=lambda v: v.position or 0)
    controls = [v for v in ordered if v.is_control]
    if not controls:
        return ordered
    control = controls[0]
    return [control] + [v for v in ordered if v is not control]


class ExperimentRepository:
    """Reads experiments and their variants, going through the cache for experiments."""

    def __init__(self, db: Session, cache: CacheClient | None = None):
        self.db = db
        self.cache = cache

    def get_experiment(self, experiment_id: str) -> Experiment:
        if self.cache:
            experiment = self.cache.get_experiment(experiment_id)
            if experiment:
                logger.debug("get_experiment %s cache hit", experiment_id)
                return experiment

        try:
            experiment = self.db.query(Experiment).filter(Experiment.id == experiment_id).one_or_none()
        except SQLAlchemyError as e:
            logger.error("Failed to read experiment %s: %s", experiment_id, e)
            raise UpstreamUnavailable("Failed to fetch experiment.") from e

        if not experiment:
            raise NotFound(f"Experiment {experiment_id} not found.")

        if self.cache:
            self.cache.set_experiment(experiment)
            logger.debug("get_experiment %s cache miss", experiment_id)
        return experiment

    def get_variants(self, experiment_id: str) -> list[Variant]:
        return control_first(list(self.get_experiment(experiment_id).variants))


class EventStore:
    """Reads raw experiment events for aggregation."""

    def __init__(self, db: Session):
        self.db = db

    def get_events(
        self,
        experiment_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[EventRecord]:
        query = self.db.query(
            Event.variant_id, Event.session_id, Event.event_type, Event.timestamp
        ).filter(Event.experiment_id == experiment_id)

        if start:
            query = query.filter(Event.timestamp >= to_naive_utc(start))
        if end:
            query = query.filter(Event.timestamp <= to_naive_utc(end))

        try:
            rows = query.order_by(Event.timestamp).all()
        except SQLAlchemyError as e:
            logger.error("Failed to read events for experiment %s: %s", experiment_id, e)
            raise UpstreamUnavailable("Failed to fetch experiment events.") from e

        logger.debug("loaded %d events for experiment %s", len(rows), experiment_id)
        return [
            EventRecord(
                variant_id=row.variant_id,
                session_id=row.session_id,
                event_type=row.event_type,
                timestamp=_as_utc(row.timestamp),
            )
            for row in rows
        ]

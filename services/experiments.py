from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from data.database import Experiment, Variant
from data.repository import ExperimentRepository
from models.experiments import ExperimentCreate
from services.cache import CacheClient
from errors import InvalidInput, NotFound, UpstreamUnavailable
import logging

logger = logging.getLogger(__name__)

MIN_VARIANTS = 2
TOTAL_TRAFFIC_WEIGHT = 100


def validate_experiment(experiment_data: ExperimentCreate):
    """Rejects variant setups that cannot produce a control-vs-treatment comparison."""
    if len(experiment_data.variants) < MIN_VARIANTS:
        raise InvalidInput(f"At least {MIN_VARIANTS} variants are required.")

    if not any(v.is_control for v in experiment_data.variants):
        raise InvalidInput("At least one variant must be marked as control.")

    names = [v.name for v in experiment_data.variants]
    if len(set(names)) != len(names):
        raise InvalidInput("Variant names must be unique within an experiment.")

    total_weight = sum(v.traffic_weight for v in experiment_data.variants)
    if abs(total_weight - TOTAL_TRAFFIC_WEIGHT) > 1e-9:
        raise InvalidInput(f"Variant traffic weights must sum to {TOTAL_TRAFFIC_WEIGHT}.")


# --- Experiment Creation ---
def create_new_experiment(db: Session, experiment_data: ExperimentCreate) -> Experiment:
    """Creates a new draft experiment and its associated variants."""
    validate_experiment(experiment_data)

    db_experiment = Experiment(
        name=experiment_data.name,
        description=experiment_data.description,
        hypothesis=experiment_data.hypothesis,
        primary_goal=experiment_data.primary_goal,
        traffic_allocation=experiment_data.traffic_allocation,
        minimum_sample_size=experiment_data.minimum_sample_size,
        confidence_level=experiment_data.confidence_level,
        status="draft",
    )
    db.add(db_experiment)
    db.flush() # Flush to get the experiment ID before committing

    for position, v in enumerate(experiment_data.variants):
        db_variant = Variant(
            experiment_id=db_experiment.id,
            name=v.name,
            description=v.description,
            is_control=v.is_control,
            traffic_weight=v.traffic_weight,
            config=v.config,
            position=position,
        )
        db.add(db_variant)

    db.commit()
    db.refresh(db_experiment)
    logger.info("create new experiment %s success with experiment id: %s", experiment_data.name, db_experiment.id)
    return db_experiment


def list_experiments(db: Session, status: str | None = "running") -> list[Experiment]:
    """Newest first, optionally filtered by status."""
    query = db.query(Experiment)
    if status:
        query = query.filter(Experiment.status == status)
    try:
        return query.order_by(Experiment.created_at.desc()).all()
    except SQLAlchemyError as e:
        logger.error("Failed to list experiments: %s", e)
        raise UpstreamUnavailable("Failed to fetch experiments.") from e


def _load(db: Session, experiment_id: str) -> Experiment:
    # Writes need the session-bound row, never the cached copy
    experiment = db.query(Experiment).filter(Experiment.id == experiment_id).one_or_none()
    if not experiment:
        raise NotFound(f"Experiment {experiment_id} not found.")
    return experiment


def get_experiment(db: Session, cache: CacheClient, experiment_id: str) -> Experiment:
    return ExperimentRepository(db, cache).get_experiment(experiment_id)


def update_experiment_status(db: Session, cache: CacheClient, experiment_id: str, status: str) -> Experiment:
    experiment = _load(db, experiment_id)
    previous = experiment.status
    experiment.status = status
    db.commit()
    db.refresh(experiment)
    cache.invalidate_experiment(experiment_id)
    logger.info("experiment %s status changed %s -> %s", experiment_id, previous, status)
    return experiment


def delete_experiment(db: Session, cache: CacheClient, experiment_id: str):
    """Deletes the experiment together with its variants, assignments and events."""
    experiment = _load(db, experiment_id)
    db.delete(experiment)
    db.commit()
    cache.invalidate_experiment(experiment_id)
    logger.info("experiment %s deleted", experiment_id)

from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from data.database import Assignment, utcnow
from data.repository import ExperimentRepository
from errors import ExperimentServiceError, InvalidInput
from models.experiments import ExperimentAssignmentResponse
from services.cache import CacheClient
import random
import logging

logger = logging.getLogger(__name__)

# Define the maximum number of times to retry the transaction
MAX_RETRIES = 3


class AssignmentFailed(ExperimentServiceError):
    """Assignment could not be persisted after retrying."""
    status_code = 409


def get_existing_assignment(db: Session, cache: CacheClient, experiment_id: str, session_id: str):
    """ Get existing assignment from cache, falling back to the database """

    existing_assignment = cache.get_assignment(experiment_id, session_id)
    if not existing_assignment:
        existing_assignment = db.query(Assignment).filter(
                Assignment.session_id == session_id,
                Assignment.experiment_id == experiment_id
            ).first()

        if existing_assignment:
            cache.set_assignment(existing_assignment)
            logger.debug("get_existing_assignment %s cache miss", experiment_id)
    else:
        logger.debug("get_existing_assignment %s cache hit", experiment_id)

    return existing_assignment


def set_assignment(db: Session, cache: CacheClient, assignment: Assignment):
    """ Persist a new assignment, the unique constraint rejects concurrent duplicates """

    db.add(assignment)
    db.commit() # This is where the database constraint check happens
    db.refresh(assignment)
    cache.set_assignment(assignment)


def choose_variant(experiment):
    """
    Returns the variant a new session should see, or None when the session falls
    outside the experiment's traffic allocation.
    """
    if random.uniform(0, 100) >= experiment.traffic_allocation:
        return None

    variants = [v for v in experiment.variants if v.traffic_weight > 0]
    if not variants:
        return None
    weights = [v.traffic_weight for v in variants]
    return random.choices(variants, weights=weights, k=1)[0]


def to_response(assignment: Assignment, experiment) -> ExperimentAssignmentResponse:
    config = {}
    for v in experiment.variants:
        if v.id == assignment.variant_id:
            config = v.config or {}
    return ExperimentAssignmentResponse(
        experiment_id=assignment.experiment_id,
        session_id=assignment.session_id,
        included=assignment.variant_id is not None,
        variant_id=assignment.variant_id,
        variant_name=assignment.variant_name,
        config=config,
        assigned_at=assignment.assigned_at,
    )


# --- Idempotent Assignment ---
def get_or_create_assignment(db: Session, cache: CacheClient, experiment_id: str, session_id: str) -> ExperimentAssignmentResponse:
    """
    Retrieves an existing assignment or creates a new one if doesn't exist,
    safely handling concurrent requests using the Unique Constraint + Retry pattern.
    Only running experiments hand out new assignments.
    """
    experiment = ExperimentRepository(db, cache).get_experiment(experiment_id)

    # Retry loop handles concurrent inserts that fail the unique constraint
    for attempt in range(MAX_RETRIES):

        existing_assignment = get_existing_assignment(db=db, cache=cache, experiment_id=experiment_id, session_id=session_id)

        if existing_assignment:
            logger.info("Found persistent assignment for session %s on EID %s: %s",
                        session_id, experiment_id, existing_assignment.variant_name)
            return to_response(existing_assignment, experiment)

        if experiment.status != "running":
            raise InvalidInput(f"Experiment {experiment_id} is {experiment.status}, only running experiments assign sessions.")

        variant = choose_variant(experiment)
        new_assignment = Assignment(
            session_id=session_id,
            experiment_id=experiment_id,
            variant_id=variant.id if variant else None,
            variant_name=variant.name if variant else None,
            assigned_at=utcnow(),
        )

        try:
            set_assignment(db=db, cache=cache, assignment=new_assignment)

            logger.info("SUCCESS: Session %s newly assigned to %s (EID %s) on attempt %d.",
                        session_id, new_assignment.variant_name, experiment_id, attempt + 1)
            return to_response(new_assignment, experiment)

        except IntegrityError:
            # A concurrent transaction beat us to the INSERT, the next read will find it
            db.rollback()
            logger.warning("RACE DETECTED: IntegrityError on session %s (EID %s). Retrying (Attempt %d/%d)...",
                           session_id, experiment_id, attempt + 2, MAX_RETRIES)

    logger.warning("Failed to get or create assignment for session %s after %d attempts.", session_id, MAX_RETRIES)
    raise AssignmentFailed(f"Experiment {experiment_id} unable to create assignment.")

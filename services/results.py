from datetime import datetime
from data.repository import ExperimentRepository, EventStore
from models.experiments import ExperimentResponse
from models.results import ExperimentResults
from services import significance
from services.aggregation import aggregate_events
from services.timeseries import build_time_series
from config import config
import logging

logger = logging.getLogger(__name__)


def calculate_results(
    repository: ExperimentRepository,
    event_store: EventStore,
    experiment_id: str,
    start_datetime: datetime | None = None,
    end_datetime: datetime | None = None,
    tz: str | None = None,
) -> ExperimentResults:
    """
    Assembles per-variant counts, the control-vs-treatment significance tests and
    the daily conversion series for an experiment.

    NotFound and UpstreamUnavailable from the repository or event store propagate unchanged.
    """
    experiment = repository.get_experiment(experiment_id)
    variants = repository.get_variants(experiment_id)
    events = event_store.get_events(experiment_id, start_datetime, end_datetime)

    results = aggregate_events(events, experiment.primary_goal, variants)

    min_sample_size = experiment.minimum_sample_size
    if min_sample_size is None:
        min_sample_size = config.min_sample_size
    significance_level = 1 - (experiment.confidence_level or 95.0) / 100

    time_series = []
    if len(results) >= 2:
        # get_variants puts the control first
        control, treatments = results[0], results[1:]
        comparisons = significance.compare_against_control(
            control,
            treatments,
            min_sample_size=min_sample_size,
            significance_level=significance_level,
        )
        primary = comparisons[0]
        time_series = build_time_series(
            events,
            control_variant_id=control.variant_id,
            treatment_variant_id=treatments[0].variant_id,
            primary_goal=experiment.primary_goal,
            tz=tz,
        )
    else:
        logger.info("experiment %s has %d variants, nothing to compare", experiment_id, len(results))
        comparisons = []
        primary = significance.insufficient_variants(
            summary="At least two variants are needed to compare conversion rates."
        )

    logger.info(
        "results for experiment %s: %d events, %d variants, significant=%s",
        experiment_id, len(events), len(results), primary.is_significant,
    )

    return ExperimentResults(
        experiment=ExperimentResponse.model_validate(experiment),
        results=results,
        statistical_significance=primary,
        comparisons=comparisons,
        time_series=time_series,
    )

"""
Two-proportion z-test used to compare a control variant with a treatment.

Every function here is pure: counts in, StatisticalSignificance out.
"""
from models.results import StatisticalSignificance, VariantResult
from errors import InvalidInput
from config import config
from scipy import stats
import math
import logging

logger = logging.getLogger(__name__)

# p-value thresholds for the confidence label, strictest first
CONFIDENCE_TIERS = (
    (0.01, "99%"),
    (0.05, "95%"),
    (0.10, "90%"),
)
NOT_SIGNIFICANT = "not significant"

INCONCLUSIVE_SUMMARY = "Not enough data to determine a statistically significant difference."
NO_VISITORS_SUMMARY = "Insufficient data: at least one variant has no visitors yet."


def conversion_rate(visitors: int, conversions: int) -> float:
    return conversions / visitors if visitors > 0 else 0.0


def normal_cdf(x: float) -> float:
    """Standard normal cumulative distribution function."""
    return float(stats.norm.cdf(x))


def two_tailed_p_value(z_score: float) -> float:
    # survival function keeps precision in the tail
    return float(2 * stats.norm.sf(abs(z_score)))


def confidence_label(p_value: float) -> str:
    for threshold, label in CONFIDENCE_TIERS:
        if p_value < threshold:
            return label
    return NOT_SIGNIFICANT


def validate_counts(name: str, visitors: int, conversions: int):
    if visitors < 0 or conversions < 0:
        raise InvalidInput(f"Variant '{name}' has negative counts (visitors={visitors}, conversions={conversions}).")
    if conversions > visitors:
        raise InvalidInput(f"Variant '{name}' has more conversions ({conversions}) than visitors ({visitors}).")


def _lift(control_rate: float, treatment_rate: float) -> float | None:
    if control_rate == 0:
        return None
    return (treatment_rate - control_rate) / control_rate


def compare_variants(
    control: VariantResult,
    treatment: VariantResult,
    min_sample_size: int | None = None,
    significance_level: float | None = None,
) -> StatisticalSignificance:
    """
    Runs a pooled two-proportion z-test of treatment against control.

    The result is never significant when either variant has no visitors, when the
    pooled standard error is zero, or when the combined number of visitors is
    below min_sample_size. z_score and p_value are still reported in the last case.
    Raises InvalidInput for negative counts or conversions above visitors.
    """
    if min_sample_size is None:
        min_sample_size = config.min_sample_size
    if significance_level is None:
        significance_level = config.significance_level

    validate_counts(control.variant_name, control.visitors, control.conversions)
    validate_counts(treatment.variant_name, treatment.visitors, treatment.conversions)

    if control.visitors == 0 or treatment.visitors == 0:
        return StatisticalSignificance(
            control=control.variant_name,
            treatment=treatment.variant_name,
            z_score=0.0,
            p_value=1.0,
            is_significant=False,
            winner=None,
            confidence=NOT_SIGNIFICANT,
            lift=None,
            insufficient_data=True,
            summary=NO_VISITORS_SUMMARY,
        )

    p_control = control.conversions / control.visitors
    p_treatment = treatment.conversions / treatment.visitors
    total_visitors = control.visitors + treatment.visitors
    p_pool = (control.conversions + treatment.conversions) / total_visitors
    standard_error = math.sqrt(p_pool * (1 - p_pool) * (1 / control.visitors + 1 / treatment.visitors))

    if standard_error == 0:
        # Pooled rate of 0 or 1, the test is undefined
        z_score = 0.0
        p_value = 1.0
    else:
        z_score = (p_treatment - p_control) / standard_error
        p_value = two_tailed_p_value(z_score)

    insufficient = total_visitors < min_sample_size
    is_significant = not insufficient and standard_error > 0 and p_value < significance_level

    winner = None
    confidence = NOT_SIGNIFICANT
    summary = INCONCLUSIVE_SUMMARY
    # Tier follows p_value alone, independent of significance_level
    if not insufficient and standard_error > 0:
        confidence = confidence_label(p_value)
    if is_significant:
        if p_treatment > p_control:
            winner, other = treatment.variant_name, control.variant_name
        else:
            winner, other = control.variant_name, treatment.variant_name
        summary = f"{winner} outperforms {other} with {confidence} confidence"
    elif insufficient:
        summary = f"{INCONCLUSIVE_SUMMARY} {total_visitors} of the required {min_sample_size} visitors recorded."

    logger.debug(
        "z-test %s vs %s: z=%.4f p=%.6f significant=%s",
        control.variant_name, treatment.variant_name, z_score, p_value, is_significant,
    )

    return StatisticalSignificance(
        control=control.variant_name,
        treatment=treatment.variant_name,
        z_score=z_score,
        p_value=p_value,
        is_significant=is_significant,
        winner=winner,
        confidence=confidence,
        lift=_lift(p_control, p_treatment),
        insufficient_data=insufficient,
        summary=summary,
    )


def compare_against_control(
    control: VariantResult,
    treatments: list[VariantResult],
    min_sample_size: int | None = None,
    significance_level: float | None = None,
) -> list[StatisticalSignificance]:
    """One pairwise test per treatment, each against the same control."""
    return [
        compare_variants(control, treatment, min_sample_size=min_sample_size, significance_level=significance_level)
        for treatment in treatments
    ]


def insufficient_variants(summary: str = INCONCLUSIVE_SUMMARY, control: str = "", treatment: str = "") -> StatisticalSignificance:
    """Placeholder result for experiments that do not have two variants to compare."""
    return StatisticalSignificance(
        control=control,
        treatment=treatment,
        z_score=0.0,
        p_value=1.0,
        is_significant=False,
        winner=None,
        confidence=NOT_SIGNIFICANT,
        lift=None,
        insufficient_data=True,
        summary=summary,
    )

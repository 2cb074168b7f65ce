from collections.abc import Iterable
from data.database import Variant
from models.events import EventRecord
from models.results import VariantResult
from services.significance import conversion_rate
import logging

logger = logging.getLogger(__name__)


def _count_sessions(events: Iterable[EventRecord], primary_goal: str) -> dict[str, tuple[set[str], set[str]]]:
    """Maps variant id to (visitor sessions, converted sessions)."""
    sessions: dict[str, tuple[set[str], set[str]]] = {}
    for event in events:
        visitors, converted = sessions.setdefault(event.variant_id, (set(), set()))
        visitors.add(event.session_id)
        if event.event_type == primary_goal:
            converted.add(event.session_id)
    return sessions


def aggregate_events(
    events: Iterable[EventRecord],
    primary_goal: str,
    variants: list[Variant] | None = None,
) -> list[VariantResult]:
    """
    Counts distinct sessions per variant as visitors, and distinct sessions that
    emitted primary_goal as conversions.

    With variants given, returns one result per variant in that order (zero counts
    for variants without events) and ignores events for unknown variant ids.
    Without variants, returns one result per variant id seen, in first-seen order.
    """
    sessions = _count_sessions(events, primary_goal)

    if variants is None:
        keyed = [(variant_id, variant_id) for variant_id in sessions]
    else:
        keyed = [(v.id, v.name) for v in variants]
        unknown = set(sessions) - {v.id for v in variants}
        if unknown:
            logger.debug("ignoring events for unknown variants: %s", sorted(unknown))

    results = []
    for variant_id, name in keyed:
        visitors, converted = sessions.get(variant_id, (set(), set()))
        results.append(VariantResult(
            variant_id=variant_id,
            variant_name=name,
            visitors=len(visitors),
            conversions=len(converted),
            conversion_rate=conversion_rate(len(visitors), len(converted)),
        ))
    return results

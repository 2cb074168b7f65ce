from collections.abc import Iterable
from datetime import date, datetime, timedelta, timezone, tzinfo
from zoneinfo import ZoneInfo
from models.events import EventRecord
from models.results import TimeSeriesPoint
from services.significance import conversion_rate
from config import config


def _local_day(timestamp: datetime, tz: tzinfo) -> date:
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    return timestamp.astimezone(tz).date()


def build_time_series(
    events: Iterable[EventRecord],
    control_variant_id: str,
    treatment_variant_id: str,
    primary_goal: str,
    tz: tzinfo | str | None = None,
) -> list[TimeSeriesPoint]:
    """
    Daily conversion rate of control and treatment, bucketed by calendar day in tz
    (config.results_timezone by default, naive timestamps are read as UTC).

    Days are contiguous from the first to the last day with events; a variant
    with no visitors on a day reports a rate of 0.
    """
    if tz is None:
        tz = config.results_timezone
    if isinstance(tz, str):
        tz = ZoneInfo(tz)

    tracked = (control_variant_id, treatment_variant_id)
    # (day, variant id) -> (visitor sessions, converted sessions)
    buckets: dict[tuple[date, str], tuple[set[str], set[str]]] = {}
    for event in events:
        if event.variant_id not in tracked:
            continue
        day = _local_day(event.timestamp, tz)
        visitors, converted = buckets.setdefault((day, event.variant_id), (set(), set()))
        visitors.add(event.session_id)
        if event.event_type == primary_goal:
            converted.add(event.session_id)

    if not buckets:
        return []

    def rate(day: date, variant_id: str) -> float:
        visitors, converted = buckets.get((day, variant_id), (set(), set()))
        return conversion_rate(len(visitors), len(converted))

    days = [day for day, _ in buckets]
    first, last = min(days), max(days)
    series = []
    day = first
    while day <= last:
        series.append(TimeSeriesPoint(
            date=day,
            control_rate=rate(day, control_variant_id),
            treatment_rate=rate(day, treatment_variant_id),
        ))
        day += timedelta(days=1)
    return series

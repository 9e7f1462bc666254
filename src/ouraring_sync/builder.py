"""Build the desired block tree for one day of Oura data.

The tree is always shaped the same way::

    #ouraring [[June 1st, 2025]] sleep: 82 / readiness: 90
        oura-date:: 2025-06-01
        Sleep
            Score: 82
            ...
            Contributors
                Deep sleep: 90
        Readiness
        Activity
        Heart rate
        Workouts
        Tags

Rows inside a section follow the fixed field tables below, never the
order the API returned fields in. A section with no displayable rows is
left out entirely.
"""

import logging
from typing import Callable, Sequence, TypeVar

from .constants import HEADER_TAG, ISO_DATE_PATTERN, OURA_DATE_PROPERTY
from .formatters import (
    EN_DASH,
    calculate_duration,
    format_activity_name,
    format_bedtime,
    format_daily_note_date,
    format_distance,
    format_heart_rate,
    format_minutes_from_seconds,
    format_number,
    format_percentage,
    format_tag_time,
    format_tag_type,
    format_temperature,
    format_time,
    format_timestamp,
    is_valid_number,
)
from .models import (
    BlockNode,
    DailyOuraData,
    OuraActivity,
    OuraHeartRateSample,
    OuraReadiness,
    OuraReadinessContributors,
    OuraSleep,
    OuraSleepContributors,
    OuraTag,
    OuraWorkout,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")
FieldTable = Sequence[tuple[str, Callable[[T], str | None]]]

CONTRIBUTORS_LABEL = "Contributors"

SLEEP_FIELDS: FieldTable[OuraSleep] = (
    ("Score", lambda s: format_number(s.score)),
    ("Bedtime", lambda s: format_bedtime(s.bedtime_start, s.bedtime_end)),
    ("Total sleep", lambda s: format_minutes_from_seconds(s.total_sleep_duration)),
    ("Time in bed", lambda s: format_minutes_from_seconds(s.time_in_bed)),
    ("Deep sleep", lambda s: format_minutes_from_seconds(s.deep_sleep_duration)),
    ("REM sleep", lambda s: format_minutes_from_seconds(s.rem_sleep_duration)),
    ("Light sleep", lambda s: format_minutes_from_seconds(s.light_sleep_duration)),
    ("Awake time", lambda s: format_minutes_from_seconds(s.awake_time)),
    ("Efficiency", lambda s: format_percentage(s.efficiency)),
    ("Latency", lambda s: format_minutes_from_seconds(s.latency)),
    ("Restless periods", lambda s: format_number(s.restless_periods)),
    ("Avg HR", lambda s: format_heart_rate(s.average_hr, s.lowest_hr)),
    ("Avg HRV", lambda s: format_number(s.average_hrv, "ms")),
)

SLEEP_CONTRIBUTOR_FIELDS: FieldTable[OuraSleepContributors] = (
    ("Deep sleep", lambda c: format_number(c.deep_sleep)),
    ("Efficiency", lambda c: format_number(c.efficiency)),
    ("Latency", lambda c: format_number(c.latency)),
    ("REM sleep", lambda c: format_number(c.rem_sleep)),
    ("Restfulness", lambda c: format_number(c.restfulness)),
    ("Timing", lambda c: format_number(c.timing)),
    ("Total sleep", lambda c: format_number(c.total_sleep)),
)

READINESS_FIELDS: FieldTable[OuraReadiness] = (
    ("Score", lambda r: format_number(r.score)),
    ("Temperature deviation", lambda r: format_temperature(r.temperature_deviation)),
    ("Temperature trend", lambda r: format_temperature(r.temperature_trend_deviation)),
    ("Activity balance", lambda r: format_number(r.score_activity_balance)),
    ("Sleep balance", lambda r: format_number(r.score_sleep_balance)),
    ("Previous day", lambda r: format_number(r.score_previous_day)),
    ("Recovery index", lambda r: format_number(r.score_recovery_index)),
    ("Resting HR", lambda r: format_number(r.score_resting_hr)),
    ("HRV balance", lambda r: format_number(r.score_hrv_balance)),
)

READINESS_CONTRIBUTOR_FIELDS: FieldTable[OuraReadinessContributors] = (
    ("Activity balance", lambda c: format_number(c.activity_balance)),
    ("Body temperature", lambda c: format_number(c.body_temperature)),
    ("HRV balance", lambda c: format_number(c.hrv_balance)),
    ("Previous day activity", lambda c: format_number(c.previous_day_activity)),
    ("Previous night", lambda c: format_number(c.previous_night)),
    ("Recovery index", lambda c: format_number(c.recovery_index)),
    ("Resting heart rate", lambda c: format_number(c.resting_heart_rate)),
    ("Sleep balance", lambda c: format_number(c.sleep_balance)),
)

ACTIVITY_FIELDS: FieldTable[OuraActivity] = (
    ("Score", lambda a: format_number(a.score)),
    ("Steps", lambda a: format_number(a.steps)),
    ("Daily movement", lambda a: format_distance(a.daily_movement)),
    ("Distance", lambda a: format_distance(a.equivalent_walking_distance)),
    ("Active calories", lambda a: format_number(a.active_calories, "kcal")),
    ("Total calories", lambda a: format_number(a.total_calories, "kcal")),
    ("Target calories", lambda a: format_number(a.target_calories, "kcal")),
    ("High activity", lambda a: format_minutes_from_seconds(a.high_activity_time)),
    ("Medium activity", lambda a: format_minutes_from_seconds(a.medium_activity_time)),
    ("Low activity", lambda a: format_minutes_from_seconds(a.low_activity_time)),
    ("Sedentary time", lambda a: format_minutes_from_seconds(a.sedentary_time)),
    ("Resting time", lambda a: format_minutes_from_seconds(a.resting_time)),
    ("Non-wear time", lambda a: format_minutes_from_seconds(a.non_wear_time)),
    ("High activity MET", lambda a: format_number(a.high_activity_met_minutes, "min")),
    ("Medium activity MET", lambda a: format_number(a.medium_activity_met_minutes, "min")),
    ("Low activity MET", lambda a: format_number(a.low_activity_met_minutes, "min")),
    ("Target meters", lambda a: format_distance(a.target_meters)),
    ("Meters to target", lambda a: format_distance(a.meters_to_target)),
    ("Inactivity alerts", lambda a: format_number(a.inactivity_alerts)),
)


def _labels(fields: FieldTable) -> frozenset[str]:
    return frozenset(label for label, _ in fields)


# "Label: value" rows the builder can emit, by the path of section keys
# they sit under. A row is only ours inside a section that emits its label.
SECTION_ROW_LABELS: dict[tuple[str, ...], frozenset[str]] = {
    ("Sleep",): _labels(SLEEP_FIELDS),
    ("Sleep", CONTRIBUTORS_LABEL): _labels(SLEEP_CONTRIBUTOR_FIELDS),
    ("Readiness",): _labels(READINESS_FIELDS),
    ("Readiness", CONTRIBUTORS_LABEL): _labels(READINESS_CONTRIBUTOR_FIELDS),
    ("Activity",): _labels(ACTIVITY_FIELDS),
}


def _rows(record: T, fields: FieldTable[T]) -> list[BlockNode]:
    rows = []
    for label, render in fields:
        value = render(record)
        if value:
            rows.append(BlockNode(text=f"{label}: {value}"))
    return rows


def _contributors(record: T | None, fields: FieldTable[T]) -> BlockNode | None:
    if record is None:
        return None
    rows = _rows(record, fields)
    return BlockNode(text=CONTRIBUTORS_LABEL, children=rows) if rows else None


def _section(name: str, rows: list[BlockNode]) -> BlockNode | None:
    return BlockNode(text=name, children=rows) if rows else None


def build_sleep_node(sessions: list[OuraSleep]) -> BlockNode | None:
    if not sessions:
        return None
    primary = sessions[0]
    rows = _rows(primary, SLEEP_FIELDS)
    contributors = _contributors(primary.contributors, SLEEP_CONTRIBUTOR_FIELDS)
    if contributors:
        rows.append(contributors)
    return _section("Sleep", rows)


def build_readiness_node(entries: list[OuraReadiness]) -> BlockNode | None:
    if not entries:
        return None
    primary = entries[0]
    rows = _rows(primary, READINESS_FIELDS)
    contributors = _contributors(primary.contributors, READINESS_CONTRIBUTOR_FIELDS)
    if contributors:
        rows.append(contributors)
    return _section("Readiness", rows)


def build_activity_node(entries: list[OuraActivity]) -> BlockNode | None:
    if not entries:
        return None
    return _section("Activity", _rows(entries[0], ACTIVITY_FIELDS))


def summarize_heart_rate(samples: list[OuraHeartRateSample]) -> dict[str, int | float]:
    """Min, max and rounded mean of the valid bpm values (empty dict when none)."""
    values = [s.bpm for s in samples if is_valid_number(s.bpm)]
    if not values:
        return {}
    return {
        "min": min(values),
        "max": max(values),
        "average": int(sum(values) / len(values) + 0.5),
    }


def build_heart_rate_node(samples: list[OuraHeartRateSample]) -> BlockNode | None:
    summary = summarize_heart_rate(samples)
    if not summary:
        return None
    parts = [
        format_number(summary["average"], "bpm avg"),
        f"min {format_number(summary['min'])}",
        f"max {format_number(summary['max'])}",
    ]
    return _section("Heart rate", [BlockNode(text=" / ".join(parts))])


def format_workout_line(workout: OuraWorkout) -> str:
    start = format_time(workout.start_datetime)
    parts: list[str] = []
    duration = calculate_duration(workout.start_datetime, workout.end_datetime)
    if duration:
        parts.append(duration)
    calories = format_number(workout.calories, "kcal")
    if calories:
        parts.append(calories)
    distance = format_distance(workout.distance)
    if distance:
        parts.append(distance)
    if workout.intensity:
        parts.append(workout.intensity)
    if workout.source:
        parts.append(f"via {workout.source}")

    activity = format_activity_name(workout.activity or workout.sport or workout.label or "Workout")
    details = f" ({', '.join(parts)})" if parts else ""
    # Time slot is kept when empty: " – Running (200 kcal)"
    return f"{start} {EN_DASH} {activity}{details}"


def format_tag_line(tag: OuraTag) -> str:
    time = format_tag_time(tag.start_time) or format_timestamp(tag.timestamp)

    if tag.custom_name:
        display = f"[[{format_tag_type(tag.custom_name)}]]"
    elif tag.tags:
        display = " ".join(f"[[{format_tag_type(t)}]]" for t in tag.tags)
    elif tag.tag_type_code and tag.tag_type_code != "custom":
        display = f"[[{format_tag_type(tag.tag_type_code)}]]"
    elif tag.text:
        display = f"[[{format_tag_type(tag.text)}]]"
    else:
        display = "[[Tag]]"

    comment = f" {EN_DASH} {tag.comment}" if tag.comment else ""
    return f"{time} {EN_DASH} {display}{comment}" if time else f"{display}{comment}"


def build_workouts_node(workouts: list[OuraWorkout]) -> BlockNode | None:
    return _section("Workouts", [BlockNode(text=format_workout_line(w)) for w in workouts])


def build_tags_node(tags: list[OuraTag]) -> BlockNode | None:
    return _section("Tags", [BlockNode(text=format_tag_line(t)) for t in tags])


def build_header_text(data: DailyOuraData) -> str:
    sleep_score = data.sleep[0].score if data.sleep else None
    readiness_score = data.readiness[0].score if data.readiness else None

    scores: list[str] = []
    if is_valid_number(sleep_score):
        scores.append(f"sleep: {format_number(sleep_score)}")
    if is_valid_number(readiness_score):
        scores.append(f"readiness: {format_number(readiness_score)}")

    suffix = f" {' / '.join(scores)}" if scores else ""
    return f"{HEADER_TAG} [[{format_daily_note_date(data.date)}]]{suffix}"


def build_daily_block(data: DailyOuraData) -> BlockNode | None:
    """Build the full day block, or ``None`` when the date is malformed."""
    if not ISO_DATE_PATTERN.match(data.date):
        logger.warning(f"Skipping day with invalid date: {data.date!r}")
        return None
    try:
        header = build_header_text(data)
    except ValueError:
        # Matches the pattern but is not a real calendar day (e.g. 2025-02-30)
        logger.warning(f"Skipping day with invalid date: {data.date!r}")
        return None

    children = [BlockNode(text=f"{OURA_DATE_PROPERTY}:: {data.date}")]
    sections = (
        build_sleep_node(data.sleep),
        build_readiness_node(data.readiness),
        build_activity_node(data.activity),
        build_heart_rate_node(data.heartrate),
        build_workouts_node(data.workouts),
        build_tags_node(data.tags),
    )
    children.extend(section for section in sections if section is not None)
    return BlockNode(text=header, children=children)

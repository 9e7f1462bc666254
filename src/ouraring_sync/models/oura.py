"""Oura API v2 record models.

Each collection gets its own model with the fields we render spelled out.
Unknown fields coming back from the API are dropped on validation; the
contributor breakdowns are the only nested bags and they are modelled
explicitly too.
"""

from pydantic import BaseModel, ConfigDict, Field

# Keep integers as integers so scores render as "82", not "82.0"
Number = int | float


class OuraRecord(BaseModel):
    """Common base: tolerate fields we do not know about."""

    model_config = ConfigDict(extra="ignore")

    id: str | None = None


class OuraSleepContributors(BaseModel):
    model_config = ConfigDict(extra="ignore")

    deep_sleep: Number | None = None
    efficiency: Number | None = None
    latency: Number | None = None
    rem_sleep: Number | None = None
    restfulness: Number | None = None
    timing: Number | None = None
    total_sleep: Number | None = None


class OuraSleep(OuraRecord):
    """One entry of /daily_sleep."""

    day: str
    score: Number | None = None
    timestamp: str | None = None
    contributors: OuraSleepContributors | None = None
    efficiency: Number | None = None
    total_sleep_duration: Number | None = None
    time_in_bed: Number | None = None
    average_hr: Number | None = None
    lowest_hr: Number | None = None
    bedtime_start: str | None = None
    bedtime_end: str | None = None
    awake_time: Number | None = None
    deep_sleep_duration: Number | None = None
    light_sleep_duration: Number | None = None
    rem_sleep_duration: Number | None = None
    restless_periods: Number | None = None
    average_hrv: Number | None = None
    latency: Number | None = None


class OuraReadinessContributors(BaseModel):
    model_config = ConfigDict(extra="ignore")

    activity_balance: Number | None = None
    body_temperature: Number | None = None
    hrv_balance: Number | None = None
    previous_day_activity: Number | None = None
    previous_night: Number | None = None
    recovery_index: Number | None = None
    resting_heart_rate: Number | None = None
    sleep_balance: Number | None = None


class OuraReadiness(OuraRecord):
    """One entry of /daily_readiness."""

    day: str
    score: Number | None = None
    timestamp: str | None = None
    temperature_deviation: Number | None = None
    temperature_trend_deviation: Number | None = None
    contributors: OuraReadinessContributors | None = None
    # Older API payloads carry the component scores at top level
    score_activity_balance: Number | None = None
    score_sleep_balance: Number | None = None
    score_previous_day: Number | None = None
    score_previous_night: Number | None = None
    score_recovery_index: Number | None = None
    score_resting_hr: Number | None = None
    score_hrv_balance: Number | None = None


class OuraActivity(OuraRecord):
    """One entry of /daily_activity."""

    day: str
    score: Number | None = None
    timestamp: str | None = None
    steps: Number | None = None
    daily_movement: Number | None = None
    equivalent_walking_distance: Number | None = None
    active_calories: Number | None = None
    total_calories: Number | None = None
    target_calories: Number | None = None
    high_activity_time: Number | None = None
    medium_activity_time: Number | None = None
    low_activity_time: Number | None = None
    sedentary_time: Number | None = None
    resting_time: Number | None = None
    non_wear_time: Number | None = None
    average_met_minutes: Number | None = None
    high_activity_met_minutes: Number | None = None
    medium_activity_met_minutes: Number | None = None
    low_activity_met_minutes: Number | None = None
    sedentary_met_minutes: Number | None = None
    meters_to_target: Number | None = None
    target_meters: Number | None = None
    inactivity_alerts: Number | None = None


class OuraHeartRateSample(BaseModel):
    """One sample of /heartrate."""

    model_config = ConfigDict(extra="ignore")

    bpm: Number | None = None
    source: str | None = None
    timestamp: str | None = None


class OuraWorkout(OuraRecord):
    """One entry of /workout."""

    day: str | None = None
    activity: str | None = None
    sport: str | None = None
    label: str | None = None
    start_datetime: str | None = None
    end_datetime: str | None = None
    calories: Number | None = None
    distance: Number | None = None
    intensity: str | None = None
    source: str | None = None


class OuraTag(OuraRecord):
    """One entry of /enhanced_tag."""

    day: str | None = None
    start_day: str | None = None
    end_day: str | None = None
    start_time: str | None = None
    end_time: str | None = None
    tag_type_code: str | None = None
    custom_name: str | None = None
    comment: str | None = None
    timestamp: str | None = None
    text: str | None = None
    tags: list[str] | None = None


class OuraBatch(BaseModel):
    """Raw collections for a date range, before grouping by day."""

    sleep: list[OuraSleep] = Field(default_factory=list)
    readiness: list[OuraReadiness] = Field(default_factory=list)
    activity: list[OuraActivity] = Field(default_factory=list)
    heartrate: list[OuraHeartRateSample] = Field(default_factory=list)
    workouts: list[OuraWorkout] = Field(default_factory=list)
    tags: list[OuraTag] = Field(default_factory=list)


class DailyOuraData(OuraBatch):
    """All collections that belong to one calendar day (YYYY-MM-DD)."""

    date: str

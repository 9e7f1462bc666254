"""Oura API v2 client: the remote data provider.

Collections are paginated with ``next_token``. Dates are fetched in
chunks of at most ``max_days_per_request`` days because single-day
ranges are unreliable on some endpoints, then regrouped per day.
"""

import asyncio
import logging
import re
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel

from ..constants import MAX_DAYS_PER_REQUEST
from ..models import (
    DailyOuraData,
    OuraActivity,
    OuraBatch,
    OuraConfiguration,
    OuraHeartRateSample,
    OuraReadiness,
    OuraSleep,
    OuraTag,
    OuraWorkout,
)
from .base import APIClientBase

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", bound=BaseModel)

_DATE_PREFIX = re.compile(r"^(\d{4}-\d{2}-\d{2})")


def extract_date_from_timestamp(timestamp: str | None) -> str | None:
    """``2025-10-29T14:30:00.000-03:00`` -> ``2025-10-29``."""
    if not timestamp:
        return None
    match = _DATE_PREFIX.match(timestamp)
    return match.group(1) if match else None


def split_dates_into_chunks(dates: list[str], max_size: int = MAX_DAYS_PER_REQUEST) -> list[list[str]]:
    return [dates[i:i + max_size] for i in range(0, len(dates), max_size)]


def group_by_date(batch: OuraBatch, dates: list[str]) -> dict[str, DailyOuraData]:
    """Split a batch into one ``DailyOuraData`` per requested date.

    Records for dates that were not requested are dropped.
    """
    result = {d: DailyOuraData(date=d) for d in dates}

    def bucket(day: str | None) -> DailyOuraData | None:
        return result.get(day) if day else None

    for item in batch.sleep:
        if data := bucket(item.day):
            data.sleep.append(item)
    for item in batch.readiness:
        if data := bucket(item.day):
            data.readiness.append(item)
    for item in batch.activity:
        if data := bucket(item.day):
            data.activity.append(item)
    for item in batch.workouts:
        if data := bucket(item.day or extract_date_from_timestamp(item.start_datetime)):
            data.workouts.append(item)
    for item in batch.heartrate:
        if data := bucket(extract_date_from_timestamp(item.timestamp)):
            data.heartrate.append(item)
    for item in batch.tags:
        if data := bucket(item.start_day or item.day or extract_date_from_timestamp(item.timestamp)):
            data.tags.append(item)

    return result


class OuraClient(APIClientBase):
    """Async client for the ``/v2/usercollection`` endpoints."""

    def __init__(
        self,
        config: OuraConfiguration,
        transport: httpx.AsyncBaseTransport | None = None,
        base_delay: float = 1.0,
        max_days_per_request: int = MAX_DAYS_PER_REQUEST,
    ):
        super().__init__(transport=transport, base_delay=base_delay)
        self.config = config
        self.base_url = config.base_url
        self.timeout = config.timeout
        self.max_retries = config.max_retries
        self.max_days_per_request = max_days_per_request

    @property
    def headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.config.token.get_secret_value()}",
            "Accept": "application/json",
        }

    async def fetch_collection(self, path: str, params: dict[str, str], model: type[RecordT]) -> list[RecordT]:
        """All pages of one collection, validated into ``model``."""
        items: list[RecordT] = []
        next_token: str | None = None

        while True:
            query = dict(params)
            if next_token:
                query["next_token"] = next_token
            data: dict[str, Any] = await self._request("GET", path, path, params=query)

            page = data.get("data") if isinstance(data, dict) else None
            page = page if isinstance(page, list) else []
            items.extend(model.model_validate(raw) for raw in page)
            next_token = data.get("next_token") if isinstance(data, dict) else None
            logger.debug(f"Fetched {len(page)} records from {path} (next_token={next_token})")
            if not next_token:
                return items

    async def fetch_batch(self, start_date: str, end_date: str) -> OuraBatch:
        """The six collections for ``start_date``..``end_date`` (inclusive), fetched concurrently."""
        logger.debug(f"Fetching Oura batch {start_date}..{end_date}")
        days = {"start_date": start_date, "end_date": end_date}

        sleep, readiness, activity, workouts, heartrate, tags = await asyncio.gather(
            self.fetch_collection("/daily_sleep", days, OuraSleep),
            self.fetch_collection("/daily_readiness", days, OuraReadiness),
            self.fetch_collection("/daily_activity", days, OuraActivity),
            self.fetch_collection("/workout", days, OuraWorkout),
            self.fetch_collection(
                "/heartrate",
                {"start_datetime": f"{start_date}T00:00:00Z", "end_datetime": f"{end_date}T23:59:59Z"},
                OuraHeartRateSample,
            ),
            # /tag is deprecated upstream
            self.fetch_collection("/enhanced_tag", days, OuraTag),
        )

        batch = OuraBatch(
            sleep=sleep,
            readiness=readiness,
            activity=activity,
            heartrate=heartrate,
            workouts=workouts,
            tags=tags,
        )
        logger.debug(
            f"Fetched Oura batch {start_date}..{end_date}: sleep={len(sleep)} readiness={len(readiness)} "
            f"activity={len(activity)} workouts={len(workouts)} heartrate={len(heartrate)} tags={len(tags)}"
        )
        return batch

    async def fetch_all_daily_data(self, dates: list[str]) -> dict[str, DailyOuraData]:
        """Per-day data for every requested date (empty days included)."""
        if not dates:
            return {}

        results: dict[str, DailyOuraData] = {}
        for chunk in split_dates_into_chunks(sorted(dates), self.max_days_per_request):
            batch = await self.fetch_batch(chunk[0], chunk[-1])
            results.update(group_by_date(batch, chunk))

        logger.debug(f"Fetched Oura data for {len(results)} day(s)")
        return results

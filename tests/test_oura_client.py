import asyncio

import httpx
import pytest
from pydantic import SecretStr

from ouraring_sync.client import OuraClient
from ouraring_sync.client.oura import extract_date_from_timestamp, group_by_date, split_dates_into_chunks
from ouraring_sync.models import (
    AuthenticationError,
    NetworkError,
    OuraBatch,
    OuraConfiguration,
    OuraHeartRateSample,
    OuraSleep,
    OuraTag,
    OuraWorkout,
)


def make_client(handler, max_retries=3, **kwargs):
    config = OuraConfiguration(token=SecretStr("oura-token"), max_retries=max_retries)
    return OuraClient(config, transport=httpx.MockTransport(handler), base_delay=0, **kwargs)


def run(client, coro_factory):
    async def scenario():
        async with client:
            return await coro_factory(client)

    return asyncio.run(scenario())


class TestHelpers:
    def test_extract_date(self):
        assert extract_date_from_timestamp("2025-10-29T14:30:00.000-03:00") == "2025-10-29"
        assert extract_date_from_timestamp("garbage") is None
        assert extract_date_from_timestamp(None) is None

    def test_chunks(self):
        dates = [f"2025-06-{d:02d}" for d in range(1, 11)]
        chunks = split_dates_into_chunks(dates, 7)
        assert [len(c) for c in chunks] == [7, 3]
        assert chunks[1][0] == "2025-06-08"

    def test_group_by_date(self):
        batch = OuraBatch(
            sleep=[OuraSleep(day="2025-06-01", score=80), OuraSleep(day="2025-05-01", score=10)],
            workouts=[OuraWorkout(start_datetime="2025-06-02T07:00:00+02:00")],
            heartrate=[OuraHeartRateSample(bpm=60, timestamp="2025-06-01T03:00:00+00:00")],
            tags=[OuraTag(timestamp="2025-06-02T21:00:00+00:00"), OuraTag(start_day="2025-06-01")],
        )

        grouped = group_by_date(batch, ["2025-06-01", "2025-06-02"])

        assert [s.score for s in grouped["2025-06-01"].sleep] == [80]
        assert len(grouped["2025-06-02"].workouts) == 1
        assert len(grouped["2025-06-01"].heartrate) == 1
        assert len(grouped["2025-06-01"].tags) == len(grouped["2025-06-02"].tags) == 1
        assert "2025-05-01" not in grouped


class TestFetch:
    def test_follows_next_token(self):
        seen = []

        def handler(request):
            seen.append(dict(request.url.params))
            if "next_token" not in request.url.params:
                return httpx.Response(200, json={"data": [{"day": "2025-06-01", "score": 80}], "next_token": "abc"})
            return httpx.Response(200, json={"data": [{"day": "2025-06-02", "score": 81}], "next_token": None})

        client = make_client(handler)
        items = run(client, lambda c: c.fetch_collection("/daily_sleep", {"start_date": "2025-06-01"}, OuraSleep))

        assert [i.score for i in items] == [80, 81]
        assert seen[1] == {"start_date": "2025-06-01", "next_token": "abc"}

    def test_sends_bearer_token(self):
        def handler(request):
            assert request.headers["Authorization"] == "Bearer oura-token"
            assert request.url.path == "/v2/usercollection/daily_sleep"
            return httpx.Response(200, json={"data": []})

        assert run(make_client(handler), lambda c: c.fetch_collection("/daily_sleep", {}, OuraSleep)) == []

    def test_fetch_all_daily_data_groups_every_collection(self):
        paths = []

        def handler(request):
            path = request.url.path.rsplit("/", 1)[-1]
            paths.append((path, dict(request.url.params)))
            payloads = {
                "daily_sleep": [{"day": "2025-06-01", "score": 82}],
                "daily_readiness": [{"day": "2025-06-02", "score": 90}],
                "daily_activity": [],
                "workout": [{"day": "2025-06-01", "activity": "cycling"}],
                "heartrate": [{"bpm": 61, "timestamp": "2025-06-02T01:00:00+00:00"}],
                "enhanced_tag": [{"start_day": "2025-06-01", "tag_type_code": "tag_generic_caffeine"}],
            }
            return httpx.Response(200, json={"data": payloads[path], "next_token": None})

        client = make_client(handler)
        result = run(client, lambda c: c.fetch_all_daily_data(["2025-06-02", "2025-06-01"]))

        assert set(result) == {"2025-06-01", "2025-06-02"}
        assert result["2025-06-01"].sleep[0].score == 82
        assert result["2025-06-02"].readiness[0].score == 90
        assert result["2025-06-01"].workouts[0].activity == "cycling"
        assert result["2025-06-02"].heartrate[0].bpm == 61
        assert result["2025-06-01"].tags[0].tag_type_code == "tag_generic_caffeine"
        assert len(paths) == 6
        assert ("heartrate", {"start_datetime": "2025-06-01T00:00:00Z", "end_datetime": "2025-06-02T23:59:59Z"}) in paths
        assert ("daily_sleep", {"start_date": "2025-06-01", "end_date": "2025-06-02"}) in paths

    def test_dates_are_chunked(self):
        ranges = []

        def handler(request):
            if request.url.path.endswith("/daily_sleep"):
                ranges.append((request.url.params["start_date"], request.url.params["end_date"]))
            return httpx.Response(200, json={"data": []})

        client = make_client(handler, max_days_per_request=2)
        run(client, lambda c: c.fetch_all_daily_data(["2025-06-03", "2025-06-01", "2025-06-02"]))

        assert ranges == [("2025-06-01", "2025-06-02"), ("2025-06-03", "2025-06-03")]

    def test_unknown_fields_are_ignored(self):
        def handler(request):
            return httpx.Response(200, json={"data": [{"day": "2025-06-01", "score": 80, "brand_new": {"x": 1}}]})

        items = run(make_client(handler), lambda c: c.fetch_collection("/daily_sleep", {}, OuraSleep))
        assert items[0].score == 80


class TestErrors:
    def test_server_errors_are_retried(self):
        attempts = []

        def handler(request):
            attempts.append(1)
            if len(attempts) < 3:
                return httpx.Response(503)
            return httpx.Response(200, json={"data": []})

        run(make_client(handler), lambda c: c.fetch_collection("/daily_sleep", {}, OuraSleep))
        assert len(attempts) == 3

    def test_gives_up_after_max_retries(self):
        attempts = []

        def handler(request):
            attempts.append(1)
            return httpx.Response(500)

        with pytest.raises(NetworkError):
            run(make_client(handler, max_retries=2), lambda c: c.fetch_collection("/daily_sleep", {}, OuraSleep))
        assert len(attempts) == 2

    def test_rate_limit_honours_retry_after(self):
        attempts = []

        def handler(request):
            attempts.append(1)
            if len(attempts) == 1:
                return httpx.Response(429, headers={"Retry-After": "0"})
            return httpx.Response(200, json={"data": []})

        run(make_client(handler), lambda c: c.fetch_collection("/daily_sleep", {}, OuraSleep))
        assert len(attempts) == 2

    def test_auth_errors_are_not_retried(self):
        attempts = []

        def handler(request):
            attempts.append(1)
            return httpx.Response(401, json={"message": "bad token"})

        with pytest.raises(AuthenticationError):
            run(make_client(handler), lambda c: c.fetch_collection("/daily_sleep", {}, OuraSleep))
        assert len(attempts) == 1

    def test_transport_errors_become_network_errors(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(NetworkError):
            run(make_client(handler, max_retries=2), lambda c: c.fetch_collection("/daily_sleep", {}, OuraSleep))

import itertools

import pytest

from ouraring_sync.models import (
    DailyOuraData,
    ExistingNode,
    NetworkError,
    OuraActivity,
    OuraHeartRateSample,
    OuraReadiness,
    OuraReadinessContributors,
    OuraSleep,
    OuraSleepContributors,
    OuraTag,
    OuraWorkout,
)


class FakeRoam:
    """In-memory graph with the RoamClient coroutine surface.

    Outlines are written and read as nested lists: a plain string is a
    leaf block, ``(text, [children])`` a block with children.
    """

    def __init__(self):
        self.pages: dict[str, str] = {}
        self.text: dict[str, str] = {}
        self.children: dict[str, list[str]] = {}
        self.parent: dict[str, str] = {}
        self.calls: list[tuple] = []
        self.created_pages: list[str] = []
        self.fail_titles: set[str] = set()
        self._ids = itertools.count(1)

    # Test helpers

    def _new_uid(self) -> str:
        return f"uid{next(self._ids)}"

    def add_page(self, title: str, outline: list | None = None) -> str:
        uid = self._new_uid()
        self.pages[title] = uid
        self.children[uid] = []
        self.seed(uid, outline or [])
        return uid

    def seed(self, parent_uid: str, outline: list) -> list[str]:
        uids = []
        for item in outline:
            text, kids = (item, []) if isinstance(item, str) else item
            uid = self._insert(parent_uid, text, "last")
            self.seed(uid, kids)
            uids.append(uid)
        return uids

    def outline(self, uid: str) -> list:
        result = []
        for child in self.children.get(uid, []):
            kids = self.outline(child)
            result.append((self.text[child], kids) if kids else self.text[child])
        return result

    def uid_of(self, parent_uid: str, text: str) -> str:
        return next(uid for uid in self.children[parent_uid] if self.text[uid] == text)

    def mutations(self, kind: str | None = None) -> list[tuple]:
        return [call for call in self.calls if kind is None or call[0] == kind]

    def _insert(self, parent_uid: str, text: str, order) -> str:
        uid = self._new_uid()
        self.text[uid] = text
        self.children[uid] = []
        self.parent[uid] = parent_uid
        siblings = self.children[parent_uid]
        if order == "last":
            siblings.append(uid)
        else:
            siblings.insert(order, uid)
        return uid

    def _drop(self, uid: str) -> None:
        for child in list(self.children.get(uid, [])):
            self._drop(child)
        self.children.pop(uid, None)
        self.text.pop(uid, None)
        self.parent.pop(uid, None)

    # Host surface

    async def find_page(self, title: str) -> str | None:
        if title in self.fail_titles:
            raise NetworkError(f"write rejected for {title}")
        return self.pages.get(title)

    async def create_page(self, title: str) -> str:
        uid = self.add_page(title)
        self.created_pages.append(title)
        self.calls.append(("create_page", uid, title))
        return uid

    async def read_tree(self, uid: str) -> list[ExistingNode]:
        def build(node_uid: str, order: int) -> ExistingNode:
            return ExistingNode(
                uid=node_uid,
                text=self.text[node_uid],
                order=order,
                children=[build(c, i) for i, c in enumerate(self.children[node_uid])],
            )

        return [build(c, i) for i, c in enumerate(self.children[uid])]

    async def create_node(self, parent_uid: str, text: str, order="last") -> str:
        uid = self._insert(parent_uid, text, order)
        self.calls.append(("create", uid, parent_uid, text))
        return uid

    async def update_node(self, uid: str, text: str) -> None:
        self.text[uid] = text
        self.calls.append(("update", uid, text))

    async def delete_node(self, uid: str) -> None:
        self.children[self.parent[uid]].remove(uid)
        self._drop(uid)
        self.calls.append(("delete", uid))

    async def move_node(self, uid: str, parent_uid: str, order) -> None:
        self.children[self.parent[uid]].remove(uid)
        self.parent[uid] = parent_uid
        siblings = self.children[parent_uid]
        if order == "last":
            siblings.append(uid)
        else:
            siblings.insert(order, uid)
        self.calls.append(("move", uid, parent_uid, order))


class FakeOura:
    """Data provider returning canned days; optionally blocks on ``gate``."""

    def __init__(self, days: dict[str, DailyOuraData] | None = None):
        self.days = days or {}
        self.error: Exception | None = None
        self.gate = None
        self.requests: list[list[str]] = []

    async def fetch_all_daily_data(self, dates: list[str]) -> dict[str, DailyOuraData]:
        self.requests.append(list(dates))
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return {d: self.days.get(d, DailyOuraData(date=d)) for d in dates}


class RecordingNotifier:
    def __init__(self):
        self.messages: list[tuple[str, str]] = []

    def notify(self, message: str, level: str = "info") -> None:
        self.messages.append((level, message))


def make_day(day: str) -> DailyOuraData:
    """A day with every collection populated."""
    return DailyOuraData(
        date=day,
        sleep=[
            OuraSleep(
                day=day,
                score=82,
                total_sleep_duration=27000,
                efficiency=91,
                contributors=OuraSleepContributors(deep_sleep=90),
            )
        ],
        readiness=[
            OuraReadiness(
                day=day,
                score=90,
                temperature_deviation=0.25,
                contributors=OuraReadinessContributors(hrv_balance=80),
            )
        ],
        activity=[OuraActivity(day=day, score=75, steps=5000)],
        heartrate=[
            OuraHeartRateSample(bpm=50, timestamp=f"{day}T03:00:00+00:00"),
            OuraHeartRateSample(bpm=60, timestamp=f"{day}T09:00:00+00:00"),
            OuraHeartRateSample(bpm=120, timestamp=f"{day}T18:00:00+00:00"),
        ],
        workouts=[
            OuraWorkout(
                day=day,
                activity="cycling",
                start_datetime=f"{day}T07:00:00+02:00",
                end_datetime=f"{day}T07:45:00+02:00",
                calories=350,
                intensity="moderate",
            )
        ],
        tags=[OuraTag(start_day=day, start_time="21:30:00+02:00", tag_type_code="tag_generic_caffeine")],
    )


@pytest.fixture
def roam():
    return FakeRoam()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def sample_day():
    return make_day("2025-06-01")

"""Sync orchestrator.

One sync run: take the writer role, refresh settings, fetch every
requested day from Oura in one go, then for each day (most recent first)
build the desired block, locate or create the day's page and reconcile.
A failing day is logged and skipped; only a failed fetch aborts the run.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Literal, Protocol

from .builder import build_daily_block
from .config import set_debug_logging
from .constants import ISO_DATE_PATTERN
from .graph_settings import SyncSettings, load_graph_settings
from .models import (
    BlockNode,
    DailyOuraData,
    OuraSyncError,
    ReconcileStats,
    SyncInProgressError,
    SyncReport,
    SyncTrigger,
)
from .reconcile import BlockReconciler, HostDocument

logger = logging.getLogger(__name__)

NoticeLevel = Literal["info", "warning", "success", "error"]

IN_PROGRESS_NOTICE = "Sync is already in progress."
MISSING_TOKEN_NOTICE = "Please add your Oura token in the extension settings."
STARTED_NOTICE = "Syncing Oura data..."


class StatusNotifier(Protocol):
    def notify(self, message: str, level: NoticeLevel = "info") -> None: ...


class LoggingNotifier:
    """Status notices written to a dedicated logger."""

    _LEVELS = {
        "info": logging.INFO,
        "success": logging.INFO,
        "warning": logging.WARNING,
        "error": logging.ERROR,
    }

    def __init__(self, name: str = "ouraring_sync.status"):
        self._logger = logging.getLogger(name)
        self.last: tuple[NoticeLevel, str] | None = None

    def notify(self, message: str, level: NoticeLevel = "info") -> None:
        self.last = (level, message)
        self._logger.log(self._LEVELS.get(level, logging.INFO), message)


class DataProvider(Protocol):
    async def fetch_all_daily_data(self, dates: list[str]) -> dict[str, DailyOuraData]: ...


class PageStore(HostDocument, Protocol):
    async def find_page(self, title: str) -> str | None: ...

    async def create_page(self, title: str) -> str: ...


@dataclass
class SyncRun:
    """State of the sync currently holding the writer role."""

    trigger: SyncTrigger
    settings: SyncSettings
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class SyncSession:
    """Single-writer guard. ``start`` never awaits, so check-and-set is atomic."""

    def __init__(self) -> None:
        self._current: SyncRun | None = None

    @property
    def current(self) -> SyncRun | None:
        return self._current

    @property
    def in_progress(self) -> bool:
        return self._current is not None

    def start(self, trigger: SyncTrigger, settings: SyncSettings) -> SyncRun:
        if self._current is not None:
            raise SyncInProgressError(
                f"{self._current.trigger} sync running since {self._current.started_at.isoformat()}"
            )
        self._current = SyncRun(trigger=trigger, settings=settings)
        return self._current

    def end(self, run: SyncRun) -> None:
        if self._current is run:
            self._current = None


def build_date_range(days: int, today: date) -> list[str]:
    """``days`` ISO dates ending at ``today``, most recent first."""
    return [(today - timedelta(days=offset)).isoformat() for offset in range(max(days, 1))]


def page_title(prefix: str, day: str) -> str:
    return f"{prefix}/{day}"


class SyncOrchestrator:
    """Drives fetch, build and reconcile for a range of days."""

    def __init__(
        self,
        oura: DataProvider | None,
        roam: PageStore,
        settings: SyncSettings,
        reconciler: BlockReconciler | None = None,
        notifier: StatusNotifier | None = None,
        session: SyncSession | None = None,
        use_graph_settings: bool = True,
        today: Callable[[], date] = date.today,
    ):
        self.oura = oura
        self.roam = roam
        self.settings = settings
        self.reconciler = reconciler or BlockReconciler(roam)
        self.notifier = notifier or LoggingNotifier()
        self.session = session or SyncSession()
        self.use_graph_settings = use_graph_settings
        self.today = today
        self.last_report: SyncReport | None = None

    @property
    def in_progress(self) -> bool:
        return self.session.in_progress

    async def sync(self, trigger: SyncTrigger = "manual", days: int | None = None) -> SyncReport:
        """Run one sync. Never raises for expected failures; see ``SyncReport``."""
        try:
            run = self.session.start(trigger, self.settings)
        except SyncInProgressError as e:
            logger.info(f"Rejected {trigger} sync: {e}")
            if trigger == "manual":
                self.notifier.notify(IN_PROGRESS_NOTICE, "warning")
            return SyncReport(status="rejected", trigger=trigger, message=IN_PROGRESS_NOTICE)

        try:
            report = await self._run(run, days)
        finally:
            self.session.end(run)

        report.finished_at = datetime.now(timezone.utc)
        self.last_report = report
        return report

    async def _run(self, run: SyncRun, days: int | None) -> SyncReport:
        manual = run.trigger == "manual"
        report = SyncReport(status="success", trigger=run.trigger, started_at=run.started_at)

        if self.oura is None:
            logger.info(f"Skipping {run.trigger} sync: no Oura token configured")
            if manual:
                self.notifier.notify(MISSING_TOKEN_NOTICE, "warning")
            report.status = "skipped"
            report.message = MISSING_TOKEN_NOTICE
            return report

        if manual:
            self.notifier.notify(STARTED_NOTICE, "info")

        await self._refresh_settings(run)
        report.dates = build_date_range(days or run.settings.days_to_sync, self.today())

        try:
            daily = await self.oura.fetch_all_daily_data(report.dates)
        except Exception as e:  # noqa: BLE001
            logger.error(f"Failed to fetch Oura data: {e}", exc_info=True)
            report.status = "failed"
            report.message = f"Failed to sync Oura data: {e}"
            # Auto syncs never interrupt the user
            if manual:
                self.notifier.notify(report.message, "error")
            return report

        for day in report.dates:
            data = daily.get(day) or DailyOuraData(date=day)
            try:
                stats = await self.sync_day(run, data)
            except Exception as e:  # noqa: BLE001
                logger.error(f"Failed to sync {day}: {e}", exc_info=True)
                report.failed_dates[day] = str(e)
                continue
            if stats is None:
                report.skipped_dates.append(day)
                continue
            report.synced_dates.append(day)
            report.stats = report.stats.merge(stats)

        report.message = f"Synced Oura data for {len(report.synced_dates)} day(s)."
        if report.failed_dates:
            report.message += f" {len(report.failed_dates)} day(s) failed."

        logger.info(f"{run.trigger} sync completed: {report.message} {report.stats.model_dump()}")
        if manual:
            self.notifier.notify(report.message, "warning" if report.failed_dates else "success")
        return report

    async def _refresh_settings(self, run: SyncRun) -> None:
        if self.use_graph_settings:
            try:
                overrides = await load_graph_settings(self.roam)
            except OuraSyncError as e:
                logger.warning(f"Could not read graph settings, using configured values: {e}")
            else:
                run.settings = overrides.apply(run.settings)
        set_debug_logging(run.settings.enable_debug_logs)
        logger.debug(f"Sync settings: {run.settings}")

    async def sync_day(self, run: SyncRun, data: DailyOuraData) -> ReconcileStats | None:
        """Write one day's page. ``None`` when the day could not be built."""
        block = build_daily_block(data)
        if block is None:
            return None

        title = page_title(run.settings.page_prefix, data.date)
        page_uid = await self.roam.find_page(title)
        if page_uid is None:
            page_uid = await self.roam.create_page(title)
            await asyncio.sleep(self.reconciler.settle_delay)
            stats = await self.reconciler.reconcile(page_uid, [block], existing=[])
        else:
            stats = await self.reconciler.reconcile(page_uid, [block])

        logger.info(f"Wrote page {title!r}: {stats.model_dump()}")
        return stats

    async def preview_day(self, day: str) -> BlockNode | None:
        """Desired block for ``day`` without touching the graph."""
        if self.oura is None:
            raise ValueError(MISSING_TOKEN_NOTICE)
        if not ISO_DATE_PATTERN.match(day):
            return build_daily_block(DailyOuraData(date=day))
        daily = await self.oura.fetch_all_daily_data([day])
        return build_daily_block(daily.get(day) or DailyOuraData(date=day))

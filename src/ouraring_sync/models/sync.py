"""Sync run result returned to callers and kept as the last known status."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from .blocks import ReconcileStats

SyncTrigger = Literal["manual", "auto"]
SyncStatus = Literal["success", "failed", "rejected", "skipped"]


class SyncReport(BaseModel):
    """Outcome of one ``SyncOrchestrator.sync`` call.

    ``rejected`` means another sync held the writer role, ``skipped`` that
    nothing could run (no token). ``failed`` is only used when the sync
    as a whole aborted; single-day failures land in ``failed_dates``.
    """

    status: SyncStatus
    trigger: SyncTrigger
    dates: list[str] = Field(default_factory=list)
    synced_dates: list[str] = Field(default_factory=list)
    skipped_dates: list[str] = Field(default_factory=list)
    failed_dates: dict[str, str] = Field(default_factory=dict)
    stats: ReconcileStats = Field(default_factory=ReconcileStats)
    message: str | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None

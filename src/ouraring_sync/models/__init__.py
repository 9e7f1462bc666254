"""Data models for the Oura -> Roam sync."""

from .blocks import BlockNode, ExistingNode, ReconcileStats
from .config import OuraConfiguration, RoamConfiguration
from .errors import (
    AuthenticationError,
    NetworkError,
    NotFoundError,
    OuraSyncError,
    RateLimitError,
    SyncInProgressError,
    TimeoutError,
)
from .oura import (
    DailyOuraData,
    OuraActivity,
    OuraBatch,
    OuraHeartRateSample,
    OuraReadiness,
    OuraReadinessContributors,
    OuraSleep,
    OuraSleepContributors,
    OuraTag,
    OuraWorkout,
)
from .sync import SyncReport, SyncStatus, SyncTrigger

__all__ = [
    # Blocks
    "BlockNode",
    "ExistingNode",
    "ReconcileStats",
    # Config
    "OuraConfiguration",
    "RoamConfiguration",
    # Errors
    "AuthenticationError",
    "NetworkError",
    "NotFoundError",
    "OuraSyncError",
    "RateLimitError",
    "SyncInProgressError",
    "TimeoutError",
    # Oura records
    "DailyOuraData",
    "OuraActivity",
    "OuraBatch",
    "OuraHeartRateSample",
    "OuraReadiness",
    "OuraReadinessContributors",
    "OuraSleep",
    "OuraSleepContributors",
    "OuraTag",
    "OuraWorkout",
    # Sync
    "SyncReport",
    "SyncStatus",
    "SyncTrigger",
]

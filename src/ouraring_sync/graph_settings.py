"""Per-graph overrides read from the ``roam/js/ouraring`` page.

Layout of the page (values live in the first child)::

    Page Prefix
        ouraring
    Days to Sync
        7
    Enable Debug Logs

``Enable Debug Logs`` is a flag: its presence turns debug logging on.
The Oura token is never read from the graph.
"""

import logging
import re
from dataclasses import dataclass, replace
from typing import Protocol, Sequence

from .constants import CONFIG_PAGE_TITLE
from .models import ExistingNode

logger = logging.getLogger(__name__)

PAGE_PREFIX_KEY = "Page Prefix"
DAYS_TO_SYNC_KEY = "Days to Sync"
DEBUG_LOGS_KEY = "Enable Debug Logs"


class SettingsSource(Protocol):
    async def find_page(self, title: str) -> str | None: ...

    async def read_tree(self, uid: str) -> list[ExistingNode]: ...


@dataclass(frozen=True)
class SyncSettings:
    """The knobs one sync run uses."""

    page_prefix: str
    days_to_sync: int
    enable_debug_logs: bool = False


@dataclass(frozen=True)
class GraphSettings:
    page_prefix: str | None = None
    days_to_sync: int | None = None
    enable_debug_logs: bool = False

    def apply(self, base: SyncSettings) -> SyncSettings:
        """Overlay whatever the page sets on top of ``base``."""
        return replace(
            base,
            page_prefix=self.page_prefix or base.page_prefix,
            days_to_sync=self.days_to_sync if self.days_to_sync is not None else base.days_to_sync,
            enable_debug_logs=base.enable_debug_logs or self.enable_debug_logs,
        )


def _label_pattern(key: str) -> re.Pattern[str]:
    # "Days to Sync", "days to sync", "Days to Sync #.muted" all match
    return re.compile(rf"^\s*{re.escape(key)}\s*(#\.[\w-]*\s*)?$", re.IGNORECASE)


def _find(tree: Sequence[ExistingNode], key: str) -> ExistingNode | None:
    pattern = _label_pattern(key)
    return next((node for node in tree if pattern.match(node.text.strip())), None)


def _value(tree: Sequence[ExistingNode], key: str) -> str | None:
    node = _find(tree, key)
    if node is None or not node.children:
        return None
    return node.children[0].text.strip() or None


def parse_graph_settings(tree: Sequence[ExistingNode]) -> GraphSettings:
    days: int | None = None
    raw_days = _value(tree, DAYS_TO_SYNC_KEY)
    if raw_days is not None:
        try:
            days = max(int(raw_days), 1)
        except ValueError:
            logger.warning(f"Ignoring invalid {DAYS_TO_SYNC_KEY!r} on {CONFIG_PAGE_TITLE}: {raw_days!r}")

    return GraphSettings(
        page_prefix=_value(tree, PAGE_PREFIX_KEY),
        days_to_sync=days,
        enable_debug_logs=_find(tree, DEBUG_LOGS_KEY) is not None,
    )


async def load_graph_settings(source: SettingsSource) -> GraphSettings:
    """Read the settings page; an absent page means no overrides."""
    uid = await source.find_page(CONFIG_PAGE_TITLE)
    if not uid:
        return GraphSettings()
    return parse_graph_settings(await source.read_tree(uid))

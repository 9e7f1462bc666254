"""Oura -> Roam sync MCP server implementation using FastMCP."""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any

from fastmcp import FastMCP

from .client import OuraClient, RoamClient
from .config import ServerConfig, setup_logging
from .graph_settings import SyncSettings
from .models import BlockNode
from .reconcile import BlockReconciler
from .sync import SyncOrchestrator

logger = logging.getLogger(__name__)

# Global instances, set up in lifespan
_oura: OuraClient | None = None
_roam: RoamClient | None = None
_orchestrator: SyncOrchestrator | None = None
_auto_sync_task: asyncio.Task | None = None


def get_orchestrator() -> SyncOrchestrator:
    """Get the global sync orchestrator instance."""
    if _orchestrator is None:
        raise RuntimeError("Sync orchestrator not initialized. Server not started properly.")
    return _orchestrator


def render_outline(node: BlockNode, depth: int = 0) -> str:
    """Indented bullet outline of a block tree."""
    lines = [f"{'  ' * depth}- {node.text}"]
    lines.extend(render_outline(child, depth + 1) for child in node.children)
    return "\n".join(lines)


def build_orchestrator(config: ServerConfig) -> tuple[SyncOrchestrator, OuraClient | None, RoamClient]:
    """Wire clients, reconciler and orchestrator from configuration."""
    roam = RoamClient(config.get_roam_config())
    oura = None
    if config.oura_token is not None:
        oura = OuraClient(config.get_oura_config(), max_days_per_request=config.max_days_per_request)

    reconciler = BlockReconciler(
        roam,
        settle_delay=config.settle_delay,
        yield_every=config.yield_batch_size,
    )
    settings = SyncSettings(
        page_prefix=config.page_prefix,
        days_to_sync=config.days_to_sync,
        enable_debug_logs=config.enable_debug_logs,
    )
    orchestrator = SyncOrchestrator(oura, roam, settings, reconciler=reconciler)
    return orchestrator, oura, roam


@asynccontextmanager
async def lifespan(_app: FastMCP):  # type: ignore[no-untyped-def]
    """Manage server lifecycle."""
    global _oura, _roam, _orchestrator, _auto_sync_task

    config = ServerConfig()  # type: ignore[call-arg]
    setup_logging(config.enable_debug_logs)
    logger.info("Starting Oura sync MCP server")

    _orchestrator, _oura, _roam = build_orchestrator(config)
    logger.info(f"Roam client initialized for graph {config.roam_graph!r}")
    if _oura is None:
        logger.warning("OURA_SYNC_OURA_TOKEN is not set; syncs will be skipped")

    if config.auto_sync_on_start:
        _auto_sync_task = asyncio.create_task(_orchestrator.sync("auto"))
        logger.info("Automatic sync scheduled")

    yield

    logger.info("Shutting down Oura sync MCP server")

    if _auto_sync_task:
        if not _auto_sync_task.done():
            _auto_sync_task.cancel()
        try:
            await _auto_sync_task
        except asyncio.CancelledError:
            pass
        _auto_sync_task = None

    if _oura:
        await _oura.close()
        _oura = None
    if _roam:
        await _roam.close()
        _roam = None
    _orchestrator = None


# Initialize FastMCP server
mcp = FastMCP(
    "Oura Ring Sync",
    instructions="Sync Oura ring daily summaries into Roam Research pages",
    lifespan=lifespan,
)


@mcp.tool(
    name="oura_sync",
    description="Sync Oura data into Roam for the most recent days (defaults to the configured count)",
)
async def oura_sync(days: int | None = None) -> dict[str, Any]:
    """Run a manual sync.

    Args:
        days: Number of days to sync, counting back from today (optional)

    Returns:
        The sync report: status, synced/skipped/failed dates and mutation counts
    """
    orchestrator = get_orchestrator()
    if days is not None and days < 1:
        return {"success": False, "error": "days must be at least 1"}
    report = await orchestrator.sync("manual", days)
    return report.model_dump(mode="json")


@mcp.tool(name="oura_sync_status", description="Whether a sync is running, and the last sync report")
async def oura_sync_status() -> dict[str, Any]:
    orchestrator = get_orchestrator()
    last = orchestrator.last_report
    return {
        "in_progress": orchestrator.in_progress,
        "last_report": last.model_dump(mode="json") if last else None,
    }


@mcp.tool(
    name="oura_preview_day",
    description="Show the block outline a sync would write for one day (YYYY-MM-DD) without writing it",
)
async def oura_preview_day(date: str) -> dict[str, Any]:
    """Build one day's block tree from live Oura data and render it.

    Args:
        date: ISO date, e.g. 2025-06-01

    Returns:
        ``{"success": True, "outline": ...}`` or ``{"success": False, "error": ...}``
    """
    orchestrator = get_orchestrator()
    try:
        block = await orchestrator.preview_day(date)
    except Exception as e:  # noqa: BLE001
        logger.error(f"Preview for {date} failed: {e}")
        return {"success": False, "error": str(e)}

    if block is None:
        return {"success": False, "error": f"Invalid date: {date!r}"}
    return {"success": True, "date": date, "outline": render_outline(block)}


def main() -> None:
    """Console entry point: serve over stdio."""
    setup_logging()
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()

"""Sync Oura ring daily summaries into Roam Research pages."""

__version__ = "0.1.0"

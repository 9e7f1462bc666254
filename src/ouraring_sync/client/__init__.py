"""HTTP clients for the Oura API and the Roam backend API."""

from .oura import OuraClient
from .roam import RoamClient

__all__ = ["OuraClient", "RoamClient"]

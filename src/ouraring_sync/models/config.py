"""Per-client API configuration."""

from pydantic import BaseModel, Field, SecretStr

from ..constants import OURA_API_BASE, ROAM_API_BASE


class OuraConfiguration(BaseModel):
    """Settings for the Oura API v2 client."""

    token: SecretStr
    base_url: str = OURA_API_BASE
    timeout: float = Field(default=30.0, gt=0)
    max_retries: int = Field(default=5, ge=1)


class RoamConfiguration(BaseModel):
    """Settings for the Roam backend API client."""

    graph: str
    token: SecretStr
    base_url: str = ROAM_API_BASE
    timeout: float = Field(default=30.0, gt=0)
    max_retries: int = Field(default=5, ge=1)

    @property
    def graph_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/api/graph/{self.graph}"

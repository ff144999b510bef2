from pydantic_settings import BaseSettings
from pydantic import ConfigDict, computed_field, Field
from datetime import timedelta
from typing import List

class Settings(BaseSettings):
    model_config = ConfigDict(extra="allow", env_file=".env", case_sensitive=True)

    DEBUG: bool = False
    PROJECT_NAME: str = "DriftWatch"
    VERSION: str = "0.1.0"
    API_V1_STR: str = "/api"
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:8000"]

    METRICS_ENABLED: bool = True

    # Drift Detection settings
    DRIFT_CRITICAL_FIELD_PATTERNS: List[str] = Field(
        default=["id", "uuid", "key", "token", "version", "status", "type", "error", "code"],
        description="Substrings that mark a field path as critical (case-insensitive)"
    )
    DRIFT_PERFORMANCE_THRESHOLD_FLOOR_MS: int = Field(
        default=100,
        description="Minimum absolute latency delta (ms) reported as a performance change"
    )
    DRIFT_COMMON_CHANGE_MIN_FREQUENCY: int = Field(
        default=2,
        description="Number of changed pairs before a path counts as a common change"
    )
    DRIFT_HISTORY_LIMIT: int = Field(
        default=100,
        description="Snapshots retained per endpoint and fed to trend analysis"
    )

    @computed_field
    @property
    def DRIFT_PERFORMANCE_THRESHOLD_FLOOR(self) -> timedelta:
        """Latency floor as a timedelta"""
        return timedelta(milliseconds=self.DRIFT_PERFORMANCE_THRESHOLD_FLOOR_MS)

settings = Settings()

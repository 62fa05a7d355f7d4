"""Configuration settings for the ingestion pipeline."""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


# __file__ = src/vitals_ingest/config.py
PACKAGE_ROOT = Path(__file__).parent
PROJECT_ROOT = PACKAGE_ROOT.parent.parent


class Settings(BaseSettings):
    """Ingestion settings loaded from VITALS_* environment variables."""

    # Storage
    db_path: Path | None = None
    data_path: Path | None = None

    # Flush thresholds per table buffer
    record_batch_size: int = Field(10000, ge=1)
    workout_batch_size: int = Field(100, ge=1)
    nutrition_batch_size: int = Field(500, ge=1)
    body_metrics_batch_size: int = Field(500, ge=1)

    # Clock skew allowed between a route file and a workout (watch vs phone)
    route_match_tolerance_minutes: int = Field(5, ge=0)

    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level name."""
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level

    def model_post_init(self, __context) -> None:
        """Fill in default paths after initialization."""
        if self.db_path is None:
            self.db_path = PROJECT_ROOT / "data" / "vitals.db"
        if self.data_path is None:
            self.data_path = PROJECT_ROOT / "health-data"

    def batch_sizes(self) -> dict:
        """Flush thresholds keyed by table name."""
        return {
            "health_metrics": self.record_batch_size,
            "workouts": self.workout_batch_size,
            "nutrition": self.nutrition_batch_size,
            "body_metrics": self.body_metrics_batch_size,
        }

    class Config:
        env_prefix = "VITALS_"
        env_file = str(PROJECT_ROOT / ".env")
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

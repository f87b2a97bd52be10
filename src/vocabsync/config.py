"""Configuration settings for the sync backend."""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Define base directory
BASE_DIR = Path(__file__).parent.parent.parent

# Load environment variables from .env file
env_file = ".env.test" if os.getenv("ENV") == "test" else ".env"
load_dotenv(env_file)


# Learning settings
REVIEW_INTERVALS = [0, 1, 2, 4, 7, 15]  # days until next review, indexed by memory level
MAX_MEMORY_LEVEL = 5
STATISTICS_HISTORY_DAYS = 30


@dataclass
class DatabaseSettings:
    """Database configuration settings."""
    url: str = os.getenv("DATABASE_URL", "sqlite:///vocabsync.db")
    echo: bool = os.getenv("DATABASE_ECHO", "false").lower() == "true"


@dataclass
class LoggingSettings:
    """Logging configuration settings."""
    level: str = os.getenv("LOG_LEVEL", "INFO")
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file: Optional[str] = os.getenv("LOG_FILE", None)
    max_bytes: int = int(os.getenv("LOG_MAX_BYTES", str(10 * 1024 * 1024)))
    backup_count: int = int(os.getenv("LOG_BACKUP_COUNT", "5"))


@dataclass
class LearningSettings:
    """Spaced-repetition settings."""
    review_intervals: list[int] = field(default_factory=lambda: list(REVIEW_INTERVALS))
    max_memory_level: int = MAX_MEMORY_LEVEL


@dataclass
class StatisticsSettings:
    """Statistics settings."""
    history_days: int = int(os.getenv("STATISTICS_HISTORY_DAYS", str(STATISTICS_HISTORY_DAYS)))


@dataclass
class MonitoringSettings:
    """Prometheus exporter settings."""
    enabled: bool = os.getenv("METRICS_ENABLED", "false").lower() == "true"
    port: int = int(os.getenv("METRICS_PORT", "9090"))


def get_database_settings() -> DatabaseSettings:
    """Get database settings."""
    return DatabaseSettings()


def get_logging_settings() -> LoggingSettings:
    """Get logging settings."""
    return LoggingSettings()


def get_learning_settings() -> LearningSettings:
    """Get learning settings."""
    return LearningSettings()


def get_statistics_settings() -> StatisticsSettings:
    """Get statistics settings."""
    return StatisticsSettings()


def get_monitoring_settings() -> MonitoringSettings:
    """Get monitoring settings."""
    return MonitoringSettings()


@dataclass
class Settings:
    """Main settings class that combines all configuration settings."""
    database: DatabaseSettings = field(default_factory=get_database_settings)
    logging: LoggingSettings = field(default_factory=get_logging_settings)
    learning: LearningSettings = field(default_factory=get_learning_settings)
    statistics: StatisticsSettings = field(default_factory=get_statistics_settings)
    monitoring: MonitoringSettings = field(default_factory=get_monitoring_settings)

    def validate(self) -> None:
        """Validate settings and raise ValueError if invalid."""
        if not self.database.url:
            raise ValueError("DATABASE_URL is required")

        intervals = self.learning.review_intervals
        if len(intervals) != self.learning.max_memory_level + 1:
            raise ValueError("Review interval table must have one entry per memory level")

        if any(days < 0 for days in intervals):
            raise ValueError("Review intervals must not be negative")

        if any(later < earlier for earlier, later in zip(intervals, intervals[1:])):
            raise ValueError("Review intervals must not decrease with memory level")

        if self.statistics.history_days < 1:
            raise ValueError("STATISTICS_HISTORY_DAYS must be positive")

        if self.monitoring.port < 1:
            raise ValueError("METRICS_PORT must be positive")


# Create global settings instance
settings = Settings()
settings.validate()

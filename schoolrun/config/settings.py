# schoolrun/config/settings.py
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional
from functools import lru_cache


class Settings(BaseSettings):
    # Application Settings
    APP_NAME: str = "SchoolRun Dispatch"
    VERSION: str = "1.0.0"
    DEBUG: bool = False
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000

    # CORS Settings
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:5173"]

    # Database Settings
    DATABASE_URL: str = "sqlite:///./schoolrun.db"
    DATABASE_ECHO: bool = False

    # Logging Settings
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = None  # e.g. "logs/app.log"
    LOG_JSON: bool = False

    # Local time zone of the school district. Dismissal and arrival
    # times are time-of-day values in this zone.
    TIMEZONE: str = "America/New_York"

    # Route Optimization Defaults
    DEFAULT_DRIVER_COUNT: int = 2
    DEFAULT_VEHICLE_CAPACITY: int = 12
    DEFAULT_MAX_ROUTE_TIME_MINUTES: int = 120
    DEFAULT_BUFFER_MINUTES: int = 10
    ASSUMED_SPEED_KMH: float = 32.0  # ~20 mph in school zones
    MIN_DWELL_MINUTES: int = 5
    MAX_DWELL_MINUTES: int = 15
    ALERT_THRESHOLD_MINUTES: int = 10
    LONG_ROUTE_DISTANCE_KM: float = 30.0

    # Geofence Monitor
    MONITOR_ENABLED: bool = True
    MONITOR_INTERVAL_SECONDS: int = 120
    GEOFENCE_RADIUS_KM: float = 1.0
    POSITION_STALE_MINUTES: int = 10

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True)


@lru_cache()
def get_settings() -> Settings:
    return Settings()


# Environment-specific settings
class DevelopmentSettings(Settings):
    DEBUG: bool = True
    LOG_LEVEL: str = "DEBUG"


class ProductionSettings(Settings):
    DEBUG: bool = False
    LOG_LEVEL: str = "WARNING"
    LOG_JSON: bool = True


class TestingSettings(Settings):
    DATABASE_URL: str = "sqlite://"
    MONITOR_ENABLED: bool = False
    TIMEZONE: str = "UTC"


def get_settings_by_env(env: str = "development") -> Settings:
    if env == "development":
        return DevelopmentSettings()
    elif env == "production":
        return ProductionSettings()
    elif env == "testing":
        return TestingSettings()
    else:
        return Settings()

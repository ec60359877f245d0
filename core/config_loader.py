import yaml
import os
from typing import Dict, Optional, Literal
from pydantic import BaseModel, ConfigDict, Field, model_validator


class DatabaseConfig(BaseModel):
    url: str


class ScoringWeights(BaseModel):
    """
    Weight table for the soft factors of the compatibility score.

    Immutable once loaded; injected into the scorer so that alternative tables
    can be tried per segment without touching global state.
    """
    model_config = ConfigDict(frozen=True)

    budget: float = 0.20
    location: float = 0.15
    amenities: float = 0.20
    lifestyle: float = 0.15
    move_in: float = 0.15
    stay: float = 0.15

    @model_validator(mode='after')
    def check_weights(self):
        values = [self.budget, self.location, self.amenities, self.lifestyle, self.move_in, self.stay]
        if any(v < 0 for v in values):
            raise ValueError("scoring weights must be non-negative")
        if abs(sum(values) - 1.0) > 1e-6:
            raise ValueError(f"scoring weights must sum to 1.0, got {sum(values):.6f}")
        return self


class MatchingConfig(BaseModel):
    """
    Match Index / lifecycle tuning.
    """
    weights: ScoringWeights = Field(default_factory=ScoringWeights)

    # New pairs below this score are never stored
    min_score_threshold: float = 40.0

    # Non-contacted matches older than this expire
    match_ttl_days: int = 30

    # Cap on new rows created by a single rescan (existing rows are always refreshed)
    max_new_matches_per_rescan: int = 50

    # Scoring pool size; bounds concurrent FX lookups
    rescan_workers: int = 4

    # Pool consuming profile/listing change events
    dispatch_workers: int = 2

    candidate_batch_size: int = 500
    neutral_factor: float = 0.5

    # Failed pairs are retried this many times by the sweeper before being left for inspection
    max_pair_attempts: int = 10


class SweepConfig(BaseModel):
    interval_seconds: int = 300
    batch_size: int = 200
    failed_pair_batch_size: int = 100
    lock_backend: Literal["file", "redis"] = "file"
    lock_file: str = "/tmp/housing_sweeper.lock"
    lock_ttl_seconds: int = 600
    redis_url: Optional[str] = None


class FxConfig(BaseModel):
    base_url: Optional[str] = None
    api_key: Optional[str] = None
    timeout_seconds: int = 5
    max_attempts: int = 3
    cache_ttl_seconds: int = 3600
    # Fixed table used when no HTTP provider is configured, e.g. {"USD/EUR": 0.92}
    static_rates: Dict[str, float] = Field(default_factory=dict)


class GeocodingConfig(BaseModel):
    enabled: bool = False
    base_url: Optional[str] = None
    api_key: Optional[str] = None
    timeout_seconds: int = 5
    max_attempts: int = 3


class NotificationChannelConfig(BaseModel):
    """Configuration for a single notification channel."""
    enabled: bool = True
    recipient: Optional[str] = None  # webhook URL for the webhook channel


class NotificationConfig(BaseModel):
    """
    Configuration for notifications.

    Controls how parties are told about status changes and new messages.
    """
    enabled: bool = False

    # Base URL for links in notifications
    base_url: str = "http://localhost:8080"

    notify_on_new_match: bool = True
    notify_on_status_change: bool = True
    notify_on_new_message: bool = True

    channels: Dict[str, NotificationChannelConfig] = {}

    deduplication_enabled: bool = True

    # Redis queue settings
    use_async_queue: bool = True
    redis_url: Optional[str] = None


class WebConfig(BaseModel):
    host: str = "0.0.0.0"
    port: int = 8080
    cors_origins: list = Field(default_factory=lambda: ["http://localhost:5173"])


class AppConfig(BaseModel):
    database: DatabaseConfig
    matching: MatchingConfig = Field(default_factory=MatchingConfig)
    sweep: SweepConfig = Field(default_factory=SweepConfig)
    fx: FxConfig = Field(default_factory=FxConfig)
    geocoding: GeocodingConfig = Field(default_factory=GeocodingConfig)
    notifications: NotificationConfig = Field(default_factory=NotificationConfig)
    web: WebConfig = Field(default_factory=WebConfig)


def load_config(config_path: str = "config.yaml") -> AppConfig:
    # If not found at relative path (e.g. running from root), try absolute or adjusted path
    if not os.path.exists(config_path):
        base_dir = os.path.dirname(os.path.abspath(__file__))
        config_path = os.path.join(base_dir, "..", "config.yaml")

    with open(config_path, "r") as f:
        data = yaml.safe_load(f) or {}

    # Allow env var override for DB URL
    env_db_url = os.environ.get("DATABASE_URL")
    if env_db_url:
        data.setdefault('database', {})
        data['database']['url'] = env_db_url

    # Allow env var override for Redis URL (queue and sweeper lock)
    env_redis_url = os.environ.get("REDIS_URL")
    if env_redis_url:
        if not data.get('notifications'):
            data['notifications'] = {}
        data['notifications']['redis_url'] = env_redis_url
        if not data.get('sweep'):
            data['sweep'] = {}
        data['sweep']['redis_url'] = env_redis_url

    # Allow env var override for FX provider URL
    env_fx_url = os.environ.get("FX_BASE_URL")
    if env_fx_url:
        if not data.get('fx'):
            data['fx'] = {}
        data['fx']['base_url'] = env_fx_url

    # Allow env var override for geocoder URL
    env_geo_url = os.environ.get("GEOCODER_BASE_URL")
    if env_geo_url:
        if not data.get('geocoding'):
            data['geocoding'] = {}
        data['geocoding']['base_url'] = env_geo_url

    return AppConfig(**data)

from functools import lru_cache

from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict


class StageConfig(BaseModel):
    """One entry of the stage catalog. Ordinal comes from list position."""

    id: str
    label: str
    description: str = ""


DEFAULT_STAGE_CATALOG: list[StageConfig] = [
    StageConfig(id="sowing", label="Sowing Started", description="Seeds planted in organic soil"),
    StageConfig(id="growing", label="Growing Phase", description="Crops are growing with organic care"),
    StageConfig(id="harvesting", label="Ready for Harvest", description="Crops have matured and ready for picking"),
    StageConfig(id="packaging", label="Packaging", description="Fresh produce being carefully packaged"),
    StageConfig(id="dispatch", label="Out for Delivery", description="Your order is on the way"),
    StageConfig(id="delivered", label="Delivered", description="Fresh organic produce delivered to your door"),
]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # App
    app_name: str = "Farm-to-Table Tracking"
    debug: bool = False

    # API
    cors_allowed_origins: list[str] = [
        "http://localhost:3000",
    ]

    # Stage catalog (env: STAGE_CATALOG as a JSON list of {id, label, description})
    stage_catalog: list[StageConfig] = DEFAULT_STAGE_CATALOG

    # Redis pub/sub for StageAdvanced facts
    redis_url: str = "redis://localhost:6379"
    redis_notifications_enabled: bool = False  # env: REDIS_NOTIFICATIONS_ENABLED

    # In-process subscription feed for UI clients
    subscription_queue_size: int = 100
    subscription_history_size: int = 50

    # Replay the demo order's farm updates at startup
    seed_demo_order: bool = False  # env: SEED_DEMO_ORDER


@lru_cache
def get_settings() -> Settings:
    return Settings()

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", env_prefix="WAYBATCH_", extra="ignore"
    )

    log_level: str = "INFO"

    # Wayback Machine "Save Page Now"
    save_endpoint: str = "https://web.archive.org/save/"
    user_agent: str = "waybatch/1.0 (+https://web.archive.org)"
    request_timeout: int = 120

    # Politeness delay after a new capture
    cooldown_seconds: float = 3
    # Fixed wait before retrying a rate-limited URL
    rate_limit_backoff_seconds: float = 15
    # None = retry forever
    max_rate_limit_retries: int | None = None

    checkpoint_every: int = Field(default=25, gt=0)

    # A returned capture older than (request start - slack) was not made by us
    existing_snapshot_slack_seconds: int = 60


settings = Settings()

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PATH = Path(__file__).resolve().parent.parent / ".env.local"

DEFAULT_MESSAGE_TEMPLATES = {
    "nudge": "Hi {name}, following up!",
    "intro": "Hi {name}, we have a new opening that matches your profile. Reply to learn more.",
}


class Settings(BaseSettings):
    # Environment settings
    environment: str = "development"
    debug: bool = False
    LOG_LEVEL: str = "INFO"

    # Recruiter backend API
    RECRUITER_API_BASE_URL: str = "http://localhost:8000/api/v1"
    DEFAULT_USER_ID: str = "dev-user-id"
    API_TIMEOUT_MS: int = 30000
    API_RETRY_ATTEMPTS: int = 3
    API_RETRY_DELAY_MS: int = 1000

    # Phone-number derived applicant IDs
    DEFAULT_COUNTRY_CODE: str = "91"

    # Auth: treat tokens as expired this long before they actually expire
    TOKEN_REFRESH_BUFFER_SECONDS: int = 300

    # =================================================================
    # MESSAGE QUEUE PROCESSOR
    # =================================================================
    QUEUE_PROCESSOR_INTERVAL_MS: int = 15000
    QUEUE_PROCESSOR_ENABLED: bool = True
    MESSAGE_TEMPLATES: dict[str, str] = dict(DEFAULT_MESSAGE_TEMPLATES)

    # =================================================================
    # LOCAL PERSISTENCE (queue + soft deletes)
    # =================================================================
    STORAGE_BACKEND: str = "file"  # "file" or "redis"
    DATA_DIR: str = ".data"
    REDIS_URL: str | None = None
    STORAGE_KEY_PREFIX: str = "recruiter_dashboard"

    # Feature flags
    ENABLE_BULK_ACTIONS: bool = True

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def api_base_url(self) -> str:
        return self.RECRUITER_API_BASE_URL.rstrip("/")

    def request_timeout_seconds(self) -> float:
        return self.API_TIMEOUT_MS / 1000

    def retry_delay_seconds(self) -> float:
        return self.API_RETRY_DELAY_MS / 1000

    def queue_interval_seconds(self) -> float:
        return self.QUEUE_PROCESSOR_INTERVAL_MS / 1000

    def get_retry_config(self) -> dict:
        """
        Get retry configuration for collaborator calls.
        Development uses a shorter delay so failures surface quickly.
        """
        config = {
            "attempts": max(1, self.API_RETRY_ATTEMPTS),
            "delay_seconds": self.retry_delay_seconds(),
        }

        if self.environment == "development":
            config.update({"delay_seconds": min(config["delay_seconds"], 0.5)})

        return config

    def storage_path(self) -> Path:
        """Path of the JSON document used by the file storage backend."""
        return Path(self.DATA_DIR) / f"{self.STORAGE_KEY_PREFIX}.json"


settings = Settings()

# =================================================================
# QUICK CONFIGURATION REFERENCE
# =================================================================
"""
Local development (defaults):
    STORAGE_BACKEND=file
    DATA_DIR=.data

Shared deployment (several web/worker processes):
    STORAGE_BACKEND=redis
    REDIS_URL=rediss://default:<token>@<host>:6379

Slower queue cadence:
    QUEUE_PROCESSOR_INTERVAL_MS=60000
"""

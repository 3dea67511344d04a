from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


def find_env_file() -> str:
    env_file = ".env" if Path("/.dockerenv").exists() else ".env.local"

    current_path = Path.cwd()

    for path in [current_path] + list(current_path.parents):
        env_path = path / env_file
        if env_path.exists():
            return str(env_path)

    return env_file


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=find_env_file(),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database: rentals, outfits, calendars, closets
    database_url: str = "postgresql+psycopg2://app:app@db:5432/closet"
    create_schema: bool = False  # create tables on startup (dev / tests)

    # Payment verification collaborator
    external_base: str = "http://payments:3629"
    http_timeout_sec: float = 1.5

    # Circuit Breaker settings
    cb_payment_fail_max: int = 3  # Max failures for payment operations
    cb_payment_reset_timeout: int = 60  # Reset timeout in seconds

    # Lifecycle
    qc_window_min: int = 30  # QC decision window after delivery / return
    restrict_issue_reports: bool = False  # only delivered / in_use / return_delivered

    log_level: str = "INFO"

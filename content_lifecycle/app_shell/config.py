import os
from functools import lru_cache
from pathlib import Path


class Settings:
    """Deployment settings from the environment."""

    def __init__(self) -> None:
        self.base_dir = Path(os.getcwd())
        self.data_dir = Path(os.environ.get("CMS_DATA_DIR", "./data"))
        self.db_path = str(self.data_dir / "content.db")
        self.rules_path = Path(os.environ.get("CMS_RULES_PATH", self.base_dir / "rules.yaml"))
        self.migrations_dir = str(
            os.environ.get("CMS_MIGRATIONS_DIR", self.base_dir / "migrations")
        )
        self.sweep_secret = os.environ.get("CMS_SWEEP_SECRET") or None


@lru_cache
def get_settings() -> Settings:
    return Settings()

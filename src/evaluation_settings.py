"""
Runtime configuration for the evaluation reporting tools.

Values come from environment variables prefixed with ``TOC_`` or from a
``.env`` file in the working directory.
"""

from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).parent.parent

DEFAULT_BIN_ID = "default-bin-id"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="TOC_", env_file=".env", extra="ignore")

    # Local persistence
    DATA_DIR: Path = PROJECT_ROOT / "data"
    STORAGE_FILE: str = "evaluaciones.json"
    RECORD_KEY: str = "evaluacionDatos"
    REPORTS_KEY: str = "reportesGenerados"

    # Display
    MAX_ROWS_TO_DISPLAY: int = 100
    REPORT_TITLE: str = "Tu Opinión Cuenta 2025-II"

    # Export
    TEMPLATES_DIR: Path = PROJECT_ROOT / "templates"
    OUTPUT_DIR: Path = PROJECT_ROOT / "output"

    # JSONBin cloud sync (optional)
    JSONBIN_BASE_URL: str = "https://api.jsonbin.io/v3/b"
    JSONBIN_BIN_ID: str = DEFAULT_BIN_ID
    JSONBIN_API_KEY: Optional[str] = None
    JSONBIN_BIN_NAME: str = "evaluacion-datos-2025-II"
    SYNC_TIMEOUT: float = 10.0
    SYNC_RETRIES: int = 2

    @property
    def storage_path(self) -> Path:
        return Path(self.DATA_DIR) / self.STORAGE_FILE

    @property
    def sync_configured(self) -> bool:
        """Sync needs a real bin id; the placeholder means 'local only'"""
        return bool(self.JSONBIN_BIN_ID) and self.JSONBIN_BIN_ID != DEFAULT_BIN_ID


settings = Settings()

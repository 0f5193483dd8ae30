"""
Application Settings
====================
Loads configuration from environment variables / .env file.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central configuration sourced from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # ── Extraction ────────────────────────────────────────
    COMPARATOR_HOST: str = "comparador.cnmc.gob.es"
    DOCUMENT_TIMEOUT_SECONDS: float | None = Field(default=None, gt=0)

    # ── Upload limits ─────────────────────────────────────
    MAX_FILES: int = 5
    MAX_FILE_SIZE_BYTES: int = 20 * 1024 * 1024
    ALLOWED_CONTENT_TYPES: list[str] = ["application/pdf"]

    # ── Storage ───────────────────────────────────────────
    STORAGE_BACKEND: str = "memory"  # memory | snowflake
    INPUT_BUCKET: str = "pdfs"
    OUTPUT_BUCKET: str = "outputs"
    REPORT_FILENAME: str = "analysis_results.csv"

    # ── Client hints / logging ────────────────────────────
    POLL_INTERVAL_SECONDS: float = 2.0
    LOG_LEVEL: str = "INFO"

    # ── Snowflake ─────────────────────────────────────────
    SNOWFLAKE_ACCOUNT: str = ""
    SNOWFLAKE_USER: str = ""
    SNOWFLAKE_PASSWORD: str = ""
    SNOWFLAKE_DATABASE: str = "BILL_ANALYZER"
    SNOWFLAKE_SCHEMA: str = "PUBLIC"
    SNOWFLAKE_WAREHOUSE: str = "COMPUTE_WH"


settings = Settings()

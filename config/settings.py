"""
CRM Relationship Mapper - Configuration

Loads settings from environment variables with sensible defaults.
"""

from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings

# Load .env file
load_dotenv()

# Project root directory
PROJECT_ROOT = Path(__file__).parent.parent


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    @property
    def project_root(self) -> Path:
        """Return project root directory."""
        return PROJECT_ROOT

    # Application
    DEBUG: bool = Field(default=False)
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FILE: str = Field(default="")

    # Input exports (read by the CLI only, the engine never touches files)
    DEALS_CSV: str = Field(default=f"{PROJECT_ROOT}/data/deals.csv")
    COMPANIES_CSV: str = Field(default=f"{PROJECT_ROOT}/data/companies.csv")

    # Reconciliation settings
    BRAND_ATTRIBUTION: Literal["full", "split"] = Field(default="full")
    REVENUE_JOIN_KEY: Literal["name", "id"] = Field(default="name")
    HIGH_PERFORMER_WIN_RATE: float = Field(default=50.0)

    # Company name matching (0-100 for rapidfuzz)
    FUZZY_MATCH_THRESHOLD: int = Field(default=85)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()

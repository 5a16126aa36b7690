"""Configuration management for the meal planning core."""
import os
from typing import Final
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables from .env file if it exists
env_path = Path(__file__).parent.parent / '.env'
if env_path.exists():
    load_dotenv(env_path)

# Local storage
BASE_DIR: Final[Path] = Path(__file__).parent.parent
DATA_DIR: Final[Path] = Path(os.getenv('MEALPLAN_DATA_DIR', str(BASE_DIR / 'data')))
DATABASE_PATH: Final[str] = os.getenv('DATABASE_PATH', str(DATA_DIR / 'mealplan.db'))

# Enrichment service
ENRICHMENT_BASE_URL: Final[str] = os.getenv('ENRICHMENT_BASE_URL', 'http://localhost:3001')
ENRICHMENT_TIMEOUT_SECONDS: Final[float] = float(os.getenv('ENRICHMENT_TIMEOUT_SECONDS', '30'))
ENRICHMENT_API_KEY: Final[str | None] = os.getenv('ENRICHMENT_API_KEY') or None

# Job polling
JOB_POLL_INTERVAL_SECONDS: Final[float] = float(os.getenv('JOB_POLL_INTERVAL_SECONDS', '1.0'))
JOB_MAX_POLLS: Final[int] = int(os.getenv('JOB_MAX_POLLS', '60'))
STALE_JOB_MAX_AGE_SECONDS: Final[int] = int(os.getenv('STALE_JOB_MAX_AGE_SECONDS', '3600'))

# AI
OPENAI_MODEL: Final[str] = os.getenv('OPENAI_MODEL', 'gpt-4o-mini')

# User settings
UNIT_SYSTEM: Final[str] = os.getenv('UNIT_SYSTEM', 'metric').lower()

# Pantry Alerts Configuration
DAYS_BEFORE_EXPIRY: Final[int] = int(os.getenv('DAYS_BEFORE_EXPIRY', '2'))


class EnvSettingsProvider:
    """Read-only settings collaborator backed by the environment."""

    def __init__(self, unit_system: str | None = None):
        value = (unit_system or UNIT_SYSTEM).strip().lower()
        self._unit_system = value if value in ('metric', 'imperial') else 'metric'

    @property
    def unit_system(self) -> str:
        return self._unit_system

"""Application settings loaded from the environment.

Settings are plain frozen dataclasses so that services and tests can receive
them explicitly instead of reading process-wide state.
"""

import math
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

DB_PATH_ENV = "CLINICSPLIT_DB_PATH"
DEFAULT_PERCENT_A_ENV = "CLINICSPLIT_DEFAULT_PERCENT_A"
ALLOW_HARD_DELETE_ENV = "CLINICSPLIT_ALLOW_HARD_DELETE"

# Split applied to auto-mode cases that carry no frozen percentages.
DEFAULT_PERCENT_A = 68.42105
DEFAULT_PERCENT_B = 31.57895


@dataclass(frozen=True)
class AllocationSettings:
    """Default percentage pair used when a case has nothing frozen."""

    default_percent_a: float = DEFAULT_PERCENT_A
    default_percent_b: float = DEFAULT_PERCENT_B

    @classmethod
    def from_percent_a(cls, percent_a: float) -> "AllocationSettings":
        """Build settings from A's share, giving B the complement.

        Raises:
            ValueError: If the percentage is not a finite number in [0, 100]
        """
        percent_a = float(percent_a)
        if not math.isfinite(percent_a) or percent_a < 0 or percent_a > 100:
            raise ValueError(
                f"Default percentage must be between 0 and 100, got {percent_a}"
            )
        if percent_a == DEFAULT_PERCENT_A:
            return cls()
        return cls(default_percent_a=percent_a, default_percent_b=100 - percent_a)


@dataclass(frozen=True)
class Settings:
    """Top-level settings for services and the CLI."""

    db_path: Optional[str] = None
    allocation: AllocationSettings = field(default_factory=AllocationSettings)
    allow_hard_delete: bool = False


def default_database_path() -> str:
    """Return ~/.clinicsplit/clinicsplit.db, creating the directory."""
    db_dir = Path.home() / ".clinicsplit"
    db_dir.mkdir(exist_ok=True)
    return str(db_dir / "clinicsplit.db")


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Load settings from environment variables.

    Args:
        environ: Mapping to read from. Defaults to os.environ.

    Returns:
        Settings instance

    Raises:
        ValueError: If CLINICSPLIT_DEFAULT_PERCENT_A is not a valid percentage
    """
    if environ is None:
        environ = os.environ

    allocation = AllocationSettings()
    raw_percent = environ.get(DEFAULT_PERCENT_A_ENV, "").strip()
    if raw_percent:
        try:
            percent_a = float(raw_percent)
        except ValueError:
            raise ValueError(
                f"{DEFAULT_PERCENT_A_ENV} must be a number, got '{raw_percent}'"
            )
        allocation = AllocationSettings.from_percent_a(percent_a)

    return Settings(
        db_path=environ.get(DB_PATH_ENV) or None,
        allocation=allocation,
        allow_hard_delete=environ.get(ALLOW_HARD_DELETE_ENV, "").strip() == "1",
    )

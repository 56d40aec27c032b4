"""Configuration helpers for overlapping community propagation."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, TypeVar

from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).resolve().parents[1]
ENV_PATH = PROJECT_ROOT / ".env"

# Load environment variables early so downstream modules can rely on them.
load_dotenv(ENV_PATH, override=False)

REPEAT_ENV = "COPRA_REPEAT"
TOLERANCE_ENV = "COPRA_TOLERANCE"
MAX_MEMBERSHIP_ENV = "COPRA_MAX_MEMBERSHIP"
MAX_ITERATIONS_ENV = "COPRA_MAX_ITERATIONS"
BELONGING_THRESHOLD_ENV = "COPRA_BELONGING_THRESHOLD"
LOG_DIR_ENV = "COPRA_LOG_DIR"

# Labels (max. community memberships) per vertex.
COPRA_LABELS = 8

DEFAULT_REPEAT = 1
DEFAULT_TOLERANCE = 0.05
DEFAULT_MAX_MEMBERSHIP = COPRA_LABELS
DEFAULT_MAX_ITERATIONS = 20
DEFAULT_LOG_DIR = Path("logs")

T = TypeVar("T")


@dataclass(frozen=True)
class CopraOptions:
    """Settings consumed by the propagation driver.

    ``belonging_threshold`` is the fraction ``B`` of a vertex's total edge
    weight a community must reach to be kept; it has no default.
    """

    belonging_threshold: float
    repeat: int = DEFAULT_REPEAT
    tolerance: float = DEFAULT_TOLERANCE
    max_membership: int = DEFAULT_MAX_MEMBERSHIP
    max_iterations: int = DEFAULT_MAX_ITERATIONS

    def validated(self) -> "CopraOptions":
        if not 0.0 <= self.belonging_threshold <= 1.0:
            raise ValueError(
                f"belonging_threshold must be within [0, 1]; received {self.belonging_threshold}"
            )
        if self.repeat < 1:
            raise ValueError(f"repeat must be at least 1; received {self.repeat}")
        if self.tolerance < 0.0:
            raise ValueError(f"tolerance must be non-negative; received {self.tolerance}")
        if self.max_membership < 1:
            raise ValueError(f"max_membership must be at least 1; received {self.max_membership}")
        if self.max_iterations < 1:
            raise ValueError(f"max_iterations must be at least 1; received {self.max_iterations}")
        return self


def _get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value


def _parse_env(name: str, cast: Callable[[str], T], default: T) -> T:
    raw = _get_env(name)
    if raw is None:
        return default
    try:
        return cast(raw)
    except ValueError as exc:
        raise RuntimeError(
            f"{name} must be a valid {cast.__name__}; received '{raw}'."
        ) from exc


def get_copra_options(belonging_threshold: Optional[float] = None) -> CopraOptions:
    """Resolve driver options from the environment.

    An explicit ``belonging_threshold`` wins over ``COPRA_BELONGING_THRESHOLD``;
    one of them must be provided.
    """

    if belonging_threshold is None:
        raw = _get_env(BELONGING_THRESHOLD_ENV)
        if raw is None:
            raise RuntimeError(
                "COPRA_BELONGING_THRESHOLD is not configured. Set it in .env, export the "
                "variable, or pass the threshold explicitly."
            )
        belonging_threshold = _parse_env(BELONGING_THRESHOLD_ENV, float, 0.0)

    options = CopraOptions(
        belonging_threshold=float(belonging_threshold),
        repeat=_parse_env(REPEAT_ENV, int, DEFAULT_REPEAT),
        tolerance=_parse_env(TOLERANCE_ENV, float, DEFAULT_TOLERANCE),
        max_membership=_parse_env(MAX_MEMBERSHIP_ENV, int, DEFAULT_MAX_MEMBERSHIP),
        max_iterations=_parse_env(MAX_ITERATIONS_ENV, int, DEFAULT_MAX_ITERATIONS),
    )
    try:
        return options.validated()
    except ValueError as exc:
        raise RuntimeError(f"Invalid COPRA configuration: {exc}") from exc


def get_log_dir() -> Path:
    """Resolve the directory rotating log files are written to."""

    raw_path = _get_env(LOG_DIR_ENV, str(DEFAULT_LOG_DIR))
    return Path(raw_path).expanduser()

"""Runtime settings read from the environment (``.env`` is loaded by the app)."""

import os
from dataclasses import dataclass
from pathlib import Path

_ROOT = Path(__file__).parent.parent.parent

DEFAULT_TILE_URL = (
    "https://s3.amazonaws.com/elevation-tiles-prod/terrarium/{z}/{x}/{y}.png"
)
DEFAULT_HTTP_TIMEOUT = 30.0
DEFAULT_OUTPUT_PATH = _ROOT / "results" / "output_plot.png"
DEFAULT_LOG_LEVEL = "INFO"
LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


@dataclass(frozen=True)
class Settings:
    tile_url: str = DEFAULT_TILE_URL
    http_timeout: float = DEFAULT_HTTP_TIMEOUT  # Seconds, per tile request
    output_path: Path = DEFAULT_OUTPUT_PATH  # Overwritten on every run
    log_level: str = DEFAULT_LOG_LEVEL


def load_settings() -> Settings:
    """Build Settings from ELEVPLOT_* environment variables.

    Raises:
        ValueError: If ELEVPLOT_HTTP_TIMEOUT is not a positive number, or
            ELEVPLOT_LOG_LEVEL is not a logging level name.
    """
    timeout_raw = os.environ.get("ELEVPLOT_HTTP_TIMEOUT")
    timeout = DEFAULT_HTTP_TIMEOUT
    if timeout_raw:
        timeout = float(timeout_raw)
        if timeout <= 0:
            raise ValueError(f"ELEVPLOT_HTTP_TIMEOUT must be positive: {timeout_raw}")

    log_raw = os.environ.get("ELEVPLOT_LOG_LEVEL")
    log_level = (log_raw or DEFAULT_LOG_LEVEL).upper()
    if log_level not in LOG_LEVELS:
        raise ValueError(
            f"ELEVPLOT_LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}: {log_raw}"
        )

    output_raw = os.environ.get("ELEVPLOT_OUTPUT_PATH")
    return Settings(
        tile_url=os.environ.get("ELEVPLOT_TILE_URL") or DEFAULT_TILE_URL,
        http_timeout=timeout,
        output_path=Path(output_raw) if output_raw else DEFAULT_OUTPUT_PATH,
        log_level=log_level,
    )

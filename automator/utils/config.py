# automator/utils/config.py
from __future__ import annotations

import functools
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# ---------- Enums ----------

class BrowserType(str, Enum):
    chromium = "chromium"
    firefox = "firefox"
    webkit = "webkit"


class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


# ---------- Settings ----------

class Settings(BaseSettings):
    """
    Central configuration for the automator.

    Values load in this order of precedence:
      1) Environment variables
      2) .env file in project root
      3) Defaults below
    """

    # ---- Sequencing ----
    DEBUG_MODE: bool = Field(default=False, description="Trace every engine transition at INFO level")
    STEP_DELAY_MS: int = Field(default=0, ge=0, description="Delay inserted between non-numeric steps")
    ITERATION_DELAY_MS: int = Field(default=0, ge=0, description="Delay inserted between iterations")
    DEFAULT_ITERATIONS: int = Field(default=1, ge=1)
    SEQUENCES_DIR: Path = Field(default=Path("./sequences"))

    # ---- Browser (Playwright key sink) ----
    HEADLESS: bool = Field(default=True, description="Run the browser headless")
    BROWSER_TYPE: BrowserType = Field(default=BrowserType.chromium, description="Playwright browser")
    VIEWPORT_WIDTH: int = Field(default=1366, ge=320, le=7680)
    VIEWPORT_HEIGHT: int = Field(default=768, ge=320, le=4320)
    SLOW_MO: int = Field(default=0, ge=0, description="Slow down browser operations (ms) for debugging")
    PAGE_LOAD_TIMEOUT: int = Field(default=60000, ge=1000)

    # ---- Logging ----
    LOG_LEVEL: LogLevel = Field(default=LogLevel.INFO)
    LOG_TO_FILE: bool = Field(default=False)
    LOG_FILE: Path = Field(default=Path("./automator.log"))
    COLORIZED_OUTPUT: bool = Field(default=True)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("SEQUENCES_DIR", "LOG_FILE", mode="before")
    @classmethod
    def _coerce_to_path(cls, v):
        if isinstance(v, Path):
            return v
        return Path(str(v)) if v is not None else v

    @field_validator("SEQUENCES_DIR", "LOG_FILE", mode="after")
    @classmethod
    def _absolutize(cls, v: Path, info):
        return v if v.is_absolute() else Path.cwd() / v

    def ensure_dirs(self) -> None:
        """Create the log directory when file logging is enabled (idempotent)."""
        if self.LOG_TO_FILE:
            self.LOG_FILE.parent.mkdir(parents=True, exist_ok=True)

    # Convenience: Playwright launch options dict
    def playwright_launch_kwargs(self) -> dict:
        return {
            "headless": self.HEADLESS,
            "slow_mo": self.SLOW_MO,
        }

    # Convenience: Playwright new_context kwargs
    def playwright_context_kwargs(self) -> dict:
        return {"viewport": {"width": self.VIEWPORT_WIDTH, "height": self.VIEWPORT_HEIGHT}}


# --------- Public accessor (memoized) ---------

@functools.lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Load and cache settings once per process.
    Call `get_settings.cache_clear()` if you need to reload after changing env.
    """
    s = Settings()
    s.ensure_dirs()
    return s


# --------- Lightweight DTO for other modules ---------

class Delays(BaseModel):
    step_delay: int = Field(default=0, ge=0)
    iteration_delay: int = Field(default=0, ge=0)

    @classmethod
    def from_settings(cls, s: Settings) -> "Delays":
        return cls(step_delay=s.STEP_DELAY_MS, iteration_delay=s.ITERATION_DELAY_MS)

"""Environment-driven settings for the MCQ service."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv


def _flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _optional_float(name: str, default: Optional[float]) -> Optional[float]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    value = float(raw)
    return value if value > 0 else None


@dataclass
class Settings:
    openai_api_key: Optional[str] = None
    assistant_id: Optional[str] = None
    mongodb_uri: Optional[str] = None
    mongodb_db: str = "trainwithme"
    max_retries: int = 2
    retry_backoff: float = 1.0
    lock_timeout: Optional[float] = 300.0
    run_poll_interval: float = 1.0
    run_poll_max_interval: float = 8.0
    run_timeout: Optional[float] = 180.0
    fallback_any_category: bool = True
    sync_files_on_startup: bool = False
    cors_origins: List[str] = field(
        default_factory=lambda: ["https://trainwithme.in", "http://localhost:3000"]
    )
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        defaults = cls()
        origins = os.getenv("MCQ_CORS_ORIGINS")
        return cls(
            openai_api_key=os.getenv("OPENAI_API_KEY"),
            assistant_id=os.getenv("ASSISTANT_ID"),
            mongodb_uri=os.getenv("MONGODB_URI") or None,
            mongodb_db=os.getenv("MONGODB_DB", defaults.mongodb_db),
            max_retries=int(os.getenv("MCQ_MAX_RETRIES", str(defaults.max_retries))),
            retry_backoff=float(os.getenv("MCQ_RETRY_BACKOFF", str(defaults.retry_backoff))),
            lock_timeout=_optional_float("MCQ_LOCK_TIMEOUT", defaults.lock_timeout),
            run_poll_interval=float(
                os.getenv("MCQ_RUN_POLL_INTERVAL", str(defaults.run_poll_interval))
            ),
            run_poll_max_interval=float(
                os.getenv("MCQ_RUN_POLL_MAX_INTERVAL", str(defaults.run_poll_max_interval))
            ),
            run_timeout=_optional_float("MCQ_RUN_TIMEOUT", defaults.run_timeout),
            fallback_any_category=_flag("MCQ_FALLBACK_ANY_CATEGORY", defaults.fallback_any_category),
            sync_files_on_startup=_flag("MCQ_SYNC_FILES_ON_STARTUP", defaults.sync_files_on_startup),
            cors_origins=[o.strip() for o in origins.split(",") if o.strip()]
            if origins
            else defaults.cors_origins,
            host=os.getenv("MCQ_HOST", defaults.host),
            port=int(os.getenv("PORT", str(defaults.port))),
            log_level=os.getenv("LOG_LEVEL", defaults.log_level).upper(),
        )


__all__ = ["Settings"]

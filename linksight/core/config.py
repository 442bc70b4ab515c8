import logging
from typing import List, Optional

from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    ENV: str = "development"  # development | test | production
    CONFIG_STRICT: bool = False
    LOG_LEVEL: str = "INFO"

    # Database (Postgres in deployments, SQLite for local runs and tests)
    DATABASE_URL: Optional[str] = None
    TEST_DATABASE_URL: Optional[str] = None

    # Bearer tokens, shared secret with the Linksight auth service
    JWT_SECRET: Optional[str] = None
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRES_MINUTES: int = 60 * 24

    # Frontend
    APP_URL: str = "http://localhost:5173"
    CORS_ORIGINS: str = "http://localhost:5173,http://localhost:3000"  # comma-separated

    # Insert the default FREE/PRO/BUSINESS limits on startup when missing
    PREMIUM_SEED_ON_STARTUP: bool = False
    # Seconds a process reuses loaded limits before re-reading premium_limits
    PREMIUM_LIMITS_TTL_SECONDS: float = 30.0

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


settings = Settings()

REQUIRED_KEYS = ("DATABASE_URL", "JWT_SECRET")


def cors_origins(settings_obj: Optional[Settings] = None) -> List[str]:
    cfg = settings_obj or settings
    origins = [origin.strip() for origin in cfg.CORS_ORIGINS.split(",") if origin.strip()]
    if cfg.APP_URL and cfg.APP_URL not in origins:
        origins.append(cfg.APP_URL)
    return origins


def missing_config(settings_obj: Optional[Settings] = None) -> List[str]:
    cfg = settings_obj or settings
    return [key for key in REQUIRED_KEYS if not getattr(cfg, key, None)]


def validate_config(strict: Optional[bool] = None, settings_obj: Optional[Settings] = None, logger: Optional[logging.Logger] = None) -> bool:
    """Check that the service can reach its database and verify tokens.

    Strict mode raises RuntimeError; otherwise a warning is logged and the
    service starts (health endpoints report the database state). Only key
    names are logged, never values.

    Returns:
        True when nothing is missing
    """
    cfg = settings_obj or settings
    log = logger or logging.getLogger("linksight")
    strict_mode = strict if strict is not None else cfg.CONFIG_STRICT

    missing = missing_config(cfg)
    if not missing:
        return True

    message = f"Missing required configuration: {', '.join(missing)}"
    if strict_mode:
        raise RuntimeError(message)
    log.warning(message)
    return False

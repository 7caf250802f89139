from __future__ import annotations

import os

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Secrets may live in .env.local (not committed) while .env stays non-sensitive.
    # NOTE: tests set PYTEST_RUNNING=1 to avoid reading local .env/.env.local.
    model_config = SettingsConfigDict(
        env_file=None if os.environ.get("PYTEST_RUNNING") else (".env", ".env.local"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    env: str = "dev"
    app_name: str = "BilgeVerse-API"
    database_url: str = "sqlite:///./bilgeverse.db"
    log_level: str = "INFO"

    jwt_secret: str = "change-me-in-prod"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 120

    # Bootstrap admin, created/repaired at startup when both are set.
    admin_username: str = "admin"
    admin_password: str = ""

    # Periods / weekly reports
    default_total_weeks: int = 8
    max_review_points: int = 100


def _validate_settings(s: Settings) -> None:
    # Avoid shipping with the default secret outside dev.
    if (not s.jwt_secret) or (s.jwt_secret.strip() == "change-me-in-prod"):
        if str(s.env).lower() != "dev":
            raise RuntimeError("JWT_SECRET is not configured or still the default; set a strong random value in .env")

    if int(s.default_total_weeks) < 1:
        raise RuntimeError("DEFAULT_TOTAL_WEEKS must be at least 1")
    if int(s.max_review_points) < 0:
        raise RuntimeError("MAX_REVIEW_POINTS cannot be negative")


def get_settings() -> Settings:
    # python-dotenv only injects non-empty values, so an empty placeholder in .env
    # (e.g. ADMIN_PASSWORD=) never shadows a real environment variable.
    # Under pytest no dotenv file is read at all.
    if not os.environ.get("PYTEST_RUNNING"):
        from dotenv import dotenv_values

        def _inject_non_empty(path: str, *, allow_override_empty: bool) -> None:
            vals = dotenv_values(path)
            for k, v in (vals or {}).items():
                if k is None or v is None:
                    continue
                vv = str(v)
                if not vv.strip():
                    continue
                cur = os.environ.get(k)
                if cur is None:
                    os.environ[k] = vv
                elif allow_override_empty and str(cur).strip() == "":
                    os.environ[k] = vv

        # .env: only fill missing keys
        _inject_non_empty(".env", allow_override_empty=False)
        # .env.local: fill missing keys and replace empty placeholders
        _inject_non_empty(".env.local", allow_override_empty=True)

    settings = Settings()

    # We ship psycopg3 (`psycopg`), so normalize plain postgres URLs to
    # `postgresql+psycopg://...` to avoid SQLAlchemy defaulting to psycopg2.
    db_url = str(getattr(settings, "database_url", "") or "").strip()
    if db_url and ("+" not in db_url.split("://", 1)[0]):
        if db_url.startswith("postgresql://"):
            settings.database_url = "postgresql+psycopg://" + db_url[len("postgresql://") :]
        elif db_url.startswith("postgres://"):
            settings.database_url = "postgresql+psycopg://" + db_url[len("postgres://") :]

    # Serverless filesystems are read-only outside /tmp.
    if os.environ.get("VERCEL") or os.environ.get("VERCEL_ENV"):
        if settings.database_url.strip() == "sqlite:///./bilgeverse.db":
            settings.database_url = "sqlite:////tmp/bilgeverse.db"

    _validate_settings(settings)
    return settings

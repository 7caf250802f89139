from __future__ import annotations

from fastapi import APIRouter

from bilgeverse.core.config import get_settings

router = APIRouter(prefix="/api/system", tags=["system"])


BUILD_TAG = "bilgeverse-2026-10-19"


@router.get("/health")
def health():
    return {"status": "ok"}


@router.get("/info")
def info():
    s = get_settings()
    # No secrets here.
    return {
        "build_tag": BUILD_TAG,
        "app_name": s.app_name,
        "env": s.env,
        "database_url": "sqlite" if s.database_url.startswith("sqlite") else "other",
        "default_total_weeks": s.default_total_weeks,
        "max_review_points": s.max_review_points,
    }

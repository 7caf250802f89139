from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    # Timezone-aware; every created_at/updated_at default goes through here.
    return datetime.now(timezone.utc)


class ApiModel(BaseModel):
    """Request/response schema base.

    JSON on the wire is camelCase (``resetData``, ``pointsAwarded``); snake_case is
    accepted on input as well, and ORM rows validate straight into these models.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

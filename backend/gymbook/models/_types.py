"""Column helpers shared by the models."""

from datetime import datetime, timezone

import ulid


def new_id() -> str:
    return str(ulid.ULID())


def utc_now() -> datetime:
    return datetime.now(timezone.utc)

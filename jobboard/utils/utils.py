import uuid
from datetime import datetime, timedelta, timezone


def utc_now() -> datetime:
    # Naive UTC, which is what the DateTime columns store and return
    return datetime.now(timezone.utc).replace(tzinfo=None)


def hours_ago(hours: float) -> datetime:
    return utc_now() - timedelta(hours=hours)


def days_ago(days: float) -> datetime:
    return utc_now() - timedelta(days=days)


def new_id() -> str:
    return uuid.uuid4().hex

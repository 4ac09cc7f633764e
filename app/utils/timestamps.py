"""
UTC timestamps with millisecond precision.

Stale-room cleanup compares ``updatedOn`` values with a string filter, so every
timestamp written to the table must use exactly this format for lexical order to
match chronological order.
"""
from datetime import datetime, timezone


def format_timestamp(moment: datetime) -> str:
    """Format as ``YYYY-MM-DDTHH:MM:SS.mmmZ``; naive datetimes are taken as UTC."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)

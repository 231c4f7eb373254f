from datetime import datetime, time, timezone


def utcnow():
    """Naive UTC timestamp, matching the TIMESTAMP columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def start_of_day(moment: datetime):
    return datetime.combine(moment.date(), time.min)

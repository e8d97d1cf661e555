import datetime


# Hours are stored as text in this format, which sorts in time order
# when SQLite compares it as a string.
HOUR_FORMAT = "%Y-%m-%d %H:%M:%S"


def now() -> datetime.datetime:
    """
    Return the current time as a UTC timestamp.
    """
    return datetime.datetime.now(tz=datetime.UTC)


def to_utc(d: datetime.datetime) -> datetime.datetime:
    """
    Convert a timestamp to UTC.  A timestamp without a timezone is
    assumed to be UTC already.
    """
    if d.tzinfo is None:
        return d

    return d.astimezone(datetime.UTC)


def truncate_to_hour(d: datetime.datetime) -> datetime.datetime:
    """
    Round a timestamp down to the start of its hour.
    """
    return d.replace(minute=0, second=0, microsecond=0)


def format_hour(d: datetime.datetime) -> str:
    """
    Format a timestamp the way hours are stored, which is in UTC.
    """
    return to_utc(d).strftime(HOUR_FORMAT)

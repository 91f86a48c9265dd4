from datetime import datetime, timedelta, UTC


def timestamp():
    return datetime.now(UTC)


def as_timedelta(value):
    ''' Accept a timedelta or a number of hours '''
    if isinstance(value, timedelta):
        return value

    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"Invalid time window: {value!r}")

    return timedelta(hours=value)

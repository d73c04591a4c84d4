from datetime import datetime, timezone, timedelta

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

def get_expiry_time(minutes: int = 0, hours: int = 0) -> datetime:
    return utcnow() + timedelta(minutes=minutes, hours=hours)

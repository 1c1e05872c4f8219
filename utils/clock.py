from datetime import datetime, timezone
from typing import Callable

# Every timestamp comparison in the auth services goes through one of these
Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)

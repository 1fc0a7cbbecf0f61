import random
import string
import time
from datetime import datetime, timezone

_ID_ALPHABET = string.ascii_lowercase + string.digits


def new_identifier(prefix: str) -> str:
    """Purpose: Build a unique-enough identifier for sessions, messages, and requests.
    Inputs/Outputs: Input is a prefix such as "chat" or "req"; output looks like
        "chat_1734705022000_k3j9x0a1b".
    Side Effects / State: Reads the wall clock and the module random generator.
    Dependencies: Uses time and random; called by the session store and the routes.
    Failure Modes: None; collisions need the same millisecond and 36**9 luck.
    If Removed: Sessions and log lines lose their identifiers.
    Testing Notes: Verify the prefix and that two consecutive calls differ.
    """
    # Epoch milliseconds plus a short base36 suffix.
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"{prefix}_{int(time.time() * 1000)}_{suffix}"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def isoformat_utc(moment: datetime) -> str:
    """Purpose: Render a datetime as ISO-8601 UTC with millisecond precision.
    Inputs/Outputs: Input is an aware or naive (assumed UTC) datetime; output is
        e.g. "2024-12-20T14:30:22.000Z".
    Side Effects / State: None; pure function.
    Dependencies: Used for message timestamps and filename timestamps.
    Failure Modes: None.
    If Removed: Timestamps in the API and filenames lose their shared format.
    Testing Notes: Check the trailing "Z" and the three millisecond digits.
    """
    # Normalize to UTC and trim microseconds to milliseconds.
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def utc_now_iso() -> str:
    return isoformat_utc(utc_now())


def elapsed_ms(started: float) -> int:
    # started comes from time.perf_counter()
    return int((time.perf_counter() - started) * 1000)


def shorten(text: str, limit: int = 80) -> str:
    """Trim long values (prompts, URLs) for log lines."""
    if not text or len(text) <= limit:
        return text or ""
    return text[:limit] + "..."

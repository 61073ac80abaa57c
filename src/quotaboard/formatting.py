from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Optional

from .models import Account, AccountStatus, ModelQuota, QuotaLevel

NO_DATA = "-"

# Rich styles shared by the console printout and the Textual screen.
TONE_STYLES = {
    QuotaLevel.OK.value: "green",
    QuotaLevel.LOW.value: "yellow",
    QuotaLevel.CRITICAL.value: "red",
    "muted": "dim",
    AccountStatus.AVAILABLE.value: "green",
    AccountStatus.RATE_LIMITED.value: "yellow",
    AccountStatus.INVALID.value: "red",
    AccountStatus.DISABLED.value: "dim",
}

_WAIT_RE = re.compile(r"^(?:(\d+)h)?(?:(\d+)m)?(?:(\d+)s)?$")


def tone_style(tone: str) -> str:
    return TONE_STYLES.get(tone, "")


def format_wait(seconds: Optional[float]) -> Optional[str]:
    """Compact ``XhYmZs`` with leading zero units dropped; None when not waiting."""
    if seconds is None:
        return None
    total = int(seconds)
    if total <= 0:
        return None
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    if hours > 0:
        return f"{hours}h{minutes}m{secs}s"
    if minutes > 0:
        return f"{minutes}m{secs}s"
    return f"{secs}s"


def parse_wait(text: str) -> int:
    """Inverse of :func:`format_wait`."""
    match = _WAIT_RE.match(text.strip())
    if not match or not any(match.groups()):
        raise ValueError(f"not a wait duration: {text!r}")
    hours, minutes, seconds = (int(part) if part else 0 for part in match.groups())
    return hours * 3600 + minutes * 60 + seconds


def format_percentage(percentage: float) -> str:
    return f"{int(percentage)}%"


def format_cell(
    quota: Optional[ModelQuota], now: Optional[datetime] = None
) -> tuple[str, str]:
    """Return ``(text, tone)`` for one model/account cell."""
    if quota is None:
        return NO_DATA, "muted"
    text = format_percentage(quota.percentage)
    if quota.indicates_rate_limit:
        wait = format_wait(quota.wait_seconds(now))
        if wait:
            text = f"{text} (wait {wait})"
    return text, quota.level.value


def format_timestamp(value: Optional[datetime]) -> str:
    if value is None:
        return "never"
    local = value.astimezone()
    hour = local.hour % 12 or 12
    suffix = "AM" if local.hour < 12 else "PM"
    return (
        f"{local.month}/{local.day}/{local.year}, "
        f"{hour}:{local.minute:02}:{local.second:02} {suffix}"
    )


def format_reset(value: Optional[datetime]) -> str:
    return format_timestamp(value) if value is not None else "N/A"


def short_account_id(account_id: str) -> str:
    return account_id.split("@", 1)[0] or account_id


def status_label(account: Account) -> str:
    if account.status is not AccountStatus.RATE_LIMITED:
        return account.status.value
    if account.limited_count is not None and account.limited_total:
        return f"({account.limited_count}/{account.limited_total}) limited"
    if account.limited_count is not None:
        return f"({account.limited_count}) limited"
    return account.status.value


def status_tone(account: Account) -> str:
    return account.status.value


def utc_now() -> datetime:
    return datetime.now(timezone.utc)

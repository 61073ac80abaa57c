from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from quotaboard.formatting import (
    format_cell,
    format_percentage,
    format_timestamp,
    format_wait,
    parse_wait,
    short_account_id,
    status_label,
    tone_style,
)
from quotaboard.models import Account, AccountStatus, ModelQuota

NOW = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    ("seconds", "expected"),
    [
        (83025, "23h3m45s"),
        (45, "45s"),
        (1425, "23m45s"),
        (3600, "1h0m0s"),
        (60, "1m0s"),
        (45.9, "45s"),
        (0, None),
        (-10, None),
        (None, None),
    ],
)
def test_format_wait(seconds, expected) -> None:
    assert format_wait(seconds) == expected


@pytest.mark.parametrize("seconds", [1, 59, 61, 3599, 3661, 83025, 200000])
def test_format_wait_is_idempotent(seconds) -> None:
    text = format_wait(seconds)
    assert text is not None
    assert parse_wait(text) == seconds
    assert format_wait(parse_wait(text)) == text


def test_parse_wait_rejects_garbage() -> None:
    with pytest.raises(ValueError):
        parse_wait("")
    with pytest.raises(ValueError):
        parse_wait("soon")


def test_format_percentage_truncates() -> None:
    assert format_percentage(5) == "5%"
    assert format_percentage(33.9) == "33%"
    assert format_percentage(100.0) == "100%"


def test_format_cell_adds_wait_only_when_rate_limited() -> None:
    reset = NOW + timedelta(seconds=45)
    critical = ModelQuota("a", "gpt", 5, reset_at=reset)
    healthy = ModelQuota("a", "gpt", 80, reset_at=reset)
    flagged = ModelQuota("a", "gpt", 80, reset_at=reset, rate_limited=True)
    expired = ModelQuota("a", "gpt", 0, reset_at=NOW - timedelta(seconds=1))

    assert format_cell(critical, NOW) == ("5% (wait 45s)", "critical")
    assert format_cell(healthy, NOW) == ("80%", "ok")
    assert format_cell(flagged, NOW) == ("80% (wait 45s)", "critical")
    assert format_cell(expired, NOW) == ("0%", "critical")
    assert format_cell(ModelQuota("a", "gpt", 20), NOW) == ("20%", "low")
    assert format_cell(None, NOW) == ("-", "muted")


def test_tone_styles_follow_thresholds() -> None:
    assert tone_style("ok") == "green"
    assert tone_style("low") == "yellow"
    assert tone_style("critical") == "red"
    assert tone_style("muted") == "dim"
    assert tone_style("nonsense") == ""


def test_status_label_variants() -> None:
    assert status_label(Account("a", AccountStatus.AVAILABLE)) == "ok"
    assert status_label(Account("a", AccountStatus.INVALID)) == "invalid"
    assert (
        status_label(Account("a", AccountStatus.RATE_LIMITED, limited_count=3, limited_total=5))
        == "(3/5) limited"
    )
    assert status_label(Account("a", AccountStatus.RATE_LIMITED, limited_count=3)) == "(3) limited"
    assert status_label(Account("a", AccountStatus.RATE_LIMITED)) == "limited"


def test_short_account_id_and_timestamps() -> None:
    assert short_account_id("alice@example.com") == "alice"
    assert short_account_id("plain-id") == "plain-id"
    assert format_timestamp(None) == "never"
    local = datetime(2025, 3, 4, 15, 5, 9).astimezone()
    assert format_timestamp(local) == "3/4/2025, 3:05:09 PM"

"""Typed representation of one account-limits snapshot.

Raw documents come in two shapes. The documented one::

    {"accounts": [{"id": "a@x.com", "status": "limited", "limited_count": 3,
                   "last_used": "...", "reset_at": "...",
                   "models": {"gpt": {"percentage": 5, "reset_at": "..."}}}]}

and the proxy's native one, where accounts carry ``email``, ``enabled``,
``isInvalid``, ``lastUsed`` (epoch milliseconds), ``limits`` with
``remainingFraction``/``resetTime`` and ``modelRateLimits``.  Both decode to
the same :class:`Snapshot`.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, MutableMapping, Optional

logger = logging.getLogger("quotaboard.models")

OK_THRESHOLD = 30.0
CRITICAL_THRESHOLD = 10.0


class AccountStatus(str, Enum):
    AVAILABLE = "ok"
    RATE_LIMITED = "limited"
    INVALID = "invalid"
    DISABLED = "disabled"


_STATUS_ALIASES = {
    "ok": AccountStatus.AVAILABLE,
    "available": AccountStatus.AVAILABLE,
    "limited": AccountStatus.RATE_LIMITED,
    "rate_limited": AccountStatus.RATE_LIMITED,
    "ratelimited": AccountStatus.RATE_LIMITED,
    "invalid": AccountStatus.INVALID,
    "disabled": AccountStatus.DISABLED,
}


class QuotaLevel(str, Enum):
    OK = "ok"
    LOW = "low"
    CRITICAL = "critical"


def classify_percentage(percentage: float) -> QuotaLevel:
    """Bucket a remaining percentage: >30 ok, 10..30 low, <10 critical."""
    if percentage > OK_THRESHOLD:
        return QuotaLevel.OK
    if percentage >= CRITICAL_THRESHOLD:
        return QuotaLevel.LOW
    return QuotaLevel.CRITICAL


class ModelError(Exception):
    """A field-level problem inside an otherwise readable document."""


class MissingField(ModelError):
    def __init__(self, name: str, *, account: Optional[str] = None) -> None:
        self.name = name
        self.account = account
        where = f" on account {account}" if account else ""
        super().__init__(f"missing field '{name}'{where}")


class InvalidStatus(ModelError):
    def __init__(self, raw: object, *, account: Optional[str] = None) -> None:
        self.raw = raw
        self.account = account
        where = f" on account {account}" if account else ""
        super().__init__(f"unknown status {raw!r}{where}")


class MalformedQuota(ModelError):
    def __init__(self, account: str, model: str, value: object = None) -> None:
        self.account = account
        self.model = model
        self.value = value
        super().__init__(
            f"malformed quota for {account}/{model}: {value!r} is not a percentage in [0, 100]"
        )


@dataclass(frozen=True)
class Account:
    id: str
    status: AccountStatus
    limited_count: Optional[int] = None
    limited_total: Optional[int] = None
    last_used: Optional[datetime] = None
    reset_at: Optional[datetime] = None


@dataclass(frozen=True)
class ModelQuota:
    account_id: str
    model: str
    percentage: float
    reset_at: Optional[datetime] = None
    rate_limited: bool = False

    @property
    def level(self) -> QuotaLevel:
        if self.rate_limited:
            return QuotaLevel.CRITICAL
        return classify_percentage(self.percentage)

    @property
    def indicates_rate_limit(self) -> bool:
        return self.level is QuotaLevel.CRITICAL

    def wait_seconds(self, now: Optional[datetime] = None) -> Optional[int]:
        """Seconds until reset relative to ``now``; None if unknown or already past."""
        if self.reset_at is None:
            return None
        now = now or datetime.now(timezone.utc)
        seconds = int((self.reset_at - now).total_seconds())
        return seconds if seconds > 0 else None


@dataclass(frozen=True)
class Snapshot:
    accounts: tuple[Account, ...]
    models: tuple[str, ...]
    quotas: Mapping[tuple[str, str], ModelQuota]
    fetched_at: datetime
    timestamp: Optional[str] = None
    warnings: tuple[str, ...] = field(default_factory=tuple)

    @property
    def total_rows(self) -> int:
        return len(self.models)

    def quota(self, model: str, account_id: str) -> Optional[ModelQuota]:
        return self.quotas.get((model, account_id))


@dataclass(frozen=True)
class Summary:
    total: int = 0
    available: int = 0
    rate_limited: int = 0
    invalid: int = 0
    disabled: int = 0


def summarize(snapshot: Optional[Snapshot]) -> Summary:
    if snapshot is None:
        return Summary()
    counts = {status: 0 for status in AccountStatus}
    for account in snapshot.accounts:
        counts[account.status] += 1
    return Summary(
        total=len(snapshot.accounts),
        available=counts[AccountStatus.AVAILABLE],
        rate_limited=counts[AccountStatus.RATE_LIMITED],
        invalid=counts[AccountStatus.INVALID],
        disabled=counts[AccountStatus.DISABLED],
    )


def build_snapshot(raw: object, *, now: Optional[datetime] = None) -> Snapshot:
    """Decode a parsed JSON document into a :class:`Snapshot`.

    Raises :class:`MissingField` when the document has no ``accounts`` list.
    Broken accounts and quota entries are dropped with a warning instead of
    failing the whole snapshot.
    """
    if not isinstance(raw, Mapping):
        raise MissingField("accounts")
    accounts_raw = raw.get("accounts")
    if not isinstance(accounts_raw, list):
        raise MissingField("accounts")

    warnings: list[str] = []
    accounts: list[Account] = []
    quotas: MutableMapping[tuple[str, str], ModelQuota] = {}
    model_names: set[str] = set()

    for index, entry in enumerate(accounts_raw):
        try:
            account, account_quotas = _decode_account(entry, warnings)
        except ModelError as exc:
            _warn(warnings, f"Skipping account #{index}: {exc}")
            continue
        if any(existing.id == account.id for existing in accounts):
            _warn(warnings, f"Skipping duplicate account {account.id}")
            continue
        accounts.append(account)
        for quota in account_quotas:
            quotas[(quota.model, account.id)] = quota
            model_names.add(quota.model)

    declared = raw.get("models")
    if isinstance(declared, list):
        model_names.update(name for name in declared if isinstance(name, str))

    timestamp = raw.get("timestamp")
    return Snapshot(
        accounts=tuple(accounts),
        models=tuple(sorted(model_names)),
        quotas=MappingProxyType(dict(quotas)),
        fetched_at=now or datetime.now(timezone.utc),
        timestamp=str(timestamp) if timestamp is not None else None,
        warnings=tuple(warnings),
    )


# ----------------------------------------------------------------------
# Decoding helpers


def _warn(warnings: list[str], message: str) -> None:
    logger.warning(message)
    warnings.append(message)


def _decode_account(
    entry: object, warnings: list[str]
) -> tuple[Account, list[ModelQuota]]:
    if not isinstance(entry, Mapping):
        raise MissingField("id")
    account_id = entry.get("id") or entry.get("email")
    if not isinstance(account_id, str) or not account_id.strip():
        raise MissingField("id")
    account_id = account_id.strip()

    rate_flags = _rate_limit_flags(entry.get("modelRateLimits"))
    status, limited_count, limited_total = _decode_status(
        entry, account_id, rate_flags
    )

    quotas = _decode_quotas(entry, account_id, rate_flags, warnings)

    last_used = _optional_datetime(
        entry, ("last_used", "lastUsed"), account_id, warnings
    )
    reset_at = _optional_datetime(entry, ("reset_at", "resetAt"), account_id, warnings)
    if reset_at is None:
        resets = [quota.reset_at for quota in quotas if quota.reset_at is not None]
        reset_at = min(resets) if resets else None

    account = Account(
        id=account_id,
        status=status,
        limited_count=limited_count,
        limited_total=limited_total,
        last_used=last_used,
        reset_at=reset_at,
    )
    return account, quotas


def _decode_status(
    entry: Mapping[str, Any],
    account_id: str,
    rate_flags: Mapping[str, bool],
) -> tuple[AccountStatus, Optional[int], Optional[int]]:
    raw_status = entry.get("status")
    if raw_status is not None:
        if not isinstance(raw_status, str):
            raise InvalidStatus(raw_status, account=account_id)
        status = _STATUS_ALIASES.get(raw_status.strip().lower())
        if status is None:
            raise InvalidStatus(raw_status, account=account_id)
        limited_count = None
        if status is AccountStatus.RATE_LIMITED:
            limited_count = _coerce_count(entry.get("limited_count"))
        return status, limited_count, None

    native_keys = ("isInvalid", "enabled", "modelRateLimits", "limits")
    if not any(key in entry for key in native_keys):
        raise MissingField("status", account=account_id)
    if entry.get("isInvalid") is True:
        return AccountStatus.INVALID, None, None
    if entry.get("enabled") is False:
        return AccountStatus.DISABLED, None, None
    limited = sum(1 for flag in rate_flags.values() if flag)
    if limited:
        return AccountStatus.RATE_LIMITED, limited, len(rate_flags)
    return AccountStatus.AVAILABLE, None, None


def _rate_limit_flags(raw: object) -> Mapping[str, bool]:
    if not isinstance(raw, Mapping):
        return {}
    flags: dict[str, bool] = {}
    for model, data in raw.items():
        if isinstance(data, Mapping):
            flags[str(model)] = data.get("isRateLimited") is True
    return flags


def _decode_quotas(
    entry: Mapping[str, Any],
    account_id: str,
    rate_flags: Mapping[str, bool],
    warnings: list[str],
) -> list[ModelQuota]:
    if "models" in entry:
        raw_models = entry.get("models")
        native = False
    else:
        raw_models = entry.get("limits")
        native = True
    if raw_models is None:
        return []
    if not isinstance(raw_models, Mapping):
        _warn(warnings, f"Ignoring non-object model data on account {account_id}")
        return []

    quotas: list[ModelQuota] = []
    for model, data in raw_models.items():
        model = str(model)
        try:
            quotas.append(
                _decode_quota(account_id, model, data, native, rate_flags, warnings)
            )
        except MalformedQuota as exc:
            _warn(warnings, f"Dropping entry: {exc}")
    return quotas


def _decode_quota(
    account_id: str,
    model: str,
    data: object,
    native: bool,
    rate_flags: Mapping[str, bool],
    warnings: list[str],
) -> ModelQuota:
    if not isinstance(data, Mapping):
        raise MalformedQuota(account_id, model, data)
    if native:
        raw_value = data.get("remainingFraction")
        fraction = _coerce_number(raw_value)
        percentage = fraction * 100 if fraction is not None else None
    else:
        raw_value = data.get("percentage")
        percentage = _coerce_number(raw_value)
    if percentage is None or not 0 <= percentage <= 100:
        raise MalformedQuota(account_id, model, raw_value)

    reset_at = _optional_datetime(
        data, ("reset_at", "resetTime"), f"{account_id}/{model}", warnings
    )
    rate_limited = rate_flags.get(model, False) or data.get("rate_limited") is True
    return ModelQuota(
        account_id=account_id,
        model=model,
        percentage=percentage,
        reset_at=reset_at,
        rate_limited=rate_limited,
    )


def _optional_datetime(
    data: Mapping[str, Any],
    keys: tuple[str, ...],
    owner: str,
    warnings: list[str],
) -> Optional[datetime]:
    for key in keys:
        value = data.get(key)
        if value is None:
            continue
        try:
            return parse_datetime(value)
        except ValueError:
            _warn(warnings, f"Ignoring unparseable {key}={value!r} on {owner}")
            return None
    return None


def parse_datetime(value: object) -> datetime:
    """Parse an ISO-8601 string or an epoch number (seconds or milliseconds)."""
    if isinstance(value, bool):
        raise ValueError(f"not a timestamp: {value!r}")
    if isinstance(value, (int, float)):
        try:
            seconds = value / 1000 if value > 1e11 else value
            return datetime.fromtimestamp(seconds, timezone.utc)
        except (OverflowError, OSError) as exc:
            raise ValueError(f"timestamp out of range: {value!r}") from exc
    if isinstance(value, str):
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
    raise ValueError(f"not a timestamp: {value!r}")


def _coerce_number(value: object) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            return None
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def _coerce_count(value: object) -> Optional[int]:
    number = _coerce_number(value)
    if number is None or number < 0:
        return None
    return int(number)

"""Retry policy: strategy parsing and interval functions."""

from __future__ import annotations

from dataclasses import dataclass
import math
import re
from typing import Any, Callable, Mapping, Union


class ConfigError(Exception):
    pass


STRATEGY_TYPE = "retry-strategy.type"
FIXED_DELAY = "retry-strategy.fixed-delay.delay"
INITIAL_BACKOFF = "retry-strategy.exponential-delay.initial-backoff"
MAX_BACKOFF = "retry-strategy.exponential-delay.max-backoff"
BACKOFF_MULTIPLIER = "retry-strategy.exponential-delay.backoff-multiplier"
MAX_RETRIES = "max-retries"

FIXED_DELAY_TYPE = "fixed-delay"
EXPONENTIAL_DELAY_TYPE = "exponential-delay"

DEFAULT_STRATEGY_TYPE = FIXED_DELAY_TYPE
DEFAULT_MAX_RETRIES = 3

DURATION_UNITS_MS = {
    "ms": 1,
    "milli": 1,
    "millis": 1,
    "millisecond": 1,
    "milliseconds": 1,
    "s": 1000,
    "sec": 1000,
    "second": 1000,
    "seconds": 1000,
    "m": 60_000,
    "min": 60_000,
    "minute": 60_000,
    "minutes": 60_000,
    "h": 3_600_000,
    "hour": 3_600_000,
    "hours": 3_600_000,
    "d": 86_400_000,
    "day": 86_400_000,
    "days": 86_400_000,
}

_DURATION_RE = re.compile(r"^\s*(-?\d+)\s*([a-zA-Z]*)\s*$")

IntervalFunction = Callable[[int], int]


@dataclass(frozen=True)
class FixedDelay:
    delay_ms: int


@dataclass(frozen=True)
class ExponentialDelay:
    initial_backoff_ms: int
    max_backoff_ms: int
    multiplier: float


RetryStrategy = Union[FixedDelay, ExponentialDelay]


@dataclass(frozen=True)
class RetryConfig:
    max_attempts: int
    interval_function: IntervalFunction


def create(options: Mapping[str, Any]) -> RetryConfig:
    """Build a RetryConfig from string-keyed retry options.

    Raises ConfigError when the selected strategy is unknown or one of its
    keys is missing or malformed.
    """
    strategy = parse_strategy(options)
    max_attempts = _parse_int(options.get(MAX_RETRIES, DEFAULT_MAX_RETRIES), MAX_RETRIES)
    if max_attempts < 1:
        raise ConfigError(f"{MAX_RETRIES} must be at least 1, got {max_attempts}")
    return RetryConfig(max_attempts=max_attempts, interval_function=interval_function(strategy))


def parse_strategy(options: Mapping[str, Any]) -> RetryStrategy:
    strategy_type = str(options.get(STRATEGY_TYPE) or DEFAULT_STRATEGY_TYPE).strip().lower()

    if strategy_type == FIXED_DELAY_TYPE:
        return FixedDelay(delay_ms=_parse_duration_option(options, FIXED_DELAY))

    if strategy_type == EXPONENTIAL_DELAY_TYPE:
        initial = _parse_duration_option(options, INITIAL_BACKOFF)
        maximum = _parse_duration_option(options, MAX_BACKOFF)
        multiplier = _parse_multiplier(_require(options, BACKOFF_MULTIPLIER))
        if initial > maximum:
            raise ConfigError(
                f"{INITIAL_BACKOFF} ({initial}ms) must not exceed {MAX_BACKOFF} ({maximum}ms)"
            )
        return ExponentialDelay(
            initial_backoff_ms=initial,
            max_backoff_ms=maximum,
            multiplier=multiplier,
        )

    raise ConfigError(
        f"Unknown {STRATEGY_TYPE}: {strategy_type!r} "
        f"(expected {FIXED_DELAY_TYPE!r} or {EXPONENTIAL_DELAY_TYPE!r})"
    )


def interval_function(strategy: RetryStrategy) -> IntervalFunction:
    if isinstance(strategy, FixedDelay):
        return _fixed_interval(strategy.delay_ms)
    if isinstance(strategy, ExponentialDelay):
        return _exponential_interval(
            strategy.initial_backoff_ms,
            strategy.max_backoff_ms,
            strategy.multiplier,
        )
    raise ConfigError(f"Unsupported retry strategy: {type(strategy).__name__}")


def _fixed_interval(delay_ms: int) -> IntervalFunction:
    def interval(attempt: int) -> int:
        _check_attempt(attempt)
        return delay_ms

    return interval


def _exponential_interval(initial_ms: int, max_ms: int, multiplier: float) -> IntervalFunction:
    def interval(attempt: int) -> int:
        _check_attempt(attempt)
        try:
            raw = initial_ms * multiplier ** (attempt - 1)
        except OverflowError:
            return max_ms
        return int(min(raw, max_ms))

    return interval


def _check_attempt(attempt: int) -> None:
    if attempt < 1:
        raise ValueError(f"attempt numbering starts at 1, got {attempt}")


def parse_duration_ms(value: Any) -> int:
    """Parse a duration such as 10s, 15ms or 1min into milliseconds.

    Bare numbers are read as milliseconds.
    """
    if isinstance(value, bool):
        raise ConfigError(f"Invalid duration: {value!r}")
    if isinstance(value, int):
        millis = value
    elif isinstance(value, float):
        if not value.is_integer():
            raise ConfigError(f"Invalid duration: {value!r}")
        millis = int(value)
    elif isinstance(value, str):
        match = _DURATION_RE.match(value)
        if not match:
            raise ConfigError(f"Invalid duration: {value!r}")
        amount, unit = match.groups()
        unit = unit.lower() or "ms"
        if unit not in DURATION_UNITS_MS:
            raise ConfigError(f"Unknown duration unit {unit!r} in {value!r}")
        millis = int(amount) * DURATION_UNITS_MS[unit]
    else:
        raise ConfigError(f"Invalid duration: {value!r}")

    if millis < 0:
        raise ConfigError(f"Duration must not be negative: {value!r}")
    return millis


def _parse_duration_option(options: Mapping[str, Any], key: str) -> int:
    value = _require(options, key)
    try:
        return parse_duration_ms(value)
    except ConfigError as exc:
        raise ConfigError(f"{key}: {exc}") from exc


def _parse_multiplier(value: Any) -> float:
    if isinstance(value, bool):
        raise ConfigError(f"{BACKOFF_MULTIPLIER} must be a number, got {value!r}")
    try:
        multiplier = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{BACKOFF_MULTIPLIER} must be a number, got {value!r}") from exc
    if not math.isfinite(multiplier) or multiplier < 1:
        raise ConfigError(f"{BACKOFF_MULTIPLIER} must be a finite number of at least 1, got {value!r}")
    return multiplier


def _parse_int(value: Any, key: str) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"{key} must be an integer, got {value!r}")
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError as exc:
        raise ConfigError(f"{key} must be an integer, got {value!r}") from exc


def _require(options: Mapping[str, Any], key: str) -> Any:
    value = options.get(key)
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ConfigError(f"Missing required retry option: {key}")
    return value

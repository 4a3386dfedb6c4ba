"""Execution context threaded through a merge run.

Holds everything the merge core would otherwise read from ambient global
state: the acting user, the clock, the timezone used for every date rendered
into a document or a status cell, and locale conventions for formulas.
"""

from __future__ import annotations

import getpass
import os
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Callable
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .errors import ConfigError
from .profiles import DEFAULT_FORMULA_SEPARATOR, DEFAULT_SUCCESS_MESSAGE, Profile

USER_EMAIL_ENV = "DOCMERGE_USER_EMAIL"

# Longest tokens first so "yyyy" wins over "yy".
_PATTERN_TOKENS = {
    "yyyy": "%Y",
    "yy": "%y",
    "MM": "%m",
    "dd": "%d",
    "HH": "%H",
    "mm": "%M",
    "ss": "%S",
}
_PATTERN_RE = re.compile("|".join(sorted(_PATTERN_TOKENS, key=len, reverse=True)))

DATE_PATTERN = "yyyy-MM-dd"
YEAR_PATTERN = "yyyy"
TIMESTAMP_PATTERN = "yyyy-MM-dd HH:mm:ss"


def to_strftime(pattern: str) -> str:
    """Translate a ``yyyy-MM-dd`` style pattern into a ``strftime`` format."""

    escaped = pattern.replace("%", "%%")
    return _PATTERN_RE.sub(lambda m: _PATTERN_TOKENS[m.group(0)], escaped)


class IdentityProvider(ABC):
    """Reports who is running the merge."""

    @abstractmethod
    def current_user_email(self) -> str:
        """Return the e-mail (or login) of the acting user."""


@dataclass(frozen=True)
class StaticIdentityProvider(IdentityProvider):
    email: str

    def current_user_email(self) -> str:
        return self.email


@dataclass(frozen=True)
class SystemIdentityProvider(IdentityProvider):
    """Identity from ``DOCMERGE_USER_EMAIL``, then the profile, then the OS user."""

    fallback: str | None = None

    def current_user_email(self) -> str:
        env = os.getenv(USER_EMAIL_ENV)
        if env:
            return env
        if self.fallback:
            return self.fallback
        return getpass.getuser()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ExecutionContext:
    identity: IdentityProvider
    timezone: str = "UTC"
    formula_separator: str = DEFAULT_FORMULA_SEPARATOR
    success_message: str = DEFAULT_SUCCESS_MESSAGE
    clock: Callable[[], datetime] = field(default=_utcnow)

    def __post_init__(self) -> None:
        try:
            ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ConfigError(f"unknown timezone: {self.timezone}") from exc
        if not self.formula_separator:
            raise ConfigError("formula separator must not be empty")

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    def now(self) -> datetime:
        return self.clock()

    def user_email(self) -> str:
        return self.identity.current_user_email()

    def format(self, value: datetime | date, pattern: str) -> str:
        """Format a timestamp or date in the context timezone.

        Aware datetimes are converted to the context timezone; naive values
        and plain dates are taken as already expressed in it.
        """

        if isinstance(value, datetime) and value.tzinfo is not None:
            value = value.astimezone(self.tz)
        return value.strftime(to_strftime(pattern))

    @classmethod
    def from_profile(cls, profile: Profile) -> "ExecutionContext":
        return cls(
            identity=SystemIdentityProvider(fallback=profile.user_email),
            timezone=profile.timezone,
            formula_separator=profile.formula_separator,
            success_message=profile.success_message,
        )

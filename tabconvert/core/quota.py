"""
Daily conversion quota for unauthenticated users.

Authenticated callers are unlimited. Visitors get a fixed number of
conversions per local calendar day, tracked in a single usage record.

Rollover is lazy: no timer runs at midnight. Any read that finds a record
from another day treats it as zero usage, and the next write replaces it.
Storage failures and corrupt records degrade to an empty record.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Optional

from tabconvert.storage.models import UsageRecord
from tabconvert.storage.repository import KeyValueStorage, StorageUnavailable

logger = logging.getLogger(__name__)

VISITOR_DAILY_LIMIT = 5
WARNING_THRESHOLD = 2
STORAGE_KEY = "csv_conversion_tracking"


class StatusType(Enum):
    """Quota status shown to the user."""
    UNLIMITED = "unlimited"
    LIMIT_REACHED = "limit_reached"
    WARNING = "warning"
    NORMAL = "normal"


@dataclass(frozen=True)
class LimitCheck:
    """Answer to "may this caller convert another file?"."""
    allowed: bool
    remaining: Optional[int]
    used: int
    limit: Optional[int]


@dataclass(frozen=True)
class QuotaStatus:
    """Human-readable quota state; counts are None when unlimited."""
    type: StatusType
    message: str
    remaining: Optional[int] = None
    used: Optional[int] = None
    limit: Optional[int] = None


@dataclass(frozen=True)
class RemainingTime:
    """Time left until the next local midnight."""
    hours_until_reset: int
    reset_time_label: str


def date_key(moment: datetime) -> str:
    """Local calendar day as YYYY-MM-DD."""
    return f"{moment.year:04d}-{moment.month:02d}-{moment.day:02d}"


class QuotaTracker:
    """Per-day conversion counter backed by an injected key/value store."""

    def __init__(
        self,
        storage: KeyValueStorage,
        daily_limit: int = VISITOR_DAILY_LIMIT,
        warning_threshold: int = WARNING_THRESHOLD,
        storage_key: str = STORAGE_KEY,
        clock: Callable[[], datetime] = datetime.now
    ):
        """Initialize the tracker.

        Args:
            storage: Client-local key/value store holding the usage record
            daily_limit: Conversions allowed per day for visitors
            warning_threshold: Remaining count at or below which status warns
            storage_key: Key the usage record is stored under
            clock: Source of the current local time

        Raises:
            ValueError: If the limit or threshold is out of range
        """
        if daily_limit <= 0:
            raise ValueError("daily_limit must be > 0")
        if warning_threshold < 0:
            raise ValueError("warning_threshold must be >= 0")
        self.storage = storage
        self.daily_limit = daily_limit
        self.warning_threshold = warning_threshold
        self.storage_key = storage_key
        self.clock = clock

    def _today(self) -> str:
        return date_key(self.clock())

    def _parse(self, raw: Optional[str], today: str) -> UsageRecord:
        if raw is None:
            return UsageRecord(date_key=today, count=0)
        try:
            record = UsageRecord.from_json(raw)
        except (ValueError, TypeError) as e:
            logger.warning("Discarding corrupt usage record: %s", e)
            return UsageRecord(date_key=today, count=0)
        if record.date_key != today:
            return UsageRecord(date_key=today, count=0)
        return record

    def get_usage_record(self) -> UsageRecord:
        """Load today's record, rolling over a stale one."""
        today = self._today()
        try:
            raw = self.storage.get(self.storage_key)
        except StorageUnavailable as e:
            logger.warning("Usage storage unavailable, assuming no usage: %s", e)
            raw = None
        return self._parse(raw, today)

    def check_limit(self, is_authenticated: bool) -> LimitCheck:
        """Check whether another conversion is allowed."""
        if is_authenticated:
            return LimitCheck(allowed=True, remaining=None, used=0, limit=None)

        record = self.get_usage_record()
        remaining = self.daily_limit - record.count
        return LimitCheck(
            allowed=remaining > 0,
            remaining=max(0, remaining),
            used=record.count,
            limit=self.daily_limit
        )

    def increment_count(self, is_authenticated: bool) -> None:
        """Record one completed conversion for a visitor."""
        if is_authenticated:
            return

        today = self._today()

        def _bump(raw: Optional[str]) -> str:
            return self._parse(raw, today).incremented().to_json()

        try:
            self.storage.update(self.storage_key, _bump)
        except StorageUnavailable as e:
            logger.warning("Could not persist usage increment: %s", e)

    def get_status(self, is_authenticated: bool) -> QuotaStatus:
        """Describe the quota state for display."""
        if is_authenticated:
            return QuotaStatus(
                type=StatusType.UNLIMITED,
                message="Unlimited conversions with your free account"
            )

        check = self.check_limit(False)
        remaining = check.remaining

        if remaining == 0:
            status_type = StatusType.LIMIT_REACHED
            message = "Free daily limit reached - sign up for unlimited"
        elif remaining <= self.warning_threshold:
            status_type = StatusType.WARNING
            message = f"{remaining} conversion{'' if remaining == 1 else 's'} remaining today"
        else:
            status_type = StatusType.NORMAL
            message = f"{remaining} conversions remaining today"

        return QuotaStatus(
            type=status_type,
            message=message,
            remaining=remaining,
            used=check.used,
            limit=check.limit
        )

    def get_remaining_time(self) -> RemainingTime:
        """Hours (rounded up) until the next local midnight."""
        now = self.clock()
        midnight = (now + timedelta(days=1)).replace(hour=0, minute=0, second=0, microsecond=0)
        seconds = (midnight - now).total_seconds()
        return RemainingTime(
            hours_until_reset=math.ceil(seconds / 3600),
            reset_time_label=midnight.strftime("%H:%M")
        )

    def reset_count(self) -> None:
        """Remove the stored record."""
        try:
            self.storage.remove(self.storage_key)
        except StorageUnavailable as e:
            logger.warning("Could not reset usage record: %s", e)

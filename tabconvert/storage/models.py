"""
Data models for storage layer.

Defines the persisted usage record and its wire form.
"""

import json
from dataclasses import dataclass


@dataclass(frozen=True)
class UsageRecord:
    """Daily conversion counter for one tracking context.

    Keyed by the local calendar day; a record from any other day
    is treated as zero usage.
    """
    date_key: str
    count: int = 0

    def __post_init__(self):
        """Validate the counter is non-negative."""
        if not isinstance(self.count, int) or isinstance(self.count, bool):
            raise ValueError("count must be an integer")
        if self.count < 0:
            raise ValueError("count must be >= 0")
        if not isinstance(self.date_key, str) or not self.date_key:
            raise ValueError("date_key must be a non-empty string")

    def incremented(self) -> "UsageRecord":
        """Return a copy with the count increased by one."""
        return UsageRecord(date_key=self.date_key, count=self.count + 1)

    def to_json(self) -> str:
        return json.dumps({"date": self.date_key, "count": self.count})

    @classmethod
    def from_json(cls, raw: str) -> "UsageRecord":
        """Parse a stored record.

        Raises:
            ValueError: If the payload is not a valid record
        """
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError("usage record must be a JSON object")
        if "date" not in data or "count" not in data:
            raise ValueError("usage record is missing 'date' or 'count'")
        return cls(date_key=data["date"], count=data["count"])

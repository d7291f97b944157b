"""
Conversion hub.

Entry point for a conversion: gates the file load on the visitor quota,
parses the upload, and opens a wizard whose successful runs are counted
against the quota.
"""

import logging
from typing import Any, Callable, Mapping, Optional, Sequence

from .analytics import AnalyticsSink, track_limit_event
from .formats import ConversionFormat
from .parsers import (
    ALLOWED_EXTENSIONS,
    MAX_UPLOAD_BYTES,
    ParsedFile,
    file_extension,
    parse_file,
    parse_text,
    validate_upload,
)
from .quota import LimitCheck, QuotaTracker
from .wizard import ConversionWizard, LimitPrompt

logger = logging.getLogger(__name__)


def log_limit_prompt(check: LimitCheck) -> None:
    """Fallback prompt: report the refusal through the log."""
    logger.warning(
        "Free daily limit reached (%s of %s conversions used) - sign up for unlimited",
        check.used, check.limit
    )


class ConversionHub:
    """Coordinates quota, parsing and wizard sessions."""

    def __init__(
        self,
        tracker: QuotaTracker,
        is_authenticated: Callable[[], bool] = lambda: False,
        on_limit_reached: Optional[LimitPrompt] = None,
        analytics: Optional[AnalyticsSink] = None,
        max_size_bytes: int = MAX_UPLOAD_BYTES,
        allowed_extensions: Sequence[str] = ALLOWED_EXTENSIONS,
        option_overrides: Optional[Mapping[str, Mapping[str, Any]]] = None
    ):
        self.tracker = tracker
        self.is_authenticated = is_authenticated
        self.on_limit_reached = on_limit_reached or log_limit_prompt
        self.analytics = analytics
        self.max_size_bytes = max_size_bytes
        self.allowed_extensions = tuple(allowed_extensions)
        self.option_overrides = option_overrides or {}

    def _quota_allows(self) -> Optional[LimitCheck]:
        authenticated = self.is_authenticated()
        check = self.tracker.check_limit(authenticated)
        if check.allowed:
            return check
        track_limit_event(self.analytics, "limit_reached", check.remaining, authenticated)
        self.on_limit_reached(check)
        return None

    def open_file(self, path: str) -> Optional[ConversionWizard]:
        """Load a file from disk and open a wizard for it.

        Returns:
            A wizard, or None if the quota refused the load

        Raises:
            FileNotFoundError: If the file doesn't exist
            UploadRejected: If the file fails validation or parsing
        """
        check = self._quota_allows()
        if check is None:
            return None
        parsed = parse_file(path, self.max_size_bytes, self.allowed_extensions)
        return self._start(parsed, check)

    def open_text(self, filename: str, text: str) -> Optional[ConversionWizard]:
        """Load in-memory file contents and open a wizard for them.

        Raises:
            UploadRejected: If the content fails validation or parsing
        """
        check = self._quota_allows()
        if check is None:
            return None
        validate_upload(
            filename, len(text.encode("utf-8")), self.max_size_bytes, self.allowed_extensions
        )
        parsed = parse_text(filename, text)
        return self._start(parsed, check)

    def _start(self, parsed: ParsedFile, check: LimitCheck) -> ConversionWizard:
        authenticated = self.is_authenticated()
        track_limit_event(
            self.analytics, "conversion_started", check.remaining, authenticated,
            file_type=file_extension(parsed.filename), rows=len(parsed.rows)
        )
        logger.info("Opened %s with %d rows", parsed.filename, len(parsed.rows))
        return ConversionWizard(
            rows=parsed.rows,
            tracker=self.tracker,
            is_authenticated=self.is_authenticated,
            on_limit_reached=self.on_limit_reached,
            on_complete=self._on_conversion_complete,
            source_name=parsed.filename,
            option_overrides=self.option_overrides,
            analytics=self.analytics
        )

    def _on_conversion_complete(self, fmt: ConversionFormat, content: str) -> None:
        self.tracker.increment_count(self.is_authenticated())
        logger.info("Completed conversion to %s (%d chars)", fmt.id, len(content))

"""
Conversion wizard state machine.

Three states, linear with back-navigation:

    SelectFormat -> ConfigureOptions -> RunAndDownload

Each state carries only the data valid in it, so "configuring options
with no format selected" cannot be represented. Format selection and
conversion runs are gated on the visitor quota; a refused gate calls the
blocking prompt once and leaves the state unchanged.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Union

from .analytics import AnalyticsSink, track_event, track_limit_event
from .converters import ConversionFailed, convert, estimate_size_kb, get_converter, validate_options
from .download import FALLBACK_STEM, FileDownloadSink
from .formats import FORMAT_CATALOG, ConversionFormat
from .quota import LimitCheck, QuotaTracker

logger = logging.getLogger(__name__)


class WizardStep(Enum):
    """Wizard steps in display order."""
    SELECT_FORMAT = 1
    CONFIGURE_OPTIONS = 2
    RUN_AND_DOWNLOAD = 3


class InvalidTransition(Exception):
    """Raised when an operation is not valid in the current wizard state."""


@dataclass(frozen=True)
class SelectFormat:
    step = WizardStep.SELECT_FORMAT


@dataclass(frozen=True)
class ConfigureOptions:
    format: ConversionFormat
    options: Dict[str, Any] = field(default_factory=dict)
    step = WizardStep.CONFIGURE_OPTIONS


@dataclass(frozen=True)
class RunAndDownload:
    format: ConversionFormat
    options: Dict[str, Any]
    result_content: Optional[str] = None
    error: Optional[str] = None
    step = WizardStep.RUN_AND_DOWNLOAD


WizardState = Union[SelectFormat, ConfigureOptions, RunAndDownload]

LimitPrompt = Callable[[LimitCheck], None]
CompletionCallback = Callable[[ConversionFormat, str], None]


class ConversionWizard:
    """One conversion session over a fixed set of rows."""

    def __init__(
        self,
        rows: Sequence[Mapping[str, Any]],
        tracker: QuotaTracker,
        is_authenticated: Callable[[], bool],
        on_limit_reached: LimitPrompt,
        on_complete: Optional[CompletionCallback] = None,
        source_name: Optional[str] = None,
        option_overrides: Optional[Mapping[str, Mapping[str, Any]]] = None,
        analytics: Optional[AnalyticsSink] = None
    ):
        """Open a wizard session.

        Args:
            rows: Parsed input rows
            tracker: Quota tracker consulted before selections and runs
            is_authenticated: Returns whether a user is signed in
            on_limit_reached: Blocking prompt shown when the quota refuses
            on_complete: Called with (format, content) after a successful run
            source_name: Input file name; seeds the download name and HTML title
            option_overrides: Per-format option values applied over defaults
            analytics: Optional event sink
        """
        self.rows = rows
        self.tracker = tracker
        self.is_authenticated = is_authenticated
        self.on_limit_reached = on_limit_reached
        self.on_complete = on_complete
        self.source_name = source_name
        self.option_overrides = option_overrides or {}
        self.analytics = analytics
        self._state: WizardState = SelectFormat()
        self._open = True

    @property
    def state(self) -> WizardState:
        return self._state

    @property
    def step(self) -> WizardStep:
        return self._state.step

    @property
    def is_open(self) -> bool:
        return self._open

    @property
    def selected_format(self) -> Optional[ConversionFormat]:
        return getattr(self._state, "format", None)

    @property
    def options(self) -> Dict[str, Any]:
        return dict(getattr(self._state, "options", {}))

    @property
    def result_content(self) -> Optional[str]:
        return getattr(self._state, "result_content", None)

    @property
    def error(self) -> Optional[str]:
        return getattr(self._state, "error", None)

    @property
    def source_stem(self) -> str:
        if not self.source_name:
            return FALLBACK_STEM
        return Path(self.source_name).stem or FALLBACK_STEM

    def _require_open(self) -> None:
        if not self._open:
            raise InvalidTransition("Wizard session is closed")

    def _quota_allows(self) -> bool:
        authenticated = self.is_authenticated()
        check = self.tracker.check_limit(authenticated)
        if check.allowed:
            return True
        logger.info("Conversion blocked: daily limit of %s reached", check.limit)
        track_limit_event(self.analytics, "limit_reached", check.remaining, authenticated)
        self.on_limit_reached(check)
        return False

    def select_format(self, fmt: Union[str, ConversionFormat]) -> bool:
        """Choose the target format and move to option configuration.

        Returns:
            True if the wizard advanced, False if the quota refused

        Raises:
            InvalidTransition: If the session is closed
            UnsupportedFormat: If the format has no serializer
        """
        self._require_open()
        if isinstance(fmt, str):
            fmt = FORMAT_CATALOG.get_format(fmt)
        spec = get_converter(fmt.id)

        if not self._quota_allows():
            return False

        options = spec.default_options(self.source_stem if self.source_name else None)
        options.update(self.option_overrides.get(fmt.id, {}))
        self._state = ConfigureOptions(format=fmt, options=options)
        logger.debug("Selected format %s", fmt.id)
        return True

    def update_option(self, key: str, value: Any) -> None:
        """Set one option while configuring.

        Raises:
            InvalidTransition: If not in the configure step
            ValueError: If the option is unknown or has the wrong type
        """
        self._require_open()
        if not isinstance(self._state, ConfigureOptions):
            raise InvalidTransition("Options can only be changed while configuring")
        validate_options(self._state.format.id, {key: value})
        options = dict(self._state.options)
        options[key] = value
        self._state = ConfigureOptions(format=self._state.format, options=options)

    def back(self) -> None:
        """Step back: options -> format selection, result -> options."""
        self._require_open()
        state = self._state
        if isinstance(state, ConfigureOptions):
            self._state = SelectFormat()
        elif isinstance(state, RunAndDownload):
            self._state = ConfigureOptions(format=state.format, options=dict(state.options))
        else:
            raise InvalidTransition("Already at the first step")

    def advance(self) -> bool:
        """Move forward from the configure step by running the conversion."""
        self._require_open()
        if isinstance(self._state, RunAndDownload):
            raise InvalidTransition("Already at the last step")
        return self.run_conversion()

    def run_conversion(self) -> bool:
        """Convert the rows with the selected format and options.

        Also retries from the result step after a failure.

        Returns:
            True if content was produced; False if no format is selected,
            the quota refused, or the conversion failed (see ``error``)

        Raises:
            InvalidTransition: If the session is closed
            UnsupportedFormat: If the selected format has no serializer
        """
        self._require_open()
        state = self._state
        if isinstance(state, SelectFormat):
            logger.debug("Conversion requested with no format selected")
            return False

        if not self._quota_allows():
            return False

        fmt, options = state.format, dict(state.options)
        try:
            content = convert(self.rows, fmt.id, options)
        except ConversionFailed as e:
            self._state = RunAndDownload(
                format=fmt, options=options, result_content=None,
                error=e.reason or "Conversion failed"
            )
            track_event(self.analytics, "conversion_failed", {"format": fmt.id, "reason": e.reason})
            return False

        self._state = RunAndDownload(format=fmt, options=options, result_content=content, error=None)
        if self.on_complete is not None:
            self.on_complete(fmt, content)
        authenticated = self.is_authenticated()
        track_limit_event(
            self.analytics, "conversion_completed", None, authenticated,
            format=fmt.id, file_size=len(content)
        )
        return True

    def estimate_size_kb(self) -> int:
        """Estimated output size for the configured format."""
        state = self._state
        if isinstance(state, SelectFormat):
            raise InvalidTransition("No format selected")
        return estimate_size_kb(self.rows, state.format.id, state.options)

    def download(self, sink: FileDownloadSink, filename_stem: Optional[str] = None) -> Path:
        """Hand the converted content to a download sink.

        Raises:
            InvalidTransition: If there is no converted content
        """
        self._require_open()
        state = self._state
        if not isinstance(state, RunAndDownload) or state.result_content is None:
            raise InvalidTransition("Nothing to download")
        path = sink.save(state.result_content, filename_stem or self.source_stem, state.format.id)
        track_event(self.analytics, "file_conversion_download", {
            "format": state.format.id,
            "file_size": len(state.result_content),
            "source_format": Path(self.source_name).suffix.lstrip(".").lower() if self.source_name else "unknown",
        })
        return path

    def convert_another(self) -> None:
        """Start over at format selection, keeping the rows."""
        self._require_open()
        self._state = SelectFormat()

    def close(self) -> None:
        """Discard the session."""
        self._open = False
        self._state = SelectFormat()

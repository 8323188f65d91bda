"""Detection of cheating attempts during a proctored quiz.

A quiz front end feeds raw UI events (key presses, focus and visibility
changes) into :func:`classify_key_event` / :func:`classify_page_event`, and
hands the resulting violation types to a :class:`ViolationDetector`. The
detector reports at most one violation per attempt: the first qualifying
event after a reset reaches the handler, anything after that is dropped
until :meth:`ViolationDetector.reset` is called.
"""

import logging
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger(__name__)

TAB_SWITCH = "tab_switch"
WINDOW_BLUR = "window_blur"
PAGE_HIDE = "page_hide"
DEVTOOLS_ATTEMPT = "devtools_attempt"
VIEW_SOURCE_ATTEMPT = "view_source_attempt"
NEW_TAB_ATTEMPT = "new_tab_attempt"

VIOLATION_TYPES = (
    TAB_SWITCH,
    WINDOW_BLUR,
    PAGE_HIDE,
    DEVTOOLS_ATTEMPT,
    VIEW_SOURCE_ATTEMPT,
    NEW_TAB_ATTEMPT,
)

VISIBILITY_CHANGE = "visibilitychange"
BLUR = "blur"
PAGEHIDE = "pagehide"
BEFORE_UNLOAD = "beforeunload"
WINDOW_OPEN = "window_open"
CONTEXT_MENU = "contextmenu"


@dataclass(frozen=True)
class KeyEvent:
    key: str
    ctrl: bool = False
    meta: bool = False
    shift: bool = False
    alt: bool = False

    @property
    def command(self) -> bool:
        # Ctrl on Windows/Linux, Cmd on macOS
        return self.ctrl or self.meta


@dataclass(frozen=True)
class Classification:
    violation: str | None
    prevent_default: bool

    @property
    def is_violation(self) -> bool:
        return self.violation is not None


NOT_A_VIOLATION = Classification(violation=None, prevent_default=False)


def classify_key_event(event: KeyEvent) -> Classification:
    key = event.key.lower() if len(event.key) == 1 else event.key

    if event.key == "F12":
        return Classification(DEVTOOLS_ATTEMPT, prevent_default=True)

    if event.command and event.shift and key in ("i", "j"):
        return Classification(DEVTOOLS_ATTEMPT, prevent_default=True)

    if event.command and key == "u":
        return Classification(VIEW_SOURCE_ATTEMPT, prevent_default=True)

    if event.command and key in ("t", "n"):
        return Classification(NEW_TAB_ATTEMPT, prevent_default=True)

    # the OS swallows Alt+Tab, so it cannot be prevented, only reported
    if event.alt and event.key == "Tab":
        return Classification(WINDOW_BLUR, prevent_default=False)

    return NOT_A_VIOLATION


def classify_page_event(kind: str, hidden: bool = False) -> Classification:
    if kind == VISIBILITY_CHANGE:
        return Classification(TAB_SWITCH, prevent_default=False) if hidden else NOT_A_VIOLATION
    if kind == BLUR:
        return Classification(WINDOW_BLUR, prevent_default=False) if hidden else NOT_A_VIOLATION
    if kind == PAGEHIDE:
        return Classification(PAGE_HIDE, prevent_default=False)
    if kind == BEFORE_UNLOAD:
        return Classification(PAGE_HIDE, prevent_default=True)
    if kind == WINDOW_OPEN:
        return Classification(NEW_TAB_ATTEMPT, prevent_default=True)
    if kind == CONTEXT_MENU:
        return Classification(violation=None, prevent_default=True)
    return NOT_A_VIOLATION


class ViolationDetector:
    """Latches the first violation of a quiz attempt and reports it once."""

    def __init__(self, on_violation: Callable[[str], None], enabled: bool = True):
        self._on_violation = on_violation
        self._enabled = enabled
        self._triggered = False

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def triggered(self) -> bool:
        return self._triggered

    def enable(self) -> None:
        if not self._enabled:
            self._enabled = True
            self._triggered = False

    def disable(self) -> None:
        self._enabled = False

    def reset(self) -> None:
        self._triggered = False

    def report(self, violation_type: str) -> bool:
        """Forward ``violation_type`` to the handler unless already latched.

        Returns True when the handler was called.
        """
        if not self._enabled or self._triggered:
            logger.debug("Suppressed %s (enabled=%s, triggered=%s)", violation_type, self._enabled, self._triggered)
            return False

        self._triggered = True
        self._on_violation(violation_type)
        return True

    def observe(self, classification: Classification) -> bool:
        if not classification.is_violation:
            return False
        return self.report(classification.violation)

    def key_pressed(self, event: KeyEvent) -> Classification:
        classification = classify_key_event(event)
        self.observe(classification)
        return classification

    def page_event(self, kind: str, hidden: bool = False) -> Classification:
        classification = classify_page_event(kind, hidden)
        self.observe(classification)
        return classification

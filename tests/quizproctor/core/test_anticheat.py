import pytest

from quizproctor.core.anticheat import (
    BEFORE_UNLOAD,
    BLUR,
    CONTEXT_MENU,
    PAGEHIDE,
    VISIBILITY_CHANGE,
    WINDOW_OPEN,
    KeyEvent,
    ViolationDetector,
    classify_key_event,
    classify_page_event,
)


@pytest.mark.parametrize(
    ('event', 'violation'),
    [
        (KeyEvent('F12'), 'devtools_attempt'),
        (KeyEvent('I', ctrl=True, shift=True), 'devtools_attempt'),
        (KeyEvent('i', meta=True, shift=True), 'devtools_attempt'),
        (KeyEvent('J', ctrl=True, shift=True), 'devtools_attempt'),
        (KeyEvent('u', ctrl=True), 'view_source_attempt'),
        (KeyEvent('T', meta=True), 'new_tab_attempt'),
        (KeyEvent('n', ctrl=True), 'new_tab_attempt'),
        (KeyEvent('N', ctrl=True, shift=True), 'new_tab_attempt'),
        (KeyEvent('Tab', alt=True), 'window_blur'),
        (KeyEvent('a'), None),
        (KeyEvent('i', ctrl=True), None),
        (KeyEvent('u'), None),
    ],
)
def test_classify_key_event(event, violation) -> None:
    assert classify_key_event(event).violation == violation


def test_alt_tab_cannot_be_prevented() -> None:
    assert classify_key_event(KeyEvent('Tab', alt=True)).prevent_default is False
    assert classify_key_event(KeyEvent('F12')).prevent_default is True


@pytest.mark.parametrize(
    ('kind', 'hidden', 'violation'),
    [
        (VISIBILITY_CHANGE, True, 'tab_switch'),
        (VISIBILITY_CHANGE, False, None),
        (BLUR, True, 'window_blur'),
        (BLUR, False, None),
        (PAGEHIDE, False, 'page_hide'),
        (BEFORE_UNLOAD, False, 'page_hide'),
        (WINDOW_OPEN, False, 'new_tab_attempt'),
        (CONTEXT_MENU, False, None),
        ('scroll', False, None),
    ],
)
def test_classify_page_event(kind, hidden, violation) -> None:
    assert classify_page_event(kind, hidden).violation == violation


def test_context_menu_is_suppressed_without_violation() -> None:
    classification = classify_page_event(CONTEXT_MENU)

    assert classification.prevent_default is True
    assert classification.is_violation is False


def test_detector_fires_once_until_reset() -> None:
    reported = []
    detector = ViolationDetector(reported.append)

    detector.page_event(VISIBILITY_CHANGE, hidden=True)
    detector.key_pressed(KeyEvent('F12'))
    detector.page_event(PAGEHIDE)

    assert reported == ['tab_switch']
    assert detector.triggered is True

    detector.reset()
    detector.key_pressed(KeyEvent('F12'))

    assert reported == ['tab_switch', 'devtools_attempt']


def test_detector_ignores_non_violations() -> None:
    reported = []
    detector = ViolationDetector(reported.append)

    detector.page_event(BLUR, hidden=False)
    detector.key_pressed(KeyEvent('a'))

    assert reported == []
    assert detector.triggered is False


def test_disabled_detector_reports_nothing() -> None:
    reported = []
    detector = ViolationDetector(reported.append, enabled=False)

    assert detector.report('tab_switch') is False
    assert reported == []


def test_enabling_resets_the_latch() -> None:
    reported = []
    detector = ViolationDetector(reported.append)
    detector.report('tab_switch')
    detector.disable()

    detector.enable()
    detector.report('window_blur')

    assert reported == ['tab_switch', 'window_blur']

"""
Screen router.

Screen (enum) + NavAction (enum) -> transition(screen, action) -> Screen

Rules:
- transition() is pure: no side effects, no IO.
- Unlisted (screen, action) pairs keep the current screen.
- Tab actions and sign-out work from every screen that shows the nav bar.
- The current screen lives in an AppContext passed to whoever needs it;
  there is no module-level routing state.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from enum import Enum
from typing import Final

from observability.logger import log_event


class Screen(str, Enum):
    SPLASH = "SPLASH"
    LOGIN = "LOGIN"
    CONSENT = "CONSENT"
    ONBOARDING_AGE = "ONBOARDING_AGE"
    ONBOARDING_WORK = "ONBOARDING_WORK"
    ONBOARDING_WELLBEING = "ONBOARDING_WELLBEING"
    DASHBOARD = "DASHBOARD"
    CHECK_IN = "CHECK_IN"
    INSIGHTS = "INSIGHTS"
    CHAT = "CHAT"
    ANALYTICS = "ANALYTICS"
    NUDGES = "NUDGES"
    PROFILE = "PROFILE"
    WORK_TRACKER = "WORK_TRACKER"
    CALL_SELECT = "CALL_SELECT"
    AI_CALL = "AI_CALL"
    PEER_CALL = "PEER_CALL"


class NavAction(str, Enum):
    GET_STARTED = "GET_STARTED"
    LOGIN_SUCCEEDED = "LOGIN_SUCCEEDED"
    CONSENT_AGREED = "CONSENT_AGREED"
    NEXT = "NEXT"
    FINISH_ONBOARDING = "FINISH_ONBOARDING"

    OPEN_PROFILE = "OPEN_PROFILE"
    OPEN_WORK_TRACKER = "OPEN_WORK_TRACKER"
    OPEN_CALLS = "OPEN_CALLS"
    OPEN_CHECK_IN = "OPEN_CHECK_IN"
    OPEN_INSIGHTS = "OPEN_INSIGHTS"
    START_AI_CALL = "START_AI_CALL"
    START_PEER_CALL = "START_PEER_CALL"
    END_CALL = "END_CALL"
    BACK = "BACK"

    # Nav bar
    GO_DASHBOARD = "GO_DASHBOARD"
    GO_CHAT = "GO_CHAT"
    GO_ANALYTICS = "GO_ANALYTICS"
    GO_PROFILE = "GO_PROFILE"
    SIGN_OUT = "SIGN_OUT"


_S = Screen
_A = NavAction

NAV_SCREENS: Final[frozenset[Screen]] = frozenset({
    _S.DASHBOARD,
    _S.CHAT,
    _S.ANALYTICS,
    _S.PROFILE,
    _S.WORK_TRACKER,
    _S.INSIGHTS,
    _S.CALL_SELECT,
    _S.CHECK_IN,
})

_NAV_ACTIONS: Final[dict[NavAction, Screen]] = {
    _A.GO_DASHBOARD: _S.DASHBOARD,
    _A.GO_CHAT: _S.CHAT,
    _A.GO_ANALYTICS: _S.ANALYTICS,
    _A.GO_PROFILE: _S.PROFILE,
    _A.SIGN_OUT: _S.SPLASH,
}

TRANSITIONS: Final[dict[tuple[Screen, NavAction], Screen]] = {
    # Entry and onboarding
    (_S.SPLASH, _A.GET_STARTED): _S.LOGIN,
    (_S.LOGIN, _A.LOGIN_SUCCEEDED): _S.CONSENT,
    (_S.CONSENT, _A.CONSENT_AGREED): _S.ONBOARDING_AGE,
    (_S.ONBOARDING_AGE, _A.NEXT): _S.ONBOARDING_WORK,
    (_S.ONBOARDING_WORK, _A.NEXT): _S.ONBOARDING_WELLBEING,
    (_S.ONBOARDING_WELLBEING, _A.FINISH_ONBOARDING): _S.DASHBOARD,

    # Dashboard shortcuts
    (_S.DASHBOARD, _A.OPEN_PROFILE): _S.PROFILE,
    (_S.DASHBOARD, _A.OPEN_WORK_TRACKER): _S.WORK_TRACKER,
    (_S.DASHBOARD, _A.OPEN_CALLS): _S.CALL_SELECT,
    (_S.DASHBOARD, _A.OPEN_CHECK_IN): _S.CHECK_IN,
    (_S.DASHBOARD, _A.OPEN_INSIGHTS): _S.INSIGHTS,

    # Calls
    (_S.CALL_SELECT, _A.START_AI_CALL): _S.AI_CALL,
    (_S.CALL_SELECT, _A.START_PEER_CALL): _S.PEER_CALL,
    (_S.CALL_SELECT, _A.BACK): _S.DASHBOARD,
    (_S.AI_CALL, _A.END_CALL): _S.CALL_SELECT,
    (_S.PEER_CALL, _A.END_CALL): _S.CALL_SELECT,

    # Back buttons
    (_S.CHECK_IN, _A.BACK): _S.DASHBOARD,
    (_S.INSIGHTS, _A.BACK): _S.DASHBOARD,
    (_S.WORK_TRACKER, _A.BACK): _S.DASHBOARD,
    (_S.NUDGES, _A.BACK): _S.DASHBOARD,
}


def shows_navigation(screen: Screen) -> bool:
    """True for screens that render the sidebar / bottom nav bar."""
    return screen in NAV_SCREENS


def transition(screen: Screen, action: NavAction) -> Screen:
    """Apply one user action. Unlisted pairs leave the screen unchanged."""
    if action in _NAV_ACTIONS and shows_navigation(screen):
        return _NAV_ACTIONS[action]
    return TRANSITIONS.get((screen, action), screen)


ScreenListener = Callable[[Screen], None]


class AppContext:
    """
    Explicit application context: owns the current screen.

    Views receive this object (or its dispatch method) instead of
    reaching for shared state.
    """

    def __init__(
        self,
        initial: Screen = Screen.SPLASH,
        on_change: ScreenListener | None = None,
    ) -> None:
        self._screen = initial
        self._on_change = on_change

    @property
    def screen(self) -> Screen:
        return self._screen

    @property
    def shows_navigation(self) -> bool:
        return shows_navigation(self._screen)

    def dispatch(self, action: NavAction) -> Screen:
        previous = self._screen
        self._screen = transition(previous, action)

        if self._screen is not previous:
            log_event({
                "ts_ms": int(time.time() * 1000),
                "event_type": "SCREEN_CHANGED",
                "from": previous.value,
                "to": self._screen.value,
                "action": action.value,
            })
            if self._on_change is not None:
                self._on_change(self._screen)

        return self._screen

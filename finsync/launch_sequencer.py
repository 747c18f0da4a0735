"""
Google Pay launch sequencing.

A browser cannot ask a payment app whether it opened. The only signal is
negative: if the page is still visible after a short wait, the launch is
assumed to have failed and the next attempt is made. A page that went hidden
counts as success, even though the app may have opened and then failed on
its own. Callers own the timers and the visibility listener and feed their
events into ``LaunchSequencer``; the sequencer never blocks.

Only Google Pay is targeted; there is no generic UPI chooser fallback.
"""
import os
import re
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional
from urllib.parse import quote
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

# --- TIMING (MILLISECONDS) ---
ANDROID_INTENT_WAIT_MS = int(os.getenv("GPAY_ANDROID_INTENT_WAIT_MS", 1200))
SCHEME_WAIT_MS = int(os.getenv("GPAY_SCHEME_WAIT_MS", 900))

GPAY_PACKAGE = "com.google.android.apps.nbu.paisa.user"
GPAY_PLAY_STORE_URL = f"https://play.google.com/store/apps/details?id={GPAY_PACKAGE}"

ANDROID_FAILURE_MESSAGE = "Could not open Google Pay. Please install/enable GPay and try again."
IOS_FAILURE_MESSAGE = "Could not open Google Pay. Make sure it's installed."
UNSUPPORTED_PLATFORM_MESSAGE = "This flow requires Google Pay on a mobile device."

_ANDROID_UA = re.compile(r"Android", re.IGNORECASE)
_IOS_UA = re.compile(r"iPhone|iPad|iPod", re.IGNORECASE)


class Platform(str, Enum):
    ANDROID = "android"
    IOS = "ios"
    OTHER = "other"


class LaunchState(str, Enum):
    IDLE = "idle"
    ATTEMPT_PRIMARY = "attempt_primary"
    ATTEMPT_SECONDARY = "attempt_secondary"
    SUCCESS = "success"
    FAILED = "failed"


class LaunchOutcome(str, Enum):
    LAUNCHED = "launched"
    LAUNCH_FAILED = "launch_failed"
    UNSUPPORTED_PLATFORM = "unsupported_platform"


@dataclass(frozen=True)
class LaunchAttempt:
    url: str
    wait_ms: int


@dataclass(frozen=True)
class LaunchPlan:
    platform: Platform
    attempts: List[LaunchAttempt] = field(default_factory=list)
    failure_message: str = UNSUPPORTED_PLATFORM_MESSAGE


@dataclass(frozen=True)
class LaunchStep:
    """
    What the caller must do next.

    Navigation steps carry ``url`` and ``wait_ms``: open the url, then call
    ``timer_elapsed`` once ``wait_ms`` has passed. Terminal steps carry an
    ``outcome`` and, on failure, the ``message`` to show the user verbatim.
    """
    state: LaunchState
    attempt: Optional[int] = None
    url: Optional[str] = None
    wait_ms: Optional[int] = None
    outcome: Optional[LaunchOutcome] = None
    message: Optional[str] = None

    @property
    def terminal(self) -> bool:
        return self.state in (LaunchState.SUCCESS, LaunchState.FAILED)


def detect_platform(user_agent: Optional[str]) -> Platform:
    ua = user_agent or ""
    if _ANDROID_UA.search(ua):
        return Platform.ANDROID
    if _IOS_UA.search(ua):
        return Platform.IOS
    return Platform.OTHER


def gpay_scheme_url(query: str) -> str:
    return f"gpay://upi/pay?{query}"


def tez_scheme_url(query: str) -> str:
    # legacy name of the same app
    return f"tez://upi/pay?{query}"


def android_intent_url(query: str) -> str:
    fallback = quote(GPAY_PLAY_STORE_URL, safe="-_.!~*'()")
    return (
        f"intent://pay?{query}#Intent;scheme=upi;package={GPAY_PACKAGE};"
        f"S.browser_fallback_url={fallback};end"
    )


def build_plan(platform: Platform, query: str) -> LaunchPlan:
    """Ordered launch attempts for a finalized query. The query is not re-encoded."""
    if platform == Platform.ANDROID:
        return LaunchPlan(
            platform=platform,
            attempts=[
                LaunchAttempt(android_intent_url(query), ANDROID_INTENT_WAIT_MS),
                LaunchAttempt(gpay_scheme_url(query), SCHEME_WAIT_MS),
            ],
            failure_message=ANDROID_FAILURE_MESSAGE,
        )
    if platform == Platform.IOS:
        return LaunchPlan(
            platform=platform,
            attempts=[
                LaunchAttempt(gpay_scheme_url(query), SCHEME_WAIT_MS),
                LaunchAttempt(tez_scheme_url(query), SCHEME_WAIT_MS),
            ],
            failure_message=IOS_FAILURE_MESSAGE,
        )
    return LaunchPlan(platform=Platform.OTHER)


def plan_for_user_agent(user_agent: Optional[str], query: str) -> LaunchPlan:
    return build_plan(detect_platform(user_agent), query)


class LaunchSequencer:
    """
    Idle → AttemptPrimary → (Success | AttemptSecondary) → (Success | Failed)

    Exactly one terminal step is ever returned. Events arriving after that
    (a late timer, a second visibility change) return None.
    """

    def __init__(self, plan: LaunchPlan):
        self.plan = plan
        self.state = LaunchState.IDLE
        self._attempt = -1

    @property
    def done(self) -> bool:
        return self.state in (LaunchState.SUCCESS, LaunchState.FAILED)

    def start(self) -> Optional[LaunchStep]:
        if self.state != LaunchState.IDLE:
            return None
        if not self.plan.attempts:
            logger.info(f"Launch skipped: platform={self.plan.platform.value} unsupported")
            return self._fail(LaunchOutcome.UNSUPPORTED_PLATFORM)
        return self._navigate(0)

    def page_hidden(self) -> Optional[LaunchStep]:
        """The page went to the background: the app is assumed to have opened."""
        if self.state not in (LaunchState.ATTEMPT_PRIMARY, LaunchState.ATTEMPT_SECONDARY):
            return None
        return self._succeed()

    def timer_elapsed(self, page_visible: bool, attempt: Optional[int] = None) -> Optional[LaunchStep]:
        """
        A bounded wait finished.

        ``attempt`` identifies which navigation step started the timer; a
        timer belonging to an earlier attempt is ignored.
        """
        if self.state not in (LaunchState.ATTEMPT_PRIMARY, LaunchState.ATTEMPT_SECONDARY):
            return None
        if attempt is not None and attempt != self._attempt:
            return None
        if not page_visible:
            return self._succeed()

        next_attempt = self._attempt + 1
        if next_attempt < len(self.plan.attempts):
            logger.info(f"Launch attempt {self._attempt} timed out on {self.plan.platform.value}, falling back")
            return self._navigate(next_attempt)
        return self._fail(LaunchOutcome.LAUNCH_FAILED)

    def _navigate(self, index: int) -> LaunchStep:
        self._attempt = index
        self.state = LaunchState.ATTEMPT_PRIMARY if index == 0 else LaunchState.ATTEMPT_SECONDARY
        attempt = self.plan.attempts[index]
        return LaunchStep(state=self.state, attempt=index, url=attempt.url, wait_ms=attempt.wait_ms)

    def _succeed(self) -> LaunchStep:
        self.state = LaunchState.SUCCESS
        logger.info(f"Launch succeeded (page hidden) on attempt {self._attempt}")
        return LaunchStep(state=self.state, attempt=self._attempt, outcome=LaunchOutcome.LAUNCHED)

    def _fail(self, outcome: LaunchOutcome) -> LaunchStep:
        self.state = LaunchState.FAILED
        logger.warning(f"Launch failed: platform={self.plan.platform.value}, outcome={outcome.value}")
        return LaunchStep(
            state=self.state,
            attempt=self._attempt if self._attempt >= 0 else None,
            outcome=outcome,
            message=self.plan.failure_message,
        )

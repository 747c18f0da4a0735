"""
Tests for the Google Pay launch sequencer.

Success is inferred from the page going hidden; these tests pin that
heuristic, not real payment completion.
"""

from __future__ import annotations

import pytest

from finsync.launch_sequencer import (
    ANDROID_FAILURE_MESSAGE,
    IOS_FAILURE_MESSAGE,
    UNSUPPORTED_PLATFORM_MESSAGE,
    LaunchOutcome,
    LaunchSequencer,
    LaunchState,
    Platform,
    android_intent_url,
    build_plan,
    detect_platform,
    plan_for_user_agent,
)

QUERY = "pa=x@bank&pn=Corner%20Shop&am=25.00&cu=INR"

ANDROID_UA = "Mozilla/5.0 (Linux; Android 14; Pixel 8) AppleWebKit/537.36 Chrome/126.0 Mobile Safari/537.36"
IPHONE_UA = "Mozilla/5.0 (iPhone; CPU iPhone OS 17_5 like Mac OS X) AppleWebKit/605.1.15 Mobile/15E148"
DESKTOP_UA = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 Chrome/126.0 Safari/537.36"


@pytest.mark.parametrize("ua,platform", [
    (ANDROID_UA, Platform.ANDROID),
    (IPHONE_UA, Platform.IOS),
    ("Mozilla/5.0 (iPad; CPU OS 16_0 like Mac OS X)", Platform.IOS),
    (DESKTOP_UA, Platform.OTHER),
    ("", Platform.OTHER),
    (None, Platform.OTHER),
])
def test_detect_platform(ua, platform):
    assert detect_platform(ua) == platform


class TestPlans:

    def test_android_plan_targets_gpay_package_then_scheme(self):
        plan = build_plan(Platform.ANDROID, QUERY)
        assert [a.wait_ms for a in plan.attempts] == [1200, 900]
        assert plan.attempts[0].url == (
            "intent://pay?pa=x@bank&pn=Corner%20Shop&am=25.00&cu=INR"
            "#Intent;scheme=upi;package=com.google.android.apps.nbu.paisa.user;"
            "S.browser_fallback_url=https%3A%2F%2Fplay.google.com%2Fstore%2Fapps%2Fdetails"
            "%3Fid%3Dcom.google.android.apps.nbu.paisa.user;end"
        )
        assert plan.attempts[1].url == f"gpay://upi/pay?{QUERY}"
        assert plan.failure_message == ANDROID_FAILURE_MESSAGE

    def test_ios_plan_tries_gpay_then_legacy_tez(self):
        plan = build_plan(Platform.IOS, QUERY)
        assert [a.url for a in plan.attempts] == [f"gpay://upi/pay?{QUERY}", f"tez://upi/pay?{QUERY}"]
        assert [a.wait_ms for a in plan.attempts] == [900, 900]
        assert plan.failure_message == IOS_FAILURE_MESSAGE

    def test_other_platform_has_no_attempts(self):
        plan = plan_for_user_agent(DESKTOP_UA, QUERY)
        assert plan.platform == Platform.OTHER
        assert plan.attempts == []
        assert plan.failure_message == UNSUPPORTED_PLATFORM_MESSAGE

    def test_query_is_embedded_verbatim(self):
        assert "pn=Corner%20Shop" in android_intent_url(QUERY)


class TestSequencer:

    def test_starts_idle(self):
        assert LaunchSequencer(build_plan(Platform.ANDROID, QUERY)).state == LaunchState.IDLE

    def test_android_success_after_primary(self):
        seq = LaunchSequencer(build_plan(Platform.ANDROID, QUERY))
        step = seq.start()
        assert step.state == LaunchState.ATTEMPT_PRIMARY
        assert step.url.startswith("intent://pay?")
        assert step.wait_ms == 1200

        done = seq.page_hidden()
        assert done.state == LaunchState.SUCCESS
        assert done.outcome == LaunchOutcome.LAUNCHED
        assert done.terminal

        # the pending primary timer still fires, and must do nothing
        assert seq.timer_elapsed(page_visible=False) is None
        assert seq.timer_elapsed(page_visible=True) is None
        assert seq.state == LaunchState.SUCCESS

    def test_android_falls_back_then_fails(self):
        seq = LaunchSequencer(build_plan(Platform.ANDROID, QUERY))
        seq.start()
        second = seq.timer_elapsed(page_visible=True)
        assert second.state == LaunchState.ATTEMPT_SECONDARY
        assert second.url == f"gpay://upi/pay?{QUERY}"
        assert second.wait_ms == 900

        final = seq.timer_elapsed(page_visible=True)
        assert final.state == LaunchState.FAILED
        assert final.outcome == LaunchOutcome.LAUNCH_FAILED
        assert final.message == ANDROID_FAILURE_MESSAGE
        assert seq.done

    def test_ios_success_on_secondary(self):
        seq = LaunchSequencer(build_plan(Platform.IOS, QUERY))
        seq.start()
        second = seq.timer_elapsed(page_visible=True)
        assert second.url == f"tez://upi/pay?{QUERY}"
        done = seq.page_hidden()
        assert done.state == LaunchState.SUCCESS
        assert seq.timer_elapsed(page_visible=True) is None

    def test_ios_failure_message(self):
        seq = LaunchSequencer(build_plan(Platform.IOS, QUERY))
        seq.start()
        seq.timer_elapsed(page_visible=True)
        final = seq.timer_elapsed(page_visible=True)
        assert final.message == IOS_FAILURE_MESSAGE

    def test_hidden_page_at_timer_counts_as_success(self):
        seq = LaunchSequencer(build_plan(Platform.ANDROID, QUERY))
        seq.start()
        step = seq.timer_elapsed(page_visible=False)
        assert step.state == LaunchState.SUCCESS
        assert seq.page_hidden() is None

    def test_unsupported_platform_fails_immediately(self):
        seq = LaunchSequencer(plan_for_user_agent(DESKTOP_UA, QUERY))
        step = seq.start()
        assert step.state == LaunchState.FAILED
        assert step.outcome == LaunchOutcome.UNSUPPORTED_PLATFORM
        assert step.message == UNSUPPORTED_PLATFORM_MESSAGE
        assert step.url is None
        assert seq.timer_elapsed(page_visible=True) is None

    def test_only_one_terminal_outcome(self):
        seq = LaunchSequencer(build_plan(Platform.ANDROID, QUERY))
        steps = [
            seq.start(),
            seq.timer_elapsed(page_visible=True),
            seq.timer_elapsed(page_visible=True),
            seq.page_hidden(),
            seq.timer_elapsed(page_visible=True),
        ]
        terminal = [s for s in steps if s is not None and s.terminal]
        assert len(terminal) == 1
        assert terminal[0].state == LaunchState.FAILED

    def test_stale_timer_from_earlier_attempt_is_ignored(self):
        seq = LaunchSequencer(build_plan(Platform.ANDROID, QUERY))
        first = seq.start()
        second = seq.timer_elapsed(page_visible=True, attempt=first.attempt)
        assert second.attempt == 1
        assert seq.timer_elapsed(page_visible=True, attempt=0) is None
        assert seq.state == LaunchState.ATTEMPT_SECONDARY

    def test_start_twice_is_a_noop(self):
        seq = LaunchSequencer(build_plan(Platform.IOS, QUERY))
        assert seq.start() is not None
        assert seq.start() is None

    def test_visibility_before_start_is_ignored(self):
        seq = LaunchSequencer(build_plan(Platform.IOS, QUERY))
        assert seq.page_hidden() is None
        assert seq.timer_elapsed(page_visible=True) is None
        assert seq.state == LaunchState.IDLE

from __future__ import annotations

import pytest

from dh_common.stop_token import StopToken
from tests.helpers.fakes import FakeClock


pytestmark = pytest.mark.unit_common


def test_request_stop_runs_callback_once() -> None:
    calls = []
    token = StopToken(on_stop=lambda: calls.append(1))
    assert not token.should_stop()
    token.request_stop("user abort")
    token.request_stop("again")
    assert token.should_stop()
    assert token.reason == "user abort"
    assert calls == [1]


def test_deadline_trips_token() -> None:
    clock = FakeClock()
    token = StopToken(deadline=10.0, clock=clock)
    clock.sleep(9.5)
    assert not token.should_stop()
    clock.sleep(0.5)
    assert token.should_stop()
    assert token.reason == "deadline exceeded"


def test_no_deadline_never_expires() -> None:
    clock = FakeClock()
    token = StopToken(clock=clock)
    clock.sleep(1e9)
    assert not token.should_stop()


def test_context_manager_restores_handlers() -> None:
    with StopToken(enable_signals=True) as token:
        assert not token.should_stop()
    assert token._prev_handlers == {}

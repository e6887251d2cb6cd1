from __future__ import annotations

import pytest

from dh_hosts.state import State


pytestmark = pytest.mark.unit_hosts

MAPPING = {"pending": State.STARTING, "running": State.RUNNING, "stopped": State.STOPPED}


def test_known_status_maps_without_diagnostic() -> None:
    assert State.from_provider_status("running", MAPPING) == (State.RUNNING, None)
    assert State.from_provider_status(" Pending ", MAPPING) == (State.STARTING, None)


@pytest.mark.parametrize("status", ["shutting-down", "", None])
def test_unknown_status_is_error_with_diagnostic(status) -> None:
    state, diagnostic = State.from_provider_status(status, MAPPING)
    assert state is State.ERROR
    assert diagnostic is not None
    assert "unrecognized provider status" in diagnostic


def test_string_rendering() -> None:
    assert str(State.RUNNING) == "Running"
    assert str(State.NONE) == ""
    assert State("Stopped") is State.STOPPED

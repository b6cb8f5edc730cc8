"""Shared fixtures for the monitor tests."""

import pytest

from helpers import FakeSink, RecordingViewSink


@pytest.fixture
def fake_sink() -> FakeSink:
    return FakeSink()


@pytest.fixture
def view_sink() -> RecordingViewSink:
    return RecordingViewSink()

"""Shared helper utilities for the ntpquery test-suite."""

from .data import REFERENCE_ORIGIN, build_server_reply
from .mocks import FakeNtpServer

__all__ = [
    "REFERENCE_ORIGIN",
    "build_server_reply",
    "FakeNtpServer",
]

"""Shared pytest configuration and fixtures for ntpquery."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Dict, Iterator, List

import pandas as pd
import pytest

from tests.helpers import FakeNtpServer, build_server_reply

LOGS_ROOT = Path(__file__).resolve().parents[1] / "logs" / "tests"
_MODULE_HANDLERS: Dict[str, logging.Handler] = {}


def get_test_logger(module_name: str) -> logging.Logger:
    """Return a logger writing into ``logs/tests/<module>.log``."""
    normalised = module_name.replace("tests.", "")
    logger = logging.getLogger(f"tests.{normalised}")
    logger.setLevel(logging.INFO)
    if normalised not in _MODULE_HANDLERS:
        LOGS_ROOT.mkdir(parents=True, exist_ok=True)
        log_path = LOGS_ROOT / f"{normalised}.log"
        handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))
        logger.addHandler(handler)
        _MODULE_HANDLERS[normalised] = handler
    return logger


@pytest.fixture
def fake_ntp_server() -> Iterator[Callable[..., FakeNtpServer]]:
    """Factory starting loopback servers that are stopped after the test."""
    started: List[FakeNtpServer] = []

    def _start(responder=None) -> FakeNtpServer:
        if responder is None:
            now = pd.Timestamp.now(tz="UTC")
            reply = build_server_reply(receive=now, transmit=now + pd.Timedelta(milliseconds=1))
            responder = lambda _request: reply  # noqa: E731
        server = FakeNtpServer(responder).start()
        started.append(server)
        return server

    yield _start
    for server in started:
        server.stop()


@pytest.fixture(autouse=True)
def clear_ntp_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in ("NTP_HOST", "NTP_PORT", "NTP_TIMEOUT_S", "NTP_MAX_OFFSET_MS"):
        monkeypatch.delenv(key, raising=False)


__all__ = [
    "get_test_logger",
]

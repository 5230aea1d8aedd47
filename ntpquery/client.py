"""Synchronous NTP client performing one request/response exchange per query."""
from __future__ import annotations

import logging
import socket
from typing import Optional, Tuple

import pandas as pd

from . import settings
from .packet import NtpPacket

LOGGER = logging.getLogger(__name__)

MIN_TIMEOUT_S = 0.001
RECV_BUFFER_SIZE = 1024


def utc_now() -> pd.Timestamp:
    """Current wall-clock time as a UTC timestamp."""
    return pd.Timestamp.now(tz="UTC")


class NtpClient:
    """UDP channel bound to a single NTP server.

    The host is resolved once at construction; the first address returned by
    the resolver is used for the lifetime of the client. Instances are not
    thread safe, use one client per thread or serialise calls to :meth:`query`.
    """

    def __init__(
        self,
        host: str = settings.DEFAULT_HOST,
        port: int = settings.DEFAULT_PORT,
        *,
        timeout_s: float = settings.DEFAULT_TIMEOUT_S,
    ) -> None:
        self._check_timeout(timeout_s)
        family, _, _, _, sockaddr = socket.getaddrinfo(host, port, type=socket.SOCK_DGRAM)[0]
        self.host = host
        self.endpoint: Tuple[str, int] = (sockaddr[0], sockaddr[1])
        LOGGER.debug("Resolved %s:%s to %s", host, port, self.endpoint)

        self._sock: Optional[socket.socket] = socket.socket(family, socket.SOCK_DGRAM)
        try:
            self._sock.settimeout(timeout_s)
            self._sock.connect(sockaddr)
        except OSError:
            self._sock.close()
            raise

    def __enter__(self) -> "NtpClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"NtpClient(host={self.host!r}, endpoint={self.endpoint!r}, closed={self.closed})"

    @staticmethod
    def _check_timeout(value: float) -> None:
        if value < MIN_TIMEOUT_S:
            raise ValueError(f"Timeout must be at least {MIN_TIMEOUT_S}s, got {value}")

    @property
    def closed(self) -> bool:
        return self._sock is None

    @property
    def timeout(self) -> float:
        """Receive timeout in seconds."""
        return self._channel().gettimeout()

    @timeout.setter
    def timeout(self, value: float) -> None:
        self._check_timeout(value)
        self._channel().settimeout(value)

    def _channel(self) -> socket.socket:
        if self._sock is None:
            raise RuntimeError("NtpClient is closed")
        return self._sock

    def close(self) -> None:
        if self._sock is None:
            return
        self._sock.close()
        self._sock = None
        LOGGER.debug("Closed NTP channel to %s", self.endpoint)

    def query(self, request: Optional[NtpPacket] = None) -> NtpPacket:
        """Send ``request`` (a fresh client packet by default) and return the stamped reply.

        The reply's origin timestamp is replaced by the request's origin and its
        destination timestamp is set to the local receipt time. ``socket.timeout``
        and other ``OSError`` subclasses propagate unchanged.
        """
        if request is None:
            request = NtpPacket()
            request.origin_timestamp = utc_now()

        sock = self._channel()
        payload = request.raw
        sock.send(payload)
        LOGGER.debug("Sent %d byte request to %s", len(payload), self.endpoint)

        data = sock.recv(RECV_BUFFER_SIZE)
        received_at = utc_now()
        LOGGER.debug("Received %d byte reply from %s", len(data), self.endpoint)

        response = NtpPacket(data)
        response.origin_timestamp = request.origin_timestamp
        response.destination_timestamp = received_at
        return response

    def get_correction_offset(self) -> pd.Timedelta:
        """Query the server once and return the offset to add to local time."""
        return self.query().correction_offset


__all__ = ["NtpClient", "MIN_TIMEOUT_S", "utc_now"]

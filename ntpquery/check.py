"""NTP drift check against a configured server."""
from __future__ import annotations

import logging
import time
from typing import Dict, Optional

from . import settings
from .client import NtpClient
from .packet import MissingTimestampError, PacketSizeError

LOGGER = logging.getLogger(__name__)


def ntp_check(
    host: Optional[str] = None,
    port: Optional[int] = None,
    timeout_s: Optional[float] = None,
    max_offset_ms: Optional[float] = None,
) -> Dict[str, object]:
    """Return offset between system clock and the NTP server in milliseconds.

    Unset arguments come from :func:`settings.load_ntp_config`. Transport
    failures and incomplete replies are reported in the payload rather than
    raised; a timeout below 1 ms still raises ``ValueError``.
    """
    cfg = settings.load_ntp_config()
    host = host if host is not None else cfg["host"]
    port = port if port is not None else cfg["port"]
    timeout_s = timeout_s if timeout_s is not None else cfg["timeout_s"]
    max_offset_ms = max_offset_ms if max_offset_ms is not None else cfg["max_offset_ms"]

    payload: Dict[str, object] = {
        "host": host,
        "port": port,
        "max_offset_ms": max_offset_ms,
        "measured_at": time.time(),
    }
    try:
        with NtpClient(host, port, timeout_s=timeout_s) as client:
            response = client.query()
        offset_ms = response.correction_offset.value / 1_000_000
        round_trip_ms = response.round_trip_time.value / 1_000_000
    except (OSError, PacketSizeError, MissingTimestampError) as exc:
        LOGGER.warning("NTP check against %s:%s failed: %s", host, port, exc)
        payload.update({"ok": False, "error": str(exc)})
        return payload

    ok = abs(offset_ms) <= max_offset_ms
    payload.update(
        {
            "offset_ms": offset_ms,
            "round_trip_ms": round_trip_ms,
            "stratum": response.stratum,
            "reference_id": response.reference_id_text,
            "ok": ok,
        }
    )
    if ok:
        LOGGER.info("NTP offset %.3fms (rtt %.3fms) against %s", offset_ms, round_trip_ms, host)
    else:
        LOGGER.warning("NTP offset %.3fms exceeds %.1fms against %s", offset_ms, max_offset_ms, host)
    return payload


__all__ = ["ntp_check"]

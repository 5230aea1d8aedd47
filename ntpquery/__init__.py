"""NTP v4 packet codec and single-shot client."""
from __future__ import annotations

from .check import ntp_check
from .client import NtpClient
from .modes import AssociationMode, LeapIndicator
from .packet import MissingTimestampError, NtpPacket, PacketSizeError

__all__ = [
    "AssociationMode",
    "LeapIndicator",
    "MissingTimestampError",
    "NtpClient",
    "NtpPacket",
    "PacketSizeError",
    "ntp_check",
]

"""Codec for the 48-byte NTP v4 packet and the offset/delay arithmetic."""
from __future__ import annotations

import struct
from datetime import datetime
from typing import Dict, Optional, Union

import pandas as pd

from .modes import AssociationMode, LeapIndicator

PACKET_SIZE = 48
DEFAULT_VERSION = 4

NTP_EPOCH = pd.Timestamp("1900-01-01T00:00:00", tz="UTC")
_NS_PER_S = 1_000_000_000
_FRACTION_SCALE = 1 << 32
_ERA_NS = _FRACTION_SCALE * _NS_PER_S
NTP_ERA_END = NTP_EPOCH + pd.Timedelta(_ERA_NS, unit="ns")

# (mask, shift) inside byte 0
_LEAP_BITS = (0xC0, 6)
_VERSION_BITS = (0x38, 3)
_MODE_BITS = (0x07, 0)

_REFERENCE_OFFSET = 16
_ORIGIN_OFFSET = 24
_RECEIVE_OFFSET = 32
_TRANSMIT_OFFSET = 40

TimestampLike = Union[pd.Timestamp, datetime, str]


class PacketSizeError(ValueError):
    """Raised when a buffer is too short to hold an NTP header."""


class MissingTimestampError(RuntimeError):
    """Raised when offset or delay is requested before all four timestamps are known."""


def to_utc_timestamp(value: TimestampLike) -> pd.Timestamp:
    """Coerce ``value`` to a tz-aware UTC timestamp; naive input is taken as UTC."""
    ts = pd.Timestamp(value)
    if ts.tzinfo is None:
        return ts.tz_localize("UTC")
    return ts.tz_convert("UTC")


def ntp_to_timestamp(field: int) -> Optional[pd.Timestamp]:
    """Decode a 32.32 fixed-point value; zero means the timestamp is not set."""
    if field == 0:
        return None
    seconds = field >> 32
    fraction = field & 0xFFFFFFFF
    nanos = (fraction * _NS_PER_S + _FRACTION_SCALE // 2) >> 32
    return pd.Timestamp(NTP_EPOCH.value + seconds * _NS_PER_S + nanos, unit="ns", tz="UTC")


def timestamp_to_ntp(value: Optional[TimestampLike]) -> int:
    """Encode a timestamp as 32.32 fixed point, rounding to the nearest tick."""
    if value is None:
        return 0
    elapsed = to_utc_timestamp(value).value - NTP_EPOCH.value
    if elapsed < 0 or elapsed >= _ERA_NS:
        raise ValueError(
            f"Timestamp {value!r} outside NTP era 0 ({NTP_EPOCH.isoformat()} .. {NTP_ERA_END.isoformat()})"
        )
    return (elapsed * _FRACTION_SCALE + _NS_PER_S // 2) // _NS_PER_S


def _halve(delta: pd.Timedelta) -> pd.Timedelta:
    nanos = delta.value
    half = abs(nanos) // 2
    return pd.Timedelta(-half if nanos < 0 else half, unit="ns")


class NtpPacket:
    """An NTP packet backed by a mutable byte buffer.

    The buffer is the only state that goes on the wire. Accessors decode and
    encode header fields in place, so setting one field never rewrites another.
    ``destination_timestamp`` is local bookkeeping filled in by the client on
    receipt and has no wire representation.

    ``root_delay`` and ``root_dispersion`` are returned as the raw signed 32-bit
    big-endian fields; they are not converted to seconds.
    """

    def __init__(self, data: Optional[Union[bytes, bytearray, memoryview]] = None) -> None:
        if data is None:
            self._buffer = bytearray(PACKET_SIZE)
            self.mode = AssociationMode.CLIENT
            self.version_number = DEFAULT_VERSION
        else:
            if len(data) < PACKET_SIZE:
                raise PacketSizeError(
                    f"NTP packet requires at least {PACKET_SIZE} bytes, got {len(data)}"
                )
            self._buffer = bytearray(data)
        self._destination: Optional[pd.Timestamp] = None

    # -- raw buffer -------------------------------------------------------

    @property
    def buffer(self) -> bytearray:
        return self._buffer

    @property
    def raw(self) -> bytes:
        """Immutable snapshot of the wire representation."""
        return bytes(self._buffer)

    def __len__(self) -> int:
        return len(self._buffer)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, NtpPacket):
            return NotImplemented
        return self._buffer == other._buffer and self._destination == other._destination

    def __repr__(self) -> str:
        return (
            f"NtpPacket(mode={self.mode!r}, version={self.version_number}, "
            f"stratum={self.stratum}, transmit={self.transmit_timestamp})"
        )

    # -- byte 0 bit fields ------------------------------------------------

    def _get_bits(self, bits: tuple[int, int]) -> int:
        mask, shift = bits
        return (self._buffer[0] & mask) >> shift

    def _set_bits(self, bits: tuple[int, int], value: int) -> None:
        mask, shift = bits
        self._buffer[0] = (self._buffer[0] & ~mask & 0xFF) | ((value << shift) & mask)

    @property
    def leap_indicator(self) -> LeapIndicator:
        return LeapIndicator(self._get_bits(_LEAP_BITS))

    @leap_indicator.setter
    def leap_indicator(self, value: Union[LeapIndicator, int]) -> None:
        if not 0 <= int(value) <= 3:
            raise ValueError(f"Leap indicator must be between 0 and 3, got {value}")
        self._set_bits(_LEAP_BITS, int(value))

    @property
    def version_number(self) -> int:
        return self._get_bits(_VERSION_BITS)

    @version_number.setter
    def version_number(self, value: int) -> None:
        if not 0 <= int(value) <= 7:
            raise ValueError(f"Version number must be between 0 and 7, got {value}")
        self._set_bits(_VERSION_BITS, int(value))

    @property
    def mode(self) -> Union[AssociationMode, int]:
        """Association mode; values outside :class:`AssociationMode` come back as plain ints."""
        raw = self._get_bits(_MODE_BITS)
        try:
            return AssociationMode(raw)
        except ValueError:
            return raw

    @mode.setter
    def mode(self, value: Union[AssociationMode, int]) -> None:
        mode = AssociationMode(value)
        self._set_bits(_MODE_BITS, int(mode))

    # -- single byte and 32-bit fields ------------------------------------

    @property
    def stratum(self) -> int:
        return self._buffer[1]

    @property
    def poll(self) -> int:
        return self._buffer[2]

    @property
    def precision(self) -> int:
        return self._buffer[3]

    @property
    def root_delay(self) -> int:
        return struct.unpack_from(">i", self._buffer, 4)[0]

    @property
    def root_dispersion(self) -> int:
        return struct.unpack_from(">i", self._buffer, 8)[0]

    @property
    def reference_id(self) -> int:
        return struct.unpack_from(">I", self._buffer, 12)[0]

    @property
    def reference_id_text(self) -> str:
        """Reference id as a clock code for stratum 0/1, dotted quad above."""
        raw = bytes(self._buffer[12:16])
        if self.stratum <= 1:
            return raw.rstrip(b"\x00").decode("ascii", errors="replace")
        return ".".join(str(octet) for octet in raw)

    # -- 64-bit timestamps ------------------------------------------------

    def _get_timestamp(self, offset: int) -> Optional[pd.Timestamp]:
        return ntp_to_timestamp(struct.unpack_from(">Q", self._buffer, offset)[0])

    def _set_timestamp(self, offset: int, value: Optional[TimestampLike]) -> None:
        struct.pack_into(">Q", self._buffer, offset, timestamp_to_ntp(value))

    @property
    def reference_timestamp(self) -> Optional[pd.Timestamp]:
        """Time the server clock was last set or corrected."""
        return self._get_timestamp(_REFERENCE_OFFSET)

    @reference_timestamp.setter
    def reference_timestamp(self, value: Optional[TimestampLike]) -> None:
        self._set_timestamp(_REFERENCE_OFFSET, value)

    @property
    def origin_timestamp(self) -> Optional[pd.Timestamp]:
        """Time the request left the client."""
        return self._get_timestamp(_ORIGIN_OFFSET)

    @origin_timestamp.setter
    def origin_timestamp(self, value: Optional[TimestampLike]) -> None:
        self._set_timestamp(_ORIGIN_OFFSET, value)

    @property
    def receive_timestamp(self) -> Optional[pd.Timestamp]:
        """Time the request arrived at the server."""
        return self._get_timestamp(_RECEIVE_OFFSET)

    @receive_timestamp.setter
    def receive_timestamp(self, value: Optional[TimestampLike]) -> None:
        self._set_timestamp(_RECEIVE_OFFSET, value)

    @property
    def transmit_timestamp(self) -> Optional[pd.Timestamp]:
        """Time the reply left the server."""
        return self._get_timestamp(_TRANSMIT_OFFSET)

    @transmit_timestamp.setter
    def transmit_timestamp(self, value: Optional[TimestampLike]) -> None:
        self._set_timestamp(_TRANSMIT_OFFSET, value)

    @property
    def destination_timestamp(self) -> Optional[pd.Timestamp]:
        """Time the reply arrived back at the client. Not part of the wire format."""
        return self._destination

    @destination_timestamp.setter
    def destination_timestamp(self, value: Optional[TimestampLike]) -> None:
        self._destination = None if value is None else to_utc_timestamp(value)

    # -- derived values ---------------------------------------------------

    def _exchange_timestamps(self) -> tuple[pd.Timestamp, pd.Timestamp, pd.Timestamp, pd.Timestamp]:
        stamps = {
            "origin": self.origin_timestamp,
            "receive": self.receive_timestamp,
            "transmit": self.transmit_timestamp,
            "destination": self.destination_timestamp,
        }
        missing = [name for name, value in stamps.items() if value is None]
        if missing:
            raise MissingTimestampError(f"Missing timestamps: {', '.join(missing)}")
        return stamps["origin"], stamps["receive"], stamps["transmit"], stamps["destination"]

    @property
    def round_trip_time(self) -> pd.Timedelta:
        """Time spent on the wire in both directions."""
        origin, receive, transmit, destination = self._exchange_timestamps()
        return (receive - origin) + (destination - transmit)

    @property
    def correction_offset(self) -> pd.Timedelta:
        """Offset to add to local time to match the server clock."""
        origin, receive, transmit, destination = self._exchange_timestamps()
        return _halve((receive - origin) - (destination - transmit))

    def to_dict(self) -> Dict[str, object]:
        """JSON-friendly snapshot of every decoded field."""

        def _iso(value: Optional[pd.Timestamp]) -> Optional[str]:
            return value.isoformat() if value is not None else None

        mode = self.mode
        return {
            "leap_indicator": self.leap_indicator.name,
            "version_number": self.version_number,
            "mode": mode.name if isinstance(mode, AssociationMode) else mode,
            "stratum": self.stratum,
            "poll": self.poll,
            "precision": self.precision,
            "root_delay": self.root_delay,
            "root_dispersion": self.root_dispersion,
            "reference_id": self.reference_id,
            "reference_id_text": self.reference_id_text,
            "reference_timestamp": _iso(self.reference_timestamp),
            "origin_timestamp": _iso(self.origin_timestamp),
            "receive_timestamp": _iso(self.receive_timestamp),
            "transmit_timestamp": _iso(self.transmit_timestamp),
            "destination_timestamp": _iso(self.destination_timestamp),
        }


__all__ = [
    "PACKET_SIZE",
    "DEFAULT_VERSION",
    "NTP_EPOCH",
    "NTP_ERA_END",
    "NtpPacket",
    "PacketSizeError",
    "MissingTimestampError",
    "ntp_to_timestamp",
    "timestamp_to_ntp",
    "to_utc_timestamp",
]

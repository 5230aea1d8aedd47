"""Enumerations for the NTP header flags."""
from __future__ import annotations

from enum import IntEnum


class LeapIndicator(IntEnum):
    """Warning of an impending leap second, bits 6-7 of the first header byte."""

    NO_WARNING = 0
    LAST_MINUTE_61 = 1
    LAST_MINUTE_59 = 2
    ALARM = 3


class AssociationMode(IntEnum):
    """Role of the host that produced a packet."""

    CLIENT = 3
    SERVER = 4


__all__ = ["LeapIndicator", "AssociationMode"]

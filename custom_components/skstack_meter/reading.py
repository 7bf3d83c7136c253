"""Meter readings extracted from smart meter ECHONET Lite frames."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

from homeassistant.util import dt as dt_util

from .echonet import (
    EOJ_HOUSING_LOW_VOLTAGE_SMART_METER,
    EDataFormat1,
    EchonetFrame,
    EpcLowVoltageSmartMeter,
)

_LOGGER = logging.getLogger(__name__)

# Phase current value meaning "no data" (e.g. T phase of a single-phase meter)
CURRENT_NO_DATA = 0x7FFE


@dataclass
class MeterReading:
    """Data class for meter readings."""

    power: int | None = None  # W
    current: float | None = None  # A
    r_phase_current: float | None = None  # A
    t_phase_current: float | None = None  # A
    timestamp: datetime = field(default_factory=dt_util.utcnow)


def is_from_smart_meter(frame: EchonetFrame) -> bool:
    """Whether ``frame`` is a structured frame sent by the smart meter object."""
    return (
        isinstance(frame.edata, EDataFormat1)
        and frame.edata.seoj == EOJ_HOUSING_LOW_VOLTAGE_SMART_METER
    )


def _phase_current(raw: bytes) -> float | None:
    value = int.from_bytes(raw, "big", signed=True)
    if value == CURRENT_NO_DATA:
        return None
    return value / 10.0


def reading_from_frame(frame: EchonetFrame) -> MeterReading | None:
    """Extract instantaneous power (E7) and current (E8) from a meter frame.

    Returns None when the frame is not from the smart meter or carries no
    usable E7 value.
    """
    if not is_from_smart_meter(frame):
        return None
    edata = frame.edata

    power = edata.find(EpcLowVoltageSmartMeter.INSTANTANEOUS_ENERGY)
    if power is None or power.pdc != 4:
        _LOGGER.debug("Meter frame without usable E7 property: %s", edata)
        return None

    reading = MeterReading(power=int.from_bytes(power.edt, "big", signed=True))

    current = edata.find(EpcLowVoltageSmartMeter.INSTANTANEOUS_CURRENT)
    if current is not None and current.pdc == 4:
        reading.r_phase_current = _phase_current(current.edt[0:2])
        reading.t_phase_current = _phase_current(current.edt[2:4])
        phases = [
            value
            for value in (reading.r_phase_current, reading.t_phase_current)
            if value is not None
        ]
        if phases:
            reading.current = round(sum(phases), 1)

    _LOGGER.debug(
        "Parsed reading: power=%s W, current=%s A", reading.power, reading.current
    )
    return reading

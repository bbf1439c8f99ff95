"""
Selection state
===============

``SelectionContext`` holds the process-wide farm and user identity and
notifies listeners with discrete change events. ``DeviceSelectionPolicy``
derives per-class device defaults from a farm's device list while keeping
manual choices until the farm changes.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Iterable, Literal

from farmdash.domain.exceptions import ValidationError
from farmdash.enums.device import SensorClass
from farmdash.schemas.telemetry import Device

logger = logging.getLogger(__name__)

SelectionKind = Literal["farm", "user"]


@dataclass(frozen=True)
class SelectionChange:
    kind: SelectionKind
    previous: str | None
    current: str | None


SelectionListener = Callable[[SelectionChange], None]


class SelectionContext:
    """
    Farm and user identity, set by user action and cleared on logout.

    Listeners are invoked synchronously, in subscription order, and only when
    a value actually changes.
    """

    def __init__(self, farm_id: str | None = None, user_id: str | None = None) -> None:
        self._farm_id = farm_id
        self._user_id = user_id
        self._listeners: list[SelectionListener] = []
        self._lock = threading.Lock()

    @property
    def farm_id(self) -> str | None:
        return self._farm_id

    @property
    def user_id(self) -> str | None:
        return self._user_id

    def subscribe(self, listener: SelectionListener) -> Callable[[], None]:
        """Register a listener and return its unsubscribe function."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                try:
                    self._listeners.remove(listener)
                except ValueError:
                    return

        return unsubscribe

    def set_farm(self, farm_id: str | None) -> None:
        with self._lock:
            previous, self._farm_id = self._farm_id, farm_id
        if previous != farm_id:
            self._notify(SelectionChange("farm", previous, farm_id))

    def set_user(self, user_id: str | None) -> None:
        with self._lock:
            previous, self._user_id = self._user_id, user_id
        if previous != user_id:
            self._notify(SelectionChange("user", previous, user_id))

    def clear(self) -> None:
        """Logout: drop the farm first, then the user."""
        self.set_farm(None)
        self.set_user(None)

    def _notify(self, change: SelectionChange) -> None:
        with self._lock:
            listeners = list(self._listeners)
        logger.debug("Selection changed: %s %s -> %s", change.kind, change.previous, change.current)
        for listener in listeners:
            listener(change)


@dataclass(frozen=True)
class DeviceSelection:
    """Selected device id per sensor class; doubles as part of a fetch's staleness tag."""

    environment: str | None = None
    soil_moisture: str | None = None
    soil_ph: str | None = None

    def get(self, sensor_class: SensorClass) -> str | None:
        return getattr(self, _SELECTION_FIELDS[sensor_class])

    def to_dict(self) -> dict[str, str | None]:
        return {
            "environment": self.environment,
            "soilMoisture": self.soil_moisture,
            "soilPH": self.soil_ph,
        }


_SELECTION_FIELDS: dict[SensorClass, str] = {
    SensorClass.ENVIRONMENT: "environment",
    SensorClass.SOIL_MOISTURE: "soil_moisture",
    SensorClass.SOIL_PH: "soil_ph",
}


def group_by_class(devices: Iterable[Device]) -> dict[SensorClass, list[Device]]:
    """Sensor devices per class, in list order. Non-sensor devices are left out."""
    grouped: dict[SensorClass, list[Device]] = {sensor_class: [] for sensor_class in SensorClass}
    for device in devices:
        sensor_class = device.sensor_class
        if sensor_class is not None:
            grouped[sensor_class].append(device)
    return grouped


class DeviceSelectionPolicy:
    """Default-first-of-class device selection with sticky manual overrides."""

    def __init__(self) -> None:
        self._selected: dict[SensorClass, str] = {}
        self._manual: set[SensorClass] = set()

    @property
    def selection(self) -> DeviceSelection:
        return DeviceSelection(**{_SELECTION_FIELDS[cls]: device_id for cls, device_id in self._selected.items()})

    def is_manual(self, sensor_class: SensorClass) -> bool:
        return sensor_class in self._manual

    def apply_defaults(self, devices: Iterable[Device]) -> DeviceSelection:
        """
        Fill every class that has no selection with its first device.

        Existing selections, manual or default, are left alone.
        """
        for sensor_class, candidates in group_by_class(devices).items():
            if sensor_class in self._selected or not candidates:
                continue
            self._selected[sensor_class] = candidates[0].device_id
            logger.debug("Default %s device -> %s", sensor_class.name, candidates[0].device_id)
        return self.selection

    def select(
        self,
        sensor_class: SensorClass,
        device_id: str | None,
        devices: Iterable[Device] | None = None,
    ) -> DeviceSelection:
        """
        Record a manual choice. ``None`` clears the class.

        Raises:
            ValidationError: ``devices`` was given and holds no such device of that class.
        """
        if device_id is None:
            self._selected.pop(sensor_class, None)
            self._manual.discard(sensor_class)
            return self.selection

        if devices is not None:
            known = {device.device_id for device in group_by_class(devices)[sensor_class]}
            if device_id not in known:
                raise ValidationError(
                    f"Unknown {sensor_class.name.lower()} device '{device_id}'",
                    detail={"sensor_class": sensor_class.value, "device_id": device_id},
                )

        self._selected[sensor_class] = device_id
        self._manual.add(sensor_class)
        return self.selection

    def reset(self) -> None:
        """Forget everything; device ids are farm-scoped."""
        self._selected.clear()
        self._manual.clear()

"""
Device-related Enumerations
============================

Sensor classes the dashboard knows how to chart and summarize.
"""

from enum import Enum


class SensorClass(str, Enum):
    """
    Sensor classes, valued by the backend's device ``type`` string.

    - ENVIRONMENT: air temperature + humidity (DHT22 style sensors)
    - SOIL_MOISTURE: volumetric soil moisture sensors
    - SOIL_PH: soil pH sensors
    """

    ENVIRONMENT = "SENSOR_DHT22"
    SOIL_MOISTURE = "SENSOR_SOIL_MOISTURE"
    SOIL_PH = "SENSOR_PH"

    @classmethod
    def _missing_(cls, value: object) -> "SensorClass | None":
        """Map short and legacy type names onto the canonical classes."""
        if not isinstance(value, str):
            return None
        normalized = value.strip().lower()
        environment_types = {
            "env",
            "environment",
            "environment_sensor",
            "dht22",
            "sensor_dht22",
            "temperature",
            "humidity",
        }
        moisture_types = {
            "soil",
            "moisture",
            "soil_moisture",
            "soil_moisture_sensor",
            "sensor_soil_moisture",
        }
        ph_types = {"ph", "soil_ph", "soilph", "ph_sensor", "sensor_ph"}
        if normalized in environment_types:
            return cls.ENVIRONMENT
        if normalized in moisture_types:
            return cls.SOIL_MOISTURE
        if normalized in ph_types:
            return cls.SOIL_PH
        return None

    @classmethod
    def parse(cls, value: object) -> "SensorClass | None":
        """Return the matching class, or None for non-sensor device types."""
        try:
            return cls(value)
        except ValueError:
            return None

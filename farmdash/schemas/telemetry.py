"""
Telemetry wire schemas
======================

Pydantic models for the backend's REST responses and push payloads. The
backend speaks camelCase; Python code uses snake_case attributes and dumps
back to camelCase with ``model_dump(by_alias=True)``.
"""

from datetime import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from farmdash.enums.device import SensorClass
from farmdash.utils.time import coerce_datetime

_CAMEL = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


def _as_id(value: Any) -> Any:
    # Backends hand out numeric ids and UUID strings interchangeably
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(int(value))
    return value


class Device(BaseModel):
    """A device owned by a farm. Only sensor devices are ever auto-selected."""

    model_config = _CAMEL

    device_id: str = Field(validation_alias=AliasChoices("deviceId", "device_id", "id"), serialization_alias="deviceId")
    type: str
    name: str | None = None
    farm_id: str | None = None

    @field_validator("device_id", "farm_id", mode="before")
    @classmethod
    def normalize_ids(cls, value: Any):
        return _as_id(value)

    @property
    def sensor_class(self) -> SensorClass | None:
        return SensorClass.parse(self.type)

    @property
    def display_name(self) -> str:
        return self.name or self.device_id


class AggregatedPoint(BaseModel):
    """One aggregation window. ``average_value`` is None when the window had no samples."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    timestamp: datetime
    average_value: float | None = Field(
        default=None,
        validation_alias=AliasChoices("avgValue", "averageValue", "average_value"),
        serialization_alias="averageValue",
    )

    @field_validator("timestamp", mode="before")
    @classmethod
    def parse_timestamp(cls, value: Any):
        parsed = coerce_datetime(value)
        if parsed is None:
            raise ValueError(f"invalid timestamp: {value!r}")
        return parsed


class AverageEnvironment(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="ignore", validate_assignment=True
    )

    avg_temperature: float | None = None
    avg_humidity: float | None = None
    avg_soil_moisture: float | None = None
    avg_soil_ph: float | None = Field(default=None, alias="avgSoilPH")
    avg_light_intensity: float | None = None


class FarmSummary(BaseModel):
    """Materialized "current state" of a farm; fields are patched independently."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="ignore", validate_assignment=True
    )

    online_devices: int = 0
    total_devices: int = 0
    average_environment: AverageEnvironment = Field(default_factory=AverageEnvironment)

    @field_validator("average_environment", mode="before")
    @classmethod
    def null_environment(cls, value: Any):
        return {} if value is None else value


# Push payload key -> AverageEnvironment attribute
TELEMETRY_FIELDS: dict[str, str] = {
    "temperature": "avg_temperature",
    "humidity": "avg_humidity",
    "soil_moisture": "avg_soil_moisture",
    "soil_ph": "avg_soil_ph",
    "light_intensity": "avg_light_intensity",
}


class SensorDataMessage(BaseModel):
    """Incremental per-farm payload carrying any subset of the five telemetry fields."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    temperature: float | None = None
    humidity: float | None = None
    soil_moisture: float | None = Field(default=None, alias="soilMoisture")
    soil_ph: float | None = Field(default=None, validation_alias=AliasChoices("soilPH", "soilPh", "soil_ph"))
    light_intensity: float | None = Field(default=None, alias="lightIntensity")

    def to_patch(self) -> dict[str, float | None]:
        """
        Return ``{AverageEnvironment attribute: value}`` for the fields carried
        by this message. A field sent as ``null`` is carried as ``None`` and
        clears that average; a field left out is not in the patch.
        """
        return {
            TELEMETRY_FIELDS[name]: getattr(self, name) for name in self.model_fields_set if name in TELEMETRY_FIELDS
        }


class NotificationMessage(BaseModel):
    """User-scoped alert payload."""

    model_config = ConfigDict(extra="ignore")

    title: str
    message: str = ""

from enum import Enum


class ChartMode(str, Enum):
    """Which pair of series the chart shows."""

    ENVIRONMENT = "env"
    SOIL = "soil"

    @classmethod
    def _missing_(cls, value: object) -> "ChartMode | None":
        if not isinstance(value, str):
            return None
        aliases = {"environment": cls.ENVIRONMENT, "air": cls.ENVIRONMENT, "ground": cls.SOIL}
        return aliases.get(value.strip().lower())


class ChannelState(str, Enum):
    """Lifecycle of a push channel connection."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class DashboardSection(str, Enum):
    """Sections that carry their own loading and error flags."""

    OVERVIEW = "overview"
    CHART = "chart"

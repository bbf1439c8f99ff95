"""
Domain Package
==============
Pure dashboard logic: series merging, device selection and summary patching.
Nothing in here performs I/O.
"""

from .exceptions import (
    ChannelFailure,
    ConfigurationError,
    DashboardError,
    MalformedMessageError,
    TransientFetchError,
    ValidationError,
)
from .selection import DeviceSelection, DeviceSelectionPolicy, SelectionChange, SelectionContext, group_by_class
from .series import ChartRow, label_formatter, merge_series, rows_to_dicts
from .summary import apply_summary_patch

__all__ = [
    "ChannelFailure",
    "ChartRow",
    "ConfigurationError",
    "DashboardError",
    "DeviceSelection",
    "DeviceSelectionPolicy",
    "MalformedMessageError",
    "SelectionChange",
    "SelectionContext",
    "TransientFetchError",
    "ValidationError",
    "apply_summary_patch",
    "group_by_class",
    "label_formatter",
    "merge_series",
    "rows_to_dicts",
]

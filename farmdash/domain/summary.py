"""Field-level patching of the live farm summary."""

from __future__ import annotations

import logging
from typing import Mapping

from farmdash.schemas.telemetry import TELEMETRY_FIELDS, FarmSummary

logger = logging.getLogger(__name__)

_PATCHABLE = frozenset(TELEMETRY_FIELDS.values())


def apply_summary_patch(summary: FarmSummary, patch: Mapping[str, float | None]) -> list[str]:
    """
    Write each patched average onto ``summary.average_environment`` in place.

    Fields absent from ``patch`` keep their values (last write wins per field);
    a ``None`` value clears the field.
    Unknown keys are ignored.

    Returns:
        The attribute names that were written.
    """
    environment = summary.average_environment
    written = []
    for attr, value in patch.items():
        if attr not in _PATCHABLE:
            logger.debug("Ignoring unknown summary field %s", attr)
            continue
        setattr(environment, attr, value)
        written.append(attr)
    return written

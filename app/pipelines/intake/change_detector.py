"""Decides whether a freshly extracted record is worth persisting."""

from __future__ import annotations

from typing import Optional

from .types import EmergencyRecord


class ChangeDetector:
    """Structural comparison of the previous and new record.

    Any field difference counts, including description rewording. A missing
    new record never triggers a write; a first record always does.
    """

    @staticmethod
    def is_material_change(
        old: Optional[EmergencyRecord],
        new: Optional[EmergencyRecord],
    ) -> bool:
        if new is None:
            return False
        if old is None:
            return True
        return old != new


__all__ = ["ChangeDetector"]

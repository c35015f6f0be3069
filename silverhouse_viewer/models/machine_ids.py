"""Machine-ID operation outcomes."""

from __future__ import annotations

from enum import Enum


class MachineIdOutcome(Enum):
    OK = "ok"
    DUPLICATE = "duplicate"
    ENTRY_NOT_FOUND = "entry_not_found"
    INVALID = "invalid"

    @property
    def ok(self) -> bool:
        return self is MachineIdOutcome.OK

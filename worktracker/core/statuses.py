"""Status vocabularies used across the record tables.

Upstream data is typed in by hand and by several spreadsheet imports, so a
single logical status can arrive with more than one spelling.  Each enum below
lists every raw spelling it accepts in ``ALIASES``; values are resolved once,
when a record is validated, and the engine only ever compares enum members.

Lookups are exact, surrounding whitespace included, unless the enum is
registered in ``CASE_INSENSITIVE``.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, TypeVar

from worktracker.core.coerce import raw_text

E = TypeVar("E", bound=Enum)

LONG_AGING_PRIORITY = "Issue Long Aging"


class WorkStatus(str, Enum):
    OPEN = "Open"
    ON_HOLD = "On Hold"
    CLOSE = "Close"

    @classmethod
    def from_raw(cls, value: Any) -> "WorkStatus | None":
        return _lookup(cls, value)


class BastStatus(str, Enum):
    APPROVED = "Approve"
    WAITING = "Waiting Approve"

    @classmethod
    def from_raw(cls, value: Any) -> "BastStatus | None":
        return _lookup(cls, value)


class ActiveStatus(str, Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"

    @classmethod
    def from_raw(cls, value: Any) -> "ActiveStatus | None":
        return _lookup(cls, value)


class ConnectionStatus(str, Enum):
    ONLINE = "online"
    OFFLINE = "offline"
    BROKEN = "broken"
    STOLEN = "stolen"

    @classmethod
    def from_raw(cls, value: Any) -> "ConnectionStatus | None":
        return _lookup(cls, value)


class ProgressStatus(str, Enum):
    DONE = "Done"
    OPEN = "Open"
    HOLD = "Hold"

    @classmethod
    def from_raw(cls, value: Any) -> "ProgressStatus | None":
        return _lookup(cls, value)


class LockInstallState(str, Enum):
    """Smart-lock installation states.

    The field-team status column is free text ("NEED INSTALL URGENT",
    "LOST/BROKEN", ...).  ``NEED_INSTALL`` and ``LOST`` therefore match by
    containment; the other states must match the whole value.
    """

    INSTALLED = "INSTALLED"
    NEED_INSTALL = "NEED INSTALL"
    NEED_RELOCATED = "NEED RELOCATED"
    LOST = "LOST"

    def matches(self, raw: str | None) -> bool:
        if raw is None:
            return False
        if self in CONTAINMENT_STATES:
            return self.value in raw
        return raw == self.value


ALIASES: dict[Enum, tuple[str, ...]] = {
    # "BAST Approve Date" is written by the approval import; both mean approved.
    BastStatus.APPROVED: ("Approve", "BAST Approve Date"),
    BastStatus.WAITING: ("Waiting Approve",),
    ActiveStatus.ACTIVE: ("Active", "Aktif", "AKTIF"),
    ActiveStatus.INACTIVE: ("Inactive", "Non Aktif", "NON AKTIF"),
}

CASE_INSENSITIVE: frozenset[type[Enum]] = frozenset({ConnectionStatus})

CONTAINMENT_STATES = frozenset({LockInstallState.NEED_INSTALL, LockInstallState.LOST})


def _lookup(enum_cls: type[E], value: Any) -> E | None:
    text = raw_text(value)
    if text is None:
        return None
    fold = enum_cls in CASE_INSENSITIVE
    needle = text.casefold() if fold else text
    for member in enum_cls:
        for alias in ALIASES.get(member, (member.value,)):
            if (alias.casefold() if fold else alias) == needle:
                return member
    return None

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class SubjectType(str, Enum):
    INVENTORY_ITEM = "inventory item"


class Verdict(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


class ExecutionStatus(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class Property:
    name: str
    value: str


@dataclass(frozen=True)
class Evidence:
    description: str


@dataclass(frozen=True)
class Link:
    href: str
    text: str = ""


@dataclass(frozen=True)
class Subject:
    id: str
    type: SubjectType
    title: str
    props: dict[str, str]

    def to_dict(self) -> dict[str, Any]:
        return _serialize(asdict(self))


@dataclass(frozen=True)
class Observation:
    id: str
    title: str
    description: str
    collected: datetime
    expires: datetime
    props: list[Property]
    evidence: list[Evidence]
    remarks: str
    links: list[Link] = field(default_factory=list)


@dataclass(frozen=True)
class Finding:
    id: str
    title: str
    description: str
    remarks: str
    related_observations: list[str]


@dataclass(frozen=True)
class LogEntry:
    title: str
    description: str
    start: datetime
    end: datetime


@dataclass(frozen=True)
class CheckResult:
    """Outcome of one check run, as handed back to the assessment host.

    status is SUCCESS whenever evidence was produced, including when the
    evidence records non-compliance. ERROR means the check itself could
    not complete; error then holds the reason and no observations or
    findings are present.
    """
    status: ExecutionStatus
    observations: list[Observation] = field(default_factory=list)
    findings: list[Finding] = field(default_factory=list)
    logs: list[LogEntry] = field(default_factory=list)
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return _serialize(asdict(self))


def _serialize(value: Any) -> Any:
    """Recursively convert datetimes and enums into JSON-safe values."""
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: _serialize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_serialize(v) for v in value]
    return value

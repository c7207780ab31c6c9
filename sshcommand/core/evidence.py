from __future__ import annotations

import calendar
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable

from .config import SSHConfig
from .models import Evidence, Finding, LogEntry, Observation, Property, Verdict

Clock = Callable[[], datetime]

LOG_TITLE = "SSH Command Check"

# Observations go stale one calendar month after collection, whatever the config says
EXPIRY_MONTHS = 1


@dataclass
class EvidenceBundle:
    """Everything one check run records about the target."""
    observations: list[Observation]
    findings: list[Finding] = field(default_factory=list)
    logs: list[LogEntry] = field(default_factory=list)


def utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


def add_months(moment: datetime, months: int) -> datetime:
    """Shift a datetime by whole calendar months, clamping the day.

    2026-01-31 + 1 month is 2026-02-28, not an overflow into March.
    """
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def generate(
    config: SSHConfig,
    verdict: Verdict,
    output: str,
    exit_code: int,
    start: datetime,
    clock: Clock = utc_now,
) -> EvidenceBundle:
    """Turn a classified command outcome into observations, findings and a log entry.

    A single observation is always recorded. A finding linked to it is added
    only when the verdict is FAILURE. The log entry spans from start to the
    moment the evidence is complete.
    """
    target = config.target_command
    collected = clock()
    observation_id = str(uuid.uuid4())

    common = dict(
        id=observation_id,
        collected=collected,
        expires=add_months(collected, EXPIRY_MONTHS),
        props=[Property(name="Command", value=target)],
        evidence=[Evidence(
            description=f"The command returned an exit code of {exit_code} for the command: {target}",
        )],
    )

    findings: list[Finding] = []
    if verdict is Verdict.SUCCESS:
        observation = Observation(
            title="SSH Command Succeeded",
            description=f"The command: {target} succeeded.",
            remarks="All OK.",
            **common,
        )
    else:
        observation = Observation(
            title="SSH Command Did Not Succeed",
            description=f"The command: {target} did not succeed.",
            remarks=f"The command: '{target}' should return a zero exit code.",
            **common,
        )
        findings.append(Finding(
            id=str(uuid.uuid4()),
            title="SSH Command Failure",
            description=f"The command {target} did not succeed, and produced output: {output}.",
            remarks=f"Correct the command {target}.",
            related_observations=[observation_id],
        ))

    log = LogEntry(
        title=LOG_TITLE,
        description="SSH command check has run successfully",
        start=start,
        end=clock(),
    )
    return EvidenceBundle(observations=[observation], findings=findings, logs=[log])

from __future__ import annotations

import logging
import threading
from collections.abc import Mapping
from typing import Any

from ..remote.ssh import ExecutionError, SSHExecutor
from .classifier import classify
from .config import resolve_config
from .evidence import LOG_TITLE, Clock, generate, utc_now
from .models import CheckResult, ExecutionStatus, LogEntry, Subject, SubjectType

logger = logging.getLogger(__name__)


class SSHCommandCheck:
    """Runs the SSH command compliance check for one configured target.

    The assessment host owns one instance per configured check and calls
    identify() to learn what is being assessed and execute() to assess it.
    The executor and clock are injectable so the check can be driven
    without a network.
    """

    def __init__(self, executor: Any = None, clock: Clock = utc_now) -> None:
        self._executor = executor or SSHExecutor()
        self._clock = clock

    def identify(self, configuration: Mapping[str, Any] | None) -> list[Subject]:
        """Return the single subject this configuration assesses. Never touches the network."""
        config = resolve_config(configuration)
        target_id = config.target_id
        return [Subject(
            id=target_id,
            type=SubjectType.INVENTORY_ITEM,
            title=f"SSH target ssh {target_id}",
            props={"id": target_id},
        )]

    def execute(self, configuration: Mapping[str, Any] | None,
                cancel: threading.Event | None = None) -> CheckResult:
        """Run the command on the target and return the evidence.

        ConfigError propagates to the caller. A failure to reach or talk to
        the target is returned as an ERROR result instead of being raised.
        """
        start = self._clock()
        config = resolve_config(configuration)

        try:
            outcome = self._executor.run(config, cancel=cancel)
        except ExecutionError as exc:
            logger.error("SSH command check on %s could not run: %s", config.host, exc)
            return CheckResult(
                status=ExecutionStatus.ERROR,
                logs=[LogEntry(
                    title=LOG_TITLE,
                    description=f"SSH command check could not complete ({exc.stage}): {exc}",
                    start=start,
                    end=self._clock(),
                )],
                error=str(exc),
            )

        verdict = classify(outcome.exit_code)
        logger.info("SSH command check on %s: %s", config.host, verdict.value)
        bundle = generate(
            config, verdict, outcome.output, outcome.exit_code, start=start, clock=self._clock,
        )
        return CheckResult(
            status=ExecutionStatus.SUCCESS,
            observations=bundle.observations,
            findings=bundle.findings,
            logs=bundle.logs,
        )

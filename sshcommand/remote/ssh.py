from __future__ import annotations

import logging
import socket
import threading
import time
from contextlib import closing
from dataclasses import dataclass

import paramiko
from paramiko.hostkeys import InvalidHostKey

from ..core.config import SSHConfig
from .trust import UnknownHostKeyError, create_host_key_policy

logger = logging.getLogger(__name__)

_RECV_BUFFER = 32768


@dataclass(frozen=True)
class CommandOutput:
    """Combined stdout+stderr of the remote command and its exit status."""
    output: str
    exit_code: int


class ExecutionError(Exception):
    """Raised when the command could not be run to completion on the target.

    stage is where it broke (connect, session, command) and reason is a
    coarse category (auth, host_key, timeout, connection, protocol,
    cancelled). A non-zero exit status is never an ExecutionError.
    """

    def __init__(self, message: str, stage: str, reason: str) -> None:
        super().__init__(message)
        self.stage = stage
        self.reason = reason


class SSHExecutor:
    """Runs exactly one command over a password-authenticated SSH session.

    Both the client connection and the session channel are closed on every
    exit path. The command phase is bounded by config.timeout and can be
    aborted early through a threading.Event.
    """

    def __init__(self, poll_interval: float = 0.5) -> None:
        self._poll_interval = poll_interval

    def run(self, config: SSHConfig, cancel: threading.Event | None = None) -> CommandOutput:
        _check_cancelled(cancel, stage="connect")
        logger.info("connecting to %s@%s:%s", config.username, config.host, config.port)

        client = paramiko.SSHClient()
        with closing(client):
            self._connect(client, config)
            channel = self._open_session(client, config)
            with closing(channel):
                self._dispatch(channel, config)
                deadline = time.monotonic() + config.timeout
                output = self._read_output(channel, deadline, cancel)
                exit_code = self._wait_exit_status(channel, deadline, cancel)

        logger.info("command on %s exited with status %d", config.host, exit_code)
        return CommandOutput(output=output, exit_code=exit_code)

    def _connect(self, client: paramiko.SSHClient, config: SSHConfig) -> None:
        self._load_host_keys(client, config)
        try:
            client.set_missing_host_key_policy(create_host_key_policy(config.host_key_policy))
            client.connect(
                hostname=config.host,
                port=int(config.port),
                username=config.username,
                password=config.password,
                timeout=config.timeout,
                banner_timeout=config.timeout,
                auth_timeout=config.timeout,
                allow_agent=False,
                look_for_keys=False,
            )
        except (paramiko.SSHException, OSError) as exc:
            raise _translate(exc, stage="connect", host=config.host) from exc

    def _load_host_keys(self, client: paramiko.SSHClient, config: SSHConfig) -> None:
        # HostKeys.load, unlike SSHClient.load_host_keys, leaves the client
        # without a file to save accepted keys back to
        try:
            client.load_system_host_keys()
            if config.known_hosts:
                client.get_host_keys().load(config.known_hosts)
        except (InvalidHostKey, UnicodeDecodeError) as exc:
            raise ExecutionError(
                f"failed to load known hosts for {config.host}: {exc}",
                stage="connect", reason="host_key",
            ) from exc
        except OSError as exc:
            raise ExecutionError(
                f"failed to load known hosts file {config.known_hosts}: {exc}",
                stage="connect", reason="host_key",
            ) from exc

    def _open_session(self, client: paramiko.SSHClient, config: SSHConfig) -> paramiko.Channel:
        transport = client.get_transport()
        if transport is None or not transport.is_active():
            raise ExecutionError(
                f"failed to create session on {config.host}: transport is not active",
                stage="session", reason="connection",
            )
        try:
            return transport.open_session(timeout=config.timeout)
        except (paramiko.SSHException, OSError) as exc:
            raise _translate(exc, stage="session", host=config.host) from exc

    def _dispatch(self, channel: paramiko.Channel, config: SSHConfig) -> None:
        try:
            channel.set_combine_stderr(True)
            channel.settimeout(self._poll_interval)
            channel.exec_command(config.command)
        except (paramiko.SSHException, OSError) as exc:
            raise _translate(exc, stage="command", host=config.host) from exc

    def _read_output(self, channel: paramiko.Channel, deadline: float,
                     cancel: threading.Event | None) -> str:
        chunks: list[bytes] = []
        while True:
            _check_cancelled(cancel, stage="command")
            _check_deadline(deadline)
            try:
                data = channel.recv(_RECV_BUFFER)
            except socket.timeout:
                continue
            except (paramiko.SSHException, OSError) as exc:
                raise _translate(exc, stage="command") from exc
            if not data:
                break
            chunks.append(data)
        return b"".join(chunks).decode("utf-8", errors="replace").strip()

    def _wait_exit_status(self, channel: paramiko.Channel, deadline: float,
                          cancel: threading.Event | None) -> int:
        while not channel.exit_status_ready():
            _check_cancelled(cancel, stage="command")
            _check_deadline(deadline)
            channel.status_event.wait(self._poll_interval)

        exit_code = channel.recv_exit_status()
        # paramiko reports -1 when the server closed the channel without an exit-status
        if exit_code < 0:
            raise ExecutionError(
                "remote command finished without reporting an exit status",
                stage="command", reason="protocol",
            )
        return exit_code


def _check_cancelled(cancel: threading.Event | None, stage: str) -> None:
    if cancel is not None and cancel.is_set():
        raise ExecutionError("command execution cancelled", stage=stage, reason="cancelled")


def _check_deadline(deadline: float) -> None:
    if time.monotonic() > deadline:
        raise ExecutionError("command timed out", stage="command", reason="timeout")


def _translate(exc: Exception, stage: str, host: str = "") -> ExecutionError:
    """Wrap a paramiko or socket failure with the stage it happened in."""
    if isinstance(exc, paramiko.AuthenticationException):
        reason = "auth"
    elif isinstance(exc, (paramiko.BadHostKeyException, UnknownHostKeyError)):
        reason = "host_key"
    elif isinstance(exc, socket.timeout):
        reason = "timeout"
    elif isinstance(exc, OSError):
        reason = "connection"
    else:
        reason = "protocol"

    verb = {"connect": "failed to dial", "session": "failed to create session"}.get(
        stage, "failed to execute command",
    )
    target = f" {host}" if host else ""
    logger.debug("%s%s: %s (%s)", verb, target, exc, reason)
    return ExecutionError(f"{verb}{target}: {exc}", stage=stage, reason=reason)

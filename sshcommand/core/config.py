from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import yaml

CONFIG_KEY = "yaml"
DEFAULT_PORT = "22"
DEFAULT_TIMEOUT = 30.0
DEFAULT_HOST_KEY_POLICY = "strict"
HOST_KEY_POLICIES = ("strict", "warning", "insecure")

_REQUIRED_FIELDS = ("username", "host", "command")


class ConfigError(Exception):
    """Raised when the check configuration is absent, malformed or incomplete."""


@dataclass(frozen=True)
class SSHConfig:
    username: str
    host: str
    command: str
    password: str = field(default="", repr=False)
    port: str = DEFAULT_PORT
    timeout: float = DEFAULT_TIMEOUT
    host_key_policy: str = DEFAULT_HOST_KEY_POLICY
    known_hosts: str | None = None

    @property
    def target_id(self) -> str:
        """Stable identity of the host+command pairing being assessed."""
        return f"{self.username}@{self.host}:{self.port} {self.command}"

    @property
    def target_command(self) -> str:
        """The check rendered as the equivalent ssh invocation."""
        return f"ssh -p {self.port} {self.username}@{self.host} {self.command}"


def resolve_config(configuration: Mapping[str, Any] | None) -> SSHConfig:
    """Decode the host-supplied configuration mapping into an SSHConfig.

    Validation runs in a fixed order: the mapping itself, presence of the
    "yaml" key, YAML decoding, document shape, required fields, and finally
    the optional fields. The first failing stage raises ConfigError.
    """
    if configuration is None or not isinstance(configuration, Mapping):
        raise ConfigError("configuration must be a mapping")

    if CONFIG_KEY not in configuration:
        raise ConfigError(f"{CONFIG_KEY} parameter is missing")

    text = configuration[CONFIG_KEY]
    if not isinstance(text, str):
        raise ConfigError(f"{CONFIG_KEY} parameter must be a string, got {type(text).__name__}")

    try:
        doc = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"error decoding {CONFIG_KEY} parameter: {exc}") from exc

    if not isinstance(doc, dict):
        raise ConfigError(f"{CONFIG_KEY} parameter: expected a YAML mapping at top level")

    missing = [key for key in _REQUIRED_FIELDS if not _as_text(doc.get(key))]
    if missing:
        raise ConfigError(f"missing required fields: {', '.join(missing)}")

    return SSHConfig(
        username=_as_text(doc["username"]),
        host=_as_text(doc["host"]),
        # the command runs verbatim; stripping only decides whether it is blank
        command=str(doc["command"]),
        password=_credential(doc),
        port=_port(doc.get("port")),
        timeout=_timeout(doc.get("timeout")),
        host_key_policy=_host_key_policy(doc.get("host_key_policy")),
        known_hosts=_as_text(doc.get("known_hosts")) or None,
    )


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _credential(doc: dict) -> str:
    # "password" wins over its alias when both are given
    for key in ("password", "credential"):
        if doc.get(key) is not None:
            return str(doc[key])
    return ""


def _port(value: Any) -> str:
    port = _as_text(value)
    if not port:
        return DEFAULT_PORT
    if isinstance(value, bool) or not port.isdecimal() or not 1 <= int(port) <= 65535:
        raise ConfigError(f"port: expected an integer between 1 and 65535, got {value!r}")
    return str(int(port))


def _timeout(value: Any) -> float:
    if value is None or value == "":
        return DEFAULT_TIMEOUT
    try:
        timeout = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"timeout: expected a number of seconds, got {value!r}") from exc
    if isinstance(value, bool) or not timeout > 0:
        raise ConfigError(f"timeout: expected a positive number of seconds, got {value!r}")
    return timeout


def _host_key_policy(value: Any) -> str:
    policy = _as_text(value).lower()
    if not policy:
        return DEFAULT_HOST_KEY_POLICY
    if policy not in HOST_KEY_POLICIES:
        raise ConfigError(
            f"host_key_policy: unknown policy {value!r} (valid: {', '.join(HOST_KEY_POLICIES)})"
        )
    return policy

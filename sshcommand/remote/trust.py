"""Host key trust policies.

Controls what happens when the target presents a host key that is not in
the loaded known-hosts data:

- strict: reject the connection (default)
- warning: accept, but log the key fingerprint for later review
- insecure: accept silently; only for throwaway lab targets
"""
from __future__ import annotations

import logging

import paramiko

logger = logging.getLogger(__name__)


def _describe(key: paramiko.PKey) -> tuple[str, str]:
    try:
        return key.get_name(), key.get_fingerprint().hex()
    except (AttributeError, ValueError, TypeError):
        return "unknown", "unknown"


class UnknownHostKeyError(paramiko.SSHException):
    """Raised when the strict policy refuses a host key it has never seen."""


class StrictHostKeyPolicy(paramiko.MissingHostKeyPolicy):
    """Rejects unknown host keys, logging the rejected key first."""

    def missing_host_key(self, client: paramiko.SSHClient, hostname: str, key: paramiko.PKey) -> None:
        key_type, fingerprint = _describe(key)
        logger.warning(
            "rejecting unknown host key for %s (type: %s, fingerprint: %s)",
            hostname, key_type, fingerprint,
        )
        raise UnknownHostKeyError(f"host key for {hostname!r} not found in known_hosts")


class WarningHostKeyPolicy(paramiko.MissingHostKeyPolicy):
    """Accepts unknown host keys and records them for the rest of the session."""

    def missing_host_key(self, client: paramiko.SSHClient, hostname: str, key: paramiko.PKey) -> None:
        key_type, fingerprint = _describe(key)
        logger.warning(
            "accepting unknown host key for %s (type: %s, fingerprint: %s)",
            hostname, key_type, fingerprint,
        )
        client.get_host_keys().add(hostname, key.get_name(), key)


class InsecureHostKeyPolicy(paramiko.MissingHostKeyPolicy):
    """Accepts unknown host keys silently, in memory only.

    Unlike paramiko.AutoAddPolicy it never writes the key back to a
    known_hosts file, so an insecure run cannot widen later strict runs.
    """

    def missing_host_key(self, client: paramiko.SSHClient, hostname: str, key: paramiko.PKey) -> None:
        client.get_host_keys().add(hostname, key.get_name(), key)


_POLICIES = {
    "strict": StrictHostKeyPolicy,
    "warning": WarningHostKeyPolicy,
    "insecure": InsecureHostKeyPolicy,
}


def create_host_key_policy(name: str) -> paramiko.MissingHostKeyPolicy:
    """Build the policy registered under name. Raises ValueError for unknown names."""
    try:
        policy_cls = _POLICIES[name.strip().lower()]
    except KeyError:
        raise ValueError(
            f"unknown host key policy {name!r} (valid: {', '.join(_POLICIES)})"
        ) from None
    if policy_cls is InsecureHostKeyPolicy:
        logger.info("host key verification disabled by configuration")
    return policy_cls()

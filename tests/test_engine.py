import threading

import pytest
import yaml

from sshcommand.core.config import ConfigError
from sshcommand.core.engine import SSHCommandCheck
from sshcommand.core.evidence import add_months
from sshcommand.core.models import ExecutionStatus, SubjectType
from sshcommand.remote.ssh import CommandOutput, ExecutionError

NGINX = {
    "username": "svc",
    "password": "hunter2",
    "host": "10.0.0.5",
    "port": "22",
    "command": "systemctl is-active nginx",
}


def _configuration(doc: dict) -> dict:
    return {"yaml": yaml.safe_dump(doc)}


class FakeExecutor:
    """Stands in for SSHExecutor: returns a canned outcome or raises."""

    def __init__(self, output="", exit_code=0, error=None):
        self.output = output
        self.exit_code = exit_code
        self.error = error
        self.calls = []

    def run(self, config, cancel=None):
        self.calls.append((config, cancel))
        if self.error is not None:
            raise self.error
        return CommandOutput(output=self.output, exit_code=self.exit_code)


# --- identify ---

def test_identify_returns_single_subject():
    subjects = SSHCommandCheck(executor=FakeExecutor()).identify(_configuration(NGINX))

    assert len(subjects) == 1
    subject = subjects[0]
    assert subject.id == "svc@10.0.0.5:22 systemctl is-active nginx"
    assert subject.type is SubjectType.INVENTORY_ITEM
    assert subject.title == "SSH target ssh svc@10.0.0.5:22 systemctl is-active nginx"
    assert subject.props == {"id": subject.id}


def test_identify_is_idempotent():
    check = SSHCommandCheck(executor=FakeExecutor())
    first = check.identify(_configuration(NGINX))
    second = check.identify(_configuration(NGINX))
    assert first[0].id == second[0].id


def test_identify_defaults_port():
    doc = {k: v for k, v in NGINX.items() if k != "port"}
    subject = SSHCommandCheck(executor=FakeExecutor()).identify(_configuration(doc))[0]
    assert subject.id == "svc@10.0.0.5:22 systemctl is-active nginx"


def test_identify_does_not_run_command():
    executor = FakeExecutor()
    SSHCommandCheck(executor=executor).identify(_configuration(NGINX))
    assert executor.calls == []


@pytest.mark.parametrize("missing", ["username", "host", "command"])
def test_identify_and_execute_reject_missing_field(missing):
    doc = {k: v for k, v in NGINX.items() if k != missing}
    executor = FakeExecutor()
    check = SSHCommandCheck(executor=executor)

    with pytest.raises(ConfigError):
        check.identify(_configuration(doc))
    with pytest.raises(ConfigError):
        check.execute(_configuration(doc))
    assert executor.calls == []


# --- execute ---

def test_execute_success_scenario():
    result = SSHCommandCheck(executor=FakeExecutor("active", 0)).execute(_configuration(NGINX))

    assert result.status is ExecutionStatus.SUCCESS
    assert len(result.observations) == 1
    assert result.observations[0].title == "SSH Command Succeeded"
    assert result.findings == []
    assert len(result.logs) == 1
    assert result.error is None


def test_execute_failure_scenario():
    result = SSHCommandCheck(executor=FakeExecutor("inactive", 3)).execute(_configuration(NGINX))

    assert result.status is ExecutionStatus.SUCCESS
    assert len(result.observations) == 1
    assert len(result.findings) == 1
    obs = result.observations[0]
    finding = result.findings[0]
    assert obs.title == "SSH Command Did Not Succeed"
    assert finding.title == "SSH Command Failure"
    assert obs.id in finding.related_observations
    assert "systemctl is-active nginx" in finding.remarks


def test_execute_connection_refused_returns_error_result():
    error = ExecutionError("failed to dial 10.0.0.5: [Errno 111] Connection refused",
                           stage="connect", reason="connection")
    result = SSHCommandCheck(executor=FakeExecutor(error=error)).execute(_configuration(NGINX))

    assert result.status is ExecutionStatus.ERROR
    assert result.observations == []
    assert result.findings == []
    assert "Connection refused" in result.error
    assert len(result.logs) == 1
    assert "could not complete" in result.logs[0].description


def test_execute_passes_default_port_to_executor():
    doc = {k: v for k, v in NGINX.items() if k != "port"}
    executor = FakeExecutor()
    SSHCommandCheck(executor=executor).execute(_configuration(doc))
    config, _ = executor.calls[0]
    assert config.port == "22"


def test_execute_forwards_cancel_token():
    executor = FakeExecutor()
    cancel = threading.Event()
    SSHCommandCheck(executor=executor).execute(_configuration(NGINX), cancel=cancel)
    assert executor.calls[0][1] is cancel


def test_execute_log_spans_whole_run():
    result = SSHCommandCheck(executor=FakeExecutor()).execute(_configuration(NGINX))
    log = result.logs[0]
    obs = result.observations[0]
    assert log.start <= obs.collected <= log.end


def test_execute_expiry_is_one_month():
    result = SSHCommandCheck(executor=FakeExecutor()).execute(_configuration(NGINX))
    obs = result.observations[0]
    assert obs.expires == add_months(obs.collected, 1)


# --- serialization ---

def test_result_to_dict_uses_text_timestamps():
    result = SSHCommandCheck(executor=FakeExecutor("inactive", 3)).execute(_configuration(NGINX))
    data = result.to_dict()

    assert data["status"] == "success"
    obs = data["observations"][0]
    assert isinstance(obs["collected"], str)
    assert obs["collected"].endswith("+00:00")
    assert obs["props"] == [{"name": "Command", "value": "ssh -p 22 svc@10.0.0.5 systemctl is-active nginx"}]
    assert data["findings"][0]["related_observations"] == [obs["id"]]


def test_subject_to_dict():
    subject = SSHCommandCheck(executor=FakeExecutor()).identify(_configuration(NGINX))[0]
    assert subject.to_dict()["type"] == "inventory item"

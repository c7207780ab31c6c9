import pytest

from sshcommand.core.classifier import classify
from sshcommand.core.models import Verdict


def test_zero_exit_is_success():
    assert classify(0) is Verdict.SUCCESS


@pytest.mark.parametrize("exit_code", [1, 3, 127, 255])
def test_non_zero_exit_is_failure(exit_code):
    assert classify(exit_code) is Verdict.FAILURE

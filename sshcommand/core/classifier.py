from __future__ import annotations

from .models import Verdict


def classify(exit_code: int) -> Verdict:
    """Map a remote exit status to a verdict. Only 0 counts as success."""
    if exit_code == 0:
        return Verdict.SUCCESS
    return Verdict.FAILURE

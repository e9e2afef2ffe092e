import os
import sys
from pathlib import Path

SRC_DIR = Path(__file__).resolve().parents[1] / "src"


def pytest_sessionstart(session):  # noqa: D401 - test harness helper
    """Make ``python -m celltensor`` importable from subprocesses.

    The CLI smoke test runs the package in a child interpreter, which only
    sees the source tree if it is on PYTHONPATH.
    """

    src = str(SRC_DIR)
    path = os.environ.get("PYTHONPATH", "")
    if src not in path.split(os.pathsep):
        os.environ["PYTHONPATH"] = os.pathsep.join([src, path]) if path else src

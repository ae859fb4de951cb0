import os
import sys
import tempfile
from pathlib import Path

import pytest

os.environ.setdefault("LIVEFILE_DATA_DIR", tempfile.mkdtemp(prefix="livefile-tests-"))
os.environ.setdefault("LIVEFILE_DISABLE_ENV_FILE", "1")

# Ensure the project root is on sys.path for module imports
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from livefile.utils import envs  # noqa: E402


@pytest.fixture(autouse=True)
def _isolated_settings():
    envs.reset_settings()
    yield
    envs.reset_settings()


def _refuse_abort() -> None:
    raise AssertionError("os.abort() called; inject an error_handler in this test")


@pytest.fixture(autouse=True)
def _no_process_abort(monkeypatch):
    monkeypatch.setattr(os, "abort", _refuse_abort)

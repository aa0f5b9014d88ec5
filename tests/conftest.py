import pytest

from ucl.runtime.config import RuntimeConfig

_ENV_VARS = (
    "UCL_MAX_CALL_DEPTH",
    "UCL_MAX_LOOP_ITERATIONS",
    "UCL_WORKING_MEMORY_CAPACITY",
    "UCL_RECEIVE_TIMEOUT",
    "UCL_RUBY_BIN",
)


@pytest.fixture(autouse=True)
def _clean_ucl_env(monkeypatch):
    """Keep runtime limits at their defaults regardless of the caller's shell."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture
def config():
    return RuntimeConfig()

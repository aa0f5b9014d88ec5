from ucl.runtime.config import MAX_CALL_DEPTH, MAX_LOOP_ITERATIONS, RuntimeConfig, load_config


def test_defaults():
    config = load_config({})
    assert config == RuntimeConfig()
    assert config.max_call_depth == 1000
    assert config.max_loop_iterations == 10000
    assert config.working_memory_capacity == 7
    assert config.receive_timeout is None
    assert config.ruby_bin == "ruby"


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("UCL_MAX_CALL_DEPTH", "50")
    monkeypatch.setenv("UCL_MAX_LOOP_ITERATIONS", "200")
    monkeypatch.setenv("UCL_WORKING_MEMORY_CAPACITY", "3")
    monkeypatch.setenv("UCL_RECEIVE_TIMEOUT", "1.5")
    monkeypatch.setenv("UCL_RUBY_BIN", "/opt/ruby/bin/ruby")
    config = load_config()
    assert config.max_call_depth == 50
    assert config.max_loop_iterations == 200
    assert config.working_memory_capacity == 3
    assert config.receive_timeout == 1.5
    assert config.ruby_bin == "/opt/ruby/bin/ruby"


def test_invalid_values_fall_back_to_defaults():
    config = load_config(
        {
            "UCL_MAX_CALL_DEPTH": "lots",
            "UCL_MAX_LOOP_ITERATIONS": "-4",
            "UCL_RECEIVE_TIMEOUT": "0",
        }
    )
    assert config.max_call_depth == 1000
    assert config.max_loop_iterations == 10000
    assert config.receive_timeout is None


def test_limits_are_clamped_to_safe_maximums():
    config = load_config({"UCL_MAX_CALL_DEPTH": "10000000", "UCL_MAX_LOOP_ITERATIONS": str(10**12)})
    assert config.max_call_depth == MAX_CALL_DEPTH
    assert config.max_loop_iterations == MAX_LOOP_ITERATIONS
    assert RuntimeConfig(max_call_depth=10_000_000).max_call_depth == MAX_CALL_DEPTH

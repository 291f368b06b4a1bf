from unittest.mock import mock_open, patch

import pytest

from alb_offline.gateway.services.function_registry import FunctionRegistry


@pytest.fixture
def mock_functions_yaml():
    return """
defaults:
  timeout: 10
  environment:
    GLOBAL_ENV: "true"
    LOG_LEVEL: "${LOG_LEVEL}"

functions:
  test-func:
    handler: handlers.test_func
    environment:
      FUNC_ENV: 123
    events:
      - alb:
          listenerArn: arn:aws:elasticloadbalancing:us-east-1:123456789012:listener/app/x/1/2
          priority: 1
          conditions:
            method: GET
            path: /test/{id}
"""


def test_function_registry_load_success(mock_functions_yaml):
    with patch("builtins.open", mock_open(read_data=mock_functions_yaml)):
        with patch("alb_offline.gateway.config.config.FUNCTIONS_CONFIG_PATH", "dummy/path.yml"):
            with patch.dict("os.environ", {"LOG_LEVEL": "DEBUG"}):
                registry = FunctionRegistry()
                registry.load_functions_config()

            config = registry.get_function_config("test-func")

            assert config is not None
            assert config.name == "test-func"
            assert config.timeout == 10
            # Verify environment merging logic
            assert config.environment["GLOBAL_ENV"] == "true"
            assert config.environment["FUNC_ENV"] == "123"
            assert config.environment["LOG_LEVEL"] == "DEBUG"

            trigger = config.alb_triggers[0]
            assert trigger.priority == 1
            assert trigger.conditions.method == ["GET"]
            assert trigger.conditions.path == ["/test/{id}"]


def test_function_registry_get_nonexistent():
    with patch("builtins.open", mock_open(read_data="functions: {}")):
        with patch("alb_offline.gateway.config.config.FUNCTIONS_CONFIG_PATH", "dummy/path.yml"):
            registry = FunctionRegistry()
            registry.load_functions_config()
            assert registry.get_function_config("nonexistent") is None


def test_function_registry_missing_file_is_empty(caplog):
    registry = FunctionRegistry(config_path="/nonexistent/functions.yml")

    assert registry.load_functions_config() == {}
    assert "not found" in caplog.text


def test_function_registry_skips_invalid_entry(caplog):
    yaml_text = """
functions:
  no-backend:
    events: []
  ok:
    handler: handlers.ok
"""
    with patch("builtins.open", mock_open(read_data=yaml_text)):
        registry = FunctionRegistry(config_path="dummy/path.yml")
        registry.load_functions_config()

    assert registry.get_function_config("no-backend") is None
    assert registry.get_function_config("ok") is not None
    assert "no-backend" in caplog.text


def test_function_registry_keeps_previous_on_parse_error(mock_functions_yaml):
    valid_open = mock_open(read_data=mock_functions_yaml)
    broken_open = mock_open(read_data="functions: [unclosed")
    with patch(
        "builtins.open",
        side_effect=[valid_open.return_value, broken_open.return_value],
    ):
        registry = FunctionRegistry(config_path="dummy/path.yml")
        registry.load_functions_config()
        registry.load_functions_config(force=True)

    assert registry.get_function_config("test-func") is not None


def test_function_registry_reload_replaces_entries(mock_functions_yaml):
    remote_yaml = """
functions:
  test-func:
    url: http://lambda-rie:8080
    environment:
      FUNC_ENV: "456"
"""
    valid_open = mock_open(read_data=mock_functions_yaml)
    remote_open = mock_open(read_data=remote_yaml)
    with patch(
        "builtins.open",
        side_effect=[valid_open.return_value, remote_open.return_value],
    ):
        registry = FunctionRegistry(config_path="dummy/path.yml")
        registry.load_functions_config()
        # Cached until forced.
        registry.load_functions_config()
        registry.load_functions_config(force=True)

    config_after = registry.get_function_config("test-func")
    assert config_after.url == "http://lambda-rie:8080"
    assert config_after.handler is None
    assert config_after.environment == {"FUNC_ENV": "456"}
    assert config_after.alb_triggers == []

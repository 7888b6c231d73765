"""Tests for configuration module"""
import os
import tempfile
from pathlib import Path
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from config import Config, load_targets, validate_settings
from metrics.errors import ConfigError
from metrics.models import HttpMethod, Target

from conftest import make_target


EVO_YAML = """
targets:
  - name: evo-enge
    uri: https://evo.test/api/gyms/enge
    useBearerTokenFrom: EVO_TOKEN
    headers:
      Accept: application/json
    periodSeconds: 30
    metrics:
      - name: evo_capacity
        valueQuery: .current
        labels:
          - name: location
            query: .name
      - name: evo_percentage
        itemsQuery: "."
        valueQuery: .percentageUsed
  - name: weather
    uri: https://weather.test/station.xml
    method: post
    xmlMode: true
    formParams:
      station: zrh
    periodSeconds: 60
    metrics:
      - name: temperature_celsius
        valueQuery: .temp
"""


def write_config(content: str) -> Path:
    tmp = tempfile.NamedTemporaryFile("w", suffix=".yaml", delete=False)
    tmp.write(content)
    tmp.close()
    return Path(tmp.name)


class TestConfig:
    """Test settings validation and parsing"""

    def test_default_config(self):
        """Test default configuration values"""
        with patch.dict(os.environ, {}, clear=True):
            config = Config()

        assert config.config_file == Path("config.yaml")
        assert config.metrics_port == 9100
        assert config.metrics_host == "0.0.0.0"
        assert config.http_timeout_seconds == 10.0
        assert config.label_ttl_seconds is None
        assert config.skip_unresolvable_targets is False
        assert config.log_level == "INFO"
        assert config.log_file is None

    def test_environment_override(self):
        """Test configuration override from environment variables"""
        env_vars = {
            "CONFIG_FILE": "/etc/json2prom/targets.yaml",
            "METRICS_PORT": "8080",
            "METRICS_HOST": "127.0.0.1",
            "HTTP_TIMEOUT_SECONDS": "2.5",
            "LABEL_TTL_SECONDS": "600",
            "SKIP_UNRESOLVABLE_TARGETS": "true",
            "LOG_LEVEL": "debug",
        }

        with patch.dict(os.environ, env_vars, clear=True):
            config = Config()

        assert config.config_file == Path("/etc/json2prom/targets.yaml")
        assert config.metrics_port == 8080
        assert config.metrics_host == "127.0.0.1"
        assert config.http_timeout_seconds == 2.5
        assert config.label_ttl_seconds == 600
        assert config.skip_unresolvable_targets is True
        assert config.log_level == "DEBUG"

    def test_validation_metrics_port(self):
        """Test validation of metrics port"""
        with patch.dict(os.environ, {"METRICS_PORT": "0"}):
            with pytest.raises(ValidationError):
                Config()

        with patch.dict(os.environ, {"METRICS_PORT": "70000"}):
            with pytest.raises(ValidationError):
                Config()

    def test_validation_timeout(self):
        with patch.dict(os.environ, {"HTTP_TIMEOUT_SECONDS": "0"}):
            with pytest.raises(ValidationError):
                Config()

    def test_empty_ttl_is_unset(self):
        with patch.dict(os.environ, {"LABEL_TTL_SECONDS": ""}):
            assert Config().label_ttl_seconds is None


class TestLoadTargets:
    """YAML target file loading"""

    def test_load_example(self):
        targets = load_targets(write_config(EVO_YAML))

        assert [t.name for t in targets] == ["evo-enge", "weather"]

        evo, weather = targets
        assert evo.method is HttpMethod.GET
        assert evo.use_bearer_token_from == "EVO_TOKEN"
        assert evo.headers == {"Accept": "application/json"}
        assert evo.xml_mode is False
        assert evo.metrics[0].items_query == "."
        assert evo.metrics[0].label_names == ("target", "location")
        assert evo.metrics[1].labels == []

        assert weather.method is HttpMethod.POST
        assert weather.xml_mode is True
        assert weather.form_params == {"station": "zrh"}

    def test_missing_file(self):
        with pytest.raises(ConfigError, match="Cannot read"):
            load_targets(Path("/nonexistent/targets.yaml"))

    def test_invalid_yaml(self):
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_targets(write_config("targets: [unclosed"))

    def test_not_a_mapping(self):
        with pytest.raises(ConfigError):
            load_targets(write_config("- just\n- a list\n"))

    def test_duplicate_target_names(self):
        content = EVO_YAML.replace("name: weather", "name: evo-enge")
        with pytest.raises(ConfigError, match="Duplicate target"):
            load_targets(write_config(content))

    def test_unknown_field_rejected(self):
        content = EVO_YAML.replace("periodSeconds: 60", "periodSeconds: 60\n    retries: 3")
        with pytest.raises(ConfigError, match="validation"):
            load_targets(write_config(content))

    @pytest.mark.parametrize("bad", ["periodSeconds: 0", "periodSeconds: -5"])
    def test_period_must_be_positive(self, bad):
        content = EVO_YAML.replace("periodSeconds: 60", bad)
        with pytest.raises(ConfigError):
            load_targets(write_config(content))


class TestTargetModel:
    """Semantic invariants on targets"""

    def test_metrics_required(self):
        with pytest.raises(ValidationError):
            make_target(metrics=[])

    def test_unsupported_method(self):
        with pytest.raises(ValidationError):
            make_target(method="PATCH")

    def test_invalid_metric_name(self):
        with pytest.raises(ValidationError):
            make_target(metrics=[{"name": "evo-capacity", "valueQuery": ".current"}])

    def test_duplicate_metric_names(self):
        metric = {"name": "m", "valueQuery": ".v"}
        with pytest.raises(ValidationError):
            make_target(metrics=[metric, metric])

    def test_value_query_required(self):
        with pytest.raises(ValidationError):
            make_target(metrics=[{"name": "m"}])

    def test_snake_case_names_accepted(self):
        target = Target(
            name="t",
            uri="http://t.test/",
            period_seconds=5,
            metrics=[{"name": "m", "value_query": ".v"}],
        )
        assert target.metrics[0].value_query == ".v"

    def test_help_text_default(self, evo_target):
        assert evo_target.metrics[0].help_text == "Metric evo_capacity"


class TestValidateSettings:
    """Cross checks between settings and targets"""

    def test_no_targets(self):
        with pytest.raises(ConfigError, match="No targets"):
            validate_settings(Config(), [])

    def test_ttl_must_exceed_longest_period(self):
        targets = [make_target(periodSeconds=30), make_target(name="slow", periodSeconds=300)]

        with pytest.raises(ConfigError, match="LABEL_TTL_SECONDS"):
            validate_settings(Config(label_ttl_seconds=300), targets)

        validate_settings(Config(label_ttl_seconds=301), targets)

"""Test configuration management."""

import pytest
import tempfile
import yaml
from pathlib import Path

from mapbench.core.config import (
    RunConfig,
    DriverConfig,
    ConfigLoader,
    DEFAULT_DRIVER,
    DEFAULT_SUITE,
    apply_env_overrides,
    driver_name,
    parse_properties,
)
from mapbench.core.context import BenchmarkContext


class TestParseProperties:
    """Test key=value parsing."""

    def test_type_conversion(self):
        """Test values are converted to bool, int and float."""
        props = parse_properties("a=true\nb=12\nc=1.5\nd=atomix/local-replica:latest\ne=-3")
        assert props == {"a": True, "b": 12, "c": 1.5, "d": "atomix/local-replica:latest", "e": -3}

    def test_list_input(self):
        """Test repeated command line options."""
        assert parse_properties(["key-count=3", "key-length=4"]) == {"key-count": 3, "key-length": 4}

    def test_comments_and_blank_lines(self):
        """Test comments and blank lines are skipped."""
        assert parse_properties("# comment\n\nx=1\n") == {"x": 1}

    def test_missing_equals(self):
        """Test malformed entries are rejected."""
        with pytest.raises(ValueError):
            parse_properties("key-count")

    def test_dict_passthrough(self):
        """Test mappings are returned as-is."""
        assert parse_properties({"x": 1}) == {"x": 1}
        assert parse_properties(None) == {}


class TestDriverConfig:
    """Test driver configuration."""

    def test_driver_config_defaults(self):
        """Test the memory driver is the default."""
        config = DriverConfig()
        assert config.name == "memory"
        assert config.driver_class == DEFAULT_DRIVER
        assert config.config == {}

    def test_driver_config_alias(self):
        """Test camelCase keys from YAML files."""
        config = DriverConfig(**{
            "name": "http",
            "driverClass": "mapbench.drivers.http.HttpDriver",
            "config": "namespace=bench\nrequest_timeout=5"
        })
        assert config.driver_class == "mapbench.drivers.http.HttpDriver"
        assert config.config == {"namespace": "bench", "request_timeout": 5}


def test_driver_name():
    """Test short driver names derived from class paths."""
    assert driver_name("mapbench.drivers.http.HttpDriver") == "http"
    assert driver_name(DEFAULT_DRIVER) == "memory"
    assert driver_name("custom.Gateway") == "gateway"


class TestRunConfig:
    """Test run configuration."""

    def test_run_config_defaults(self):
        """Test default run configuration."""
        config = RunConfig()
        assert config.suite == DEFAULT_SUITE
        assert config.benchmarks == []
        assert config.workers == 1
        assert config.requests == 10000
        assert config.duration == 60.0
        assert config.max_latency_ms is None
        assert config.log_level == "INFO"

    def test_args_from_string(self):
        """Test benchmark arguments given as key=value lines."""
        config = RunConfig(args="key-count=3\nkey-length=4\nevent-timeout=0.5")
        assert config.args == {"key-count": 3, "key-length": 4, "event-timeout": 0.5}

    def test_args_bounds(self):
        """Test candidate set arguments are bound-checked."""
        with pytest.raises(ValueError):
            RunConfig(args={"key-count": 0})
        with pytest.raises(ValueError):
            RunConfig(args={"value-length": -1})
        with pytest.raises(ValueError):
            RunConfig(args={"key-length": "long"})

    def test_timeout_args(self):
        """Test wait bounds are converted to seconds and must be positive."""
        config = RunConfig(args="event-timeout=2\nscan-timeout=0.5")
        assert config.args == {"event-timeout": 2.0, "scan-timeout": 0.5}
        with pytest.raises(ValueError):
            RunConfig(args={"event-timeout": 0})
        with pytest.raises(ValueError):
            RunConfig(args={"scan-timeout": -1.5})
        with pytest.raises(ValueError):
            RunConfig(args={"setup-timeout": "soon"})

    def test_workers_validation(self):
        """Test at least one worker is required."""
        with pytest.raises(ValueError):
            RunConfig(workers=0)

    def test_duration_validation(self):
        """Test the duration must be positive."""
        with pytest.raises(ValueError):
            RunConfig(duration=0)

    def test_log_level_validation(self):
        """Test unknown log levels are rejected."""
        assert RunConfig(log_level="debug").log_level == "DEBUG"
        with pytest.raises(ValueError):
            RunConfig(log_level="LOUD")

    def test_env_overrides(self, monkeypatch):
        """Test MAPBENCH_* environment variables."""
        monkeypatch.setenv("MAPBENCH_WORKERS", "4")
        monkeypatch.setenv("MAPBENCH_LOG_LEVEL", "WARNING")
        config = apply_env_overrides(RunConfig(args={"key-count": 3}))
        assert config.workers == 4
        assert config.log_level == "WARNING"
        assert config.args == {"key-count": 3}

    def test_env_overrides_absent(self, monkeypatch):
        """Test the config is untouched without overrides."""
        for name in ("MAPBENCH_WORKERS", "MAPBENCH_LOG_LEVEL", "MAPBENCH_LOG_FILE", "MAPBENCH_RESULTS_DIR"):
            monkeypatch.delenv(name, raising=False)
        config = RunConfig()
        assert apply_env_overrides(config) is config


class TestConfigLoader:
    """Test configuration loader."""

    def test_load_run_config(self):
        """Test loading run configuration from YAML."""
        data = {
            "benchmarks": ["map_put", "map_get"],
            "workers": 2,
            "requests": 100,
            "maxLatencyMs": 50,
            "args": {"key-count": 3, "key-length": 4},
            "driver": {
                "name": "memory",
                "driverClass": "mapbench.drivers.memory.MemoryDriver",
                "config": {"latency_ms": 1}
            }
        }

        with tempfile.NamedTemporaryFile(mode='w', suffix='.yaml', delete=False) as f:
            yaml.dump(data, f)
            temp_path = f.name

        try:
            config = ConfigLoader.load_run(temp_path)
            assert config.benchmarks == ["map_put", "map_get"]
            assert config.workers == 2
            assert config.max_latency_ms == 50
            assert config.args["key-count"] == 3
            assert config.driver.config == {"latency_ms": 1}
        finally:
            Path(temp_path).unlink()

    def test_save_and_reload(self):
        """Test saving configuration to YAML and loading it back."""
        config = RunConfig(workers=3, args={"key-count": 7})

        with tempfile.TemporaryDirectory() as temp_dir:
            path = Path(temp_dir) / "run.yaml"
            ConfigLoader.save_config(config, path)
            loaded = ConfigLoader.load_run(path)

        assert loaded.workers == 3
        assert loaded.args == {"key-count": 7}
        assert loaded.driver.driver_class == DEFAULT_DRIVER


class TestBenchmarkContext:
    """Test benchmark context arguments."""

    def test_typed_getters(self):
        """Test conversion and defaults."""
        context = BenchmarkContext({"key-count": "3", "event-timeout": "0.5", "image": "img"})
        assert context.get_int("key-count", 1000) == 3
        assert context.get_int("key-length", 8) == 8
        assert context.get_float("event-timeout", 10.0) == 0.5
        assert context.get_str("image", "default") == "img"

    def test_invalid_value(self):
        """Test unconvertible values raise."""
        context = BenchmarkContext({"key-count": "many"})
        with pytest.raises(ValueError):
            context.get_int("key-count", 1000)

    def test_scoping(self):
        """Test worker and benchmark scoped copies share arguments."""
        context = BenchmarkContext({"key-count": 3})
        scoped = context.for_worker("worker-1").for_benchmark("map_put")
        assert scoped.worker_id == "worker-1"
        assert scoped.name == "map_put"
        assert scoped.get_int("key-count", 0) == 3
        assert context.name is None

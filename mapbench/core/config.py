"""Configuration management for the map benchmark harness."""

import os
import yaml
from typing import Dict, List, Optional, Any, Union
from pathlib import Path
from pydantic import BaseModel, Field, validator

DEFAULT_SUITE = "mapbench.suites.map_suite.MapBenchmarkSuite"
DEFAULT_DRIVER = "mapbench.drivers.memory.MemoryDriver"

# Workload args that size a candidate set: (minimum, default)
WORKLOAD_ARGS = {
    "key-length": (0, 8),
    "key-count": (1, 1000),
    "value-length": (0, 128),
    "value-count": (1, 1),
}

# Per-iteration wait bounds in seconds; must be positive
TIMEOUT_ARGS = ("event-timeout", "scan-timeout", "setup-timeout")


def parse_properties(v: Any) -> Dict[str, Any]:
    """Parse ``key=value`` lines (or a list of ``key=value`` items) into a dictionary.

    Values are converted to bool, int or float where they look like one;
    everything else stays a string.
    """
    if isinstance(v, (list, tuple)):
        v = '\n'.join(str(item) for item in v)
    if not isinstance(v, str):
        return dict(v or {})

    config = {}
    for line in v.strip().split('\n'):
        line = line.strip()
        # Skip empty lines and comments
        if not line or line.startswith('#'):
            continue

        if '=' not in line:
            raise ValueError(f"expected key=value, got '{line}'")

        key, value = line.split('=', 1)
        key = key.strip()
        value = value.strip()

        if value.lower() in ('true', 'false'):
            config[key] = value.lower() == 'true'
        elif value.lstrip('-').isdigit():
            config[key] = int(value)
        elif value.replace('.', '', 1).replace('-', '', 1).isdigit():
            try:
                config[key] = float(value)
            except ValueError:
                config[key] = value
        else:
            config[key] = value

    return config


def driver_name(driver_class: str) -> str:
    """Short driver name for a class path, e.g. ``mapbench.drivers.http.HttpDriver`` -> ``http``."""
    class_name = driver_class.rsplit('.', 1)[-1]
    if class_name.endswith("Driver") and class_name != "Driver":
        class_name = class_name[:-len("Driver")]
    return class_name.lower()


class DriverConfig(BaseModel):
    """Map service driver configuration."""

    name: str = Field("memory", description="Driver name")
    driver_class: str = Field(alias="driverClass", default=DEFAULT_DRIVER, description="Driver class path")

    # Driver-specific settings (addresses, timeouts, injected latency, ...)
    config: Dict[str, Any] = Field(default_factory=dict)

    class Config:
        populate_by_name = True

    @validator('config', pre=True)
    def parse_config_string(cls, v):
        """Accept driver settings as ``key=value`` lines."""
        return parse_properties(v)


class RunConfig(BaseModel):
    """Configuration of one benchmark run."""

    suite: str = Field(DEFAULT_SUITE, description="Benchmark suite class path")
    benchmarks: List[str] = Field(default_factory=list, description="Benchmarks to run, empty for all")

    # Execution settings
    workers: int = Field(1, ge=1, description="Number of parallel workers")
    requests: int = Field(10000, ge=0, description="Iterations per worker, 0 for unbounded")
    duration: float = Field(60.0, gt=0, description="Maximum run time per benchmark in seconds")
    max_latency_ms: Optional[float] = Field(alias="maxLatencyMs", default=None, gt=0)

    # Benchmark arguments (key-length, key-count, ...)
    args: Dict[str, Any] = Field(default_factory=dict)

    driver: DriverConfig = Field(default_factory=DriverConfig)

    # Logging settings
    log_level: str = Field(alias="logLevel", default="INFO", description="Logging level")
    log_file: Optional[str] = Field(alias="logFile", default=None, description="Log file path")

    # Results settings
    results_dir: str = Field(alias="resultsDir", default="results", description="Results directory")
    results_file_prefix: str = Field(alias="resultsFilePrefix", default="mapbench")

    class Config:
        populate_by_name = True

    @validator('args', pre=True)
    def parse_args(cls, v):
        """Parse and bound-check benchmark arguments."""
        args = parse_properties(v)
        for name, (minimum, _) in WORKLOAD_ARGS.items():
            if name not in args:
                continue
            try:
                value = int(args[name])
            except (TypeError, ValueError):
                raise ValueError(f"argument '{name}' must be an integer, got {args[name]!r}")
            if value < minimum:
                raise ValueError(f"argument '{name}' must be >= {minimum}, got {value}")
            args[name] = value
        for name in TIMEOUT_ARGS:
            if name not in args:
                continue
            try:
                seconds = float(args[name])
            except (TypeError, ValueError):
                raise ValueError(f"argument '{name}' must be a number of seconds, got {args[name]!r}")
            if not seconds > 0:
                raise ValueError(f"argument '{name}' must be > 0, got {seconds:g}")
            args[name] = seconds
        return args

    @validator('log_level')
    def check_log_level(cls, v):
        if v.upper() not in ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'):
            raise ValueError(f"unknown log level: {v}")
        return v.upper()


class ConfigLoader:
    """Configuration loader utility."""

    @staticmethod
    def load_run(file_path: Union[str, Path]) -> RunConfig:
        """Load run configuration from YAML file."""
        with open(file_path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}
        return RunConfig(**data)

    @staticmethod
    def save_config(config: BaseModel, file_path: Union[str, Path]) -> None:
        """Save configuration to YAML file."""
        with open(file_path, 'w', encoding='utf-8') as f:
            data = config.dict(by_alias=True, exclude_none=True)
            yaml.safe_dump(data, f, default_flow_style=False, indent=2)


def apply_env_overrides(config: RunConfig) -> RunConfig:
    """Override run settings from ``MAPBENCH_*`` environment variables."""
    overrides: Dict[str, Any] = {}
    if os.getenv('MAPBENCH_LOG_LEVEL'):
        overrides['log_level'] = os.environ['MAPBENCH_LOG_LEVEL']
    if os.getenv('MAPBENCH_LOG_FILE'):
        overrides['log_file'] = os.environ['MAPBENCH_LOG_FILE']
    if os.getenv('MAPBENCH_RESULTS_DIR'):
        overrides['results_dir'] = os.environ['MAPBENCH_RESULTS_DIR']
    if os.getenv('MAPBENCH_WORKERS'):
        overrides['workers'] = int(os.environ['MAPBENCH_WORKERS'])

    if not overrides:
        return config

    data = config.dict()
    data.update(overrides)
    return RunConfig(**data)

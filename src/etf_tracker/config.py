"""Configuration management for the ETF holdings tracker."""

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

BACKENDS = ("sqlite", "table", "memory")


def _get_base_dir() -> Path:
    """Get the working directory for data and artifacts."""
    home = os.environ.get("ETF_TRACKER_HOME", "")
    if home:
        return Path(home).expanduser()
    return Path.cwd()


@dataclass
class Config:
    """Application configuration."""

    base_dir: Path = field(default_factory=_get_base_dir)
    data_dir: Path = field(init=False)
    artifacts_dir: Path = field(init=False)
    db_path: Path = field(init=False)
    table_path: Path = field(init=False)
    settings_file: Path = field(init=False)

    # Tracked fund
    fund_code: str = "00981A"

    # Storage
    backend: str = "sqlite"  # "sqlite", "table" or "memory"
    retention_days: int = 90

    def __post_init__(self) -> None:
        self.base_dir = Path(self.base_dir)
        self.data_dir = self.base_dir / "data"
        self.artifacts_dir = self.base_dir / "artifacts"
        self.db_path = self.data_dir / "holdings.db"
        self.table_path = self.data_dir / "holdings.csv"
        self.settings_file = self.data_dir / "settings.yaml"

        # Ensure directories exist
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.artifacts_dir.mkdir(parents=True, exist_ok=True)


def load_settings(config: Config, path: Path | None = None) -> Config:
    """Apply overrides from the YAML settings file to a config."""
    settings_file = path or config.settings_file
    if not settings_file.exists():
        return config

    with open(settings_file) as f:
        data = yaml.safe_load(f) or {}

    if "fund_code" in data:
        config.fund_code = str(data["fund_code"])
    if "retention_days" in data:
        retention_days = int(data["retention_days"])
        if retention_days < 0:
            raise ValueError(f"retention_days must be >= 0, got {retention_days}")
        config.retention_days = retention_days
    if "backend" in data:
        backend = str(data["backend"]).lower()
        if backend not in BACKENDS:
            raise ValueError(f"Unknown storage backend: {backend}")
        config.backend = backend
    return config


def save_settings(config: Config) -> None:
    """Save the tunable settings to the YAML settings file."""
    data = {
        "fund_code": config.fund_code,
        "backend": config.backend,
        "retention_days": config.retention_days,
    }
    with open(config.settings_file, "w") as f:
        yaml.dump(data, f, default_flow_style=False, sort_keys=False)


def get_config(settings_file: Path | None = None) -> Config:
    """Get the default configuration with settings file overrides."""
    return load_settings(Config(), settings_file)

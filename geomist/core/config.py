"""Configuration management for GEO MIST (lightweight dataclass version)."""

from __future__ import annotations

from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Dict, List
import os
import yaml


def _default_port() -> int:
    return int(os.getenv("PORT", "3000"))


@dataclass
class StoreConfig:
    history_capacity: int = 168  # 7 days of hourly samples
    alert_capacity: int = 100
    api_alert_limit: int = 50


@dataclass
class HubConfig:
    queue_size: int = 100
    snapshot_alerts: int = 20


@dataclass
class SimulationConfig:
    enabled: bool = True
    interval: float = 5.0
    seed_demo: bool = True
    seed_history_hours: int = 48


@dataclass
class ThresholdConfig:
    max_temp: float = 29.0
    min_moisture: float = 40.0
    min_humidity: float = 55.0
    critical_moisture: float = 30.0


@dataclass
class Config:
    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    store: StoreConfig = field(default_factory=StoreConfig)
    hub: HubConfig = field(default_factory=HubConfig)
    simulation: SimulationConfig = field(default_factory=SimulationConfig)
    thresholds: ThresholdConfig = field(default_factory=ThresholdConfig)

    # API Configuration
    api_host: str = "0.0.0.0"
    api_port: int = field(default_factory=_default_port)
    cors_origins: List[str] = field(default_factory=lambda: ["*"])

    def __post_init__(self):
        # Allow dict inputs for nested configs
        if isinstance(self.store, dict):
            self.store = StoreConfig(**self.store)
        if isinstance(self.hub, dict):
            self.hub = HubConfig(**self.hub)
        if isinstance(self.simulation, dict):
            self.simulation = SimulationConfig(**self.simulation)
        if isinstance(self.thresholds, dict):
            self.thresholds = ThresholdConfig(**self.thresholds)
        self.api_port = int(self.api_port)

    @classmethod
    def from_yaml(cls, path: Path) -> "Config":
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
        return cls(**data)

    def dict(self) -> Dict:
        return asdict(self)


def get_config() -> Config:
    config_path = os.getenv("GEOMIST_CONFIG", "config/default.yaml")
    p = Path(config_path)
    if p.exists():
        return Config.from_yaml(p)
    return Config()

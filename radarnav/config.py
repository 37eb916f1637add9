"""RadarNav configuration.

Loads from config.yaml if present, with environment variable overrides.
Environment variables use the pattern: RADARNAV_<SECTION>_<KEY> (uppercase).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from pathlib import Path

import yaml


@dataclass
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 8000
    env: str = "dev"  # "dev" or "prod"


@dataclass
class QueueConfig:
    max_size: int = 1_000


@dataclass
class FilterConfig:
    max_accuracy_m: float = 30.0
    buffer_size: int = 4


@dataclass
class SpeedConfig:
    window: int = 3
    min_pair_s: float = 0.3
    max_pair_s: float = 2.0
    min_pair_distance_m: float = 0.3
    min_valid_pairs: int = 2
    max_speed_kmh: float = 200.0
    agreement_kmh: float = 15.0
    device_weight: float = 0.6
    decay_factor: float = 0.95
    decay_window_s: float = 3.0
    display_window: int = 2


@dataclass
class HeadingConfig:
    motion_kmh: float = 2.0
    min_displacement_m: float = 15.0
    lookback: int = 2  # compare the latest sample with the one `lookback` places earlier
    hold_s: float = 5.0
    glitch_deg: float = 45.0
    glitch_min_buffer: int = 2
    display_window: int = 5
    display_step_deg: float = 2.0
    calibration_min_kmh: float = 3.0


@dataclass
class RouteConfig:
    buffer_km: float = 0.12
    bbox_padding: float = 0.02
    default_origin_lat: float = 48.86
    default_origin_lon: float = 2.35


@dataclass
class AlertConfig:
    radius_m: float = 500.0
    advisory_ttl_s: float = 6.0


@dataclass
class ServicesConfig:
    address_url: str = "https://api-adresse.data.gouv.fr/search/"
    nominatim_url: str = "https://nominatim.openstreetmap.org/search"
    nominatim_suffix: str = " France"
    osrm_url: str = "https://router.project-osrm.org/route/v1/driving"
    candidates_url: str = "https://www.data.gouv.fr/api/1/datasets/r/8a22b5a8-4b65-41be-891a-7c0aead4ba51"
    candidates_file: str = ""
    load_candidates: bool = True
    timeout_s: float = 10.0
    user_agent: str = "radarnav/0.1"
    provider_limit: int = 3
    search_limit: int = 5
    search_min_chars: int = 3
    search_debounce_ms: int = 300


@dataclass
class LoggingConfig:
    level: str = "info"
    format: str = "console"  # "console" or "json"


@dataclass
class AppConfig:
    server: ServerConfig = field(default_factory=ServerConfig)
    queue: QueueConfig = field(default_factory=QueueConfig)
    filter: FilterConfig = field(default_factory=FilterConfig)
    speed: SpeedConfig = field(default_factory=SpeedConfig)
    heading: HeadingConfig = field(default_factory=HeadingConfig)
    route: RouteConfig = field(default_factory=RouteConfig)
    alerts: AlertConfig = field(default_factory=AlertConfig)
    services: ServicesConfig = field(default_factory=ServicesConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _coerce(current, value: str):
    """Convert an environment string to the type of the current value."""
    if isinstance(current, bool):
        return value.strip().lower() in ("1", "true", "yes", "on")
    if isinstance(current, int):
        return int(value)
    if isinstance(current, float):
        return float(value)
    return value


def _apply_env_overrides(config: AppConfig) -> None:
    """Override config values from environment variables."""
    for section_field in fields(config):
        section = getattr(config, section_field.name)
        prefix = f"RADARNAV_{section_field.name.upper()}_"
        for key_field in fields(section):
            val = os.environ.get(prefix + key_field.name.upper())
            if val is not None:
                current = getattr(section, key_field.name)
                setattr(section, key_field.name, _coerce(current, val))


def load_config(config_path: str | Path | None = None) -> AppConfig:
    """Load configuration from YAML file + environment overrides."""
    config = AppConfig()

    # Try to load YAML
    if config_path is None:
        config_path = Path("config.yaml")
    else:
        config_path = Path(config_path)

    if config_path.exists():
        with open(config_path) as f:
            raw = yaml.safe_load(f) or {}

        for section_name, values in raw.items():
            section = getattr(config, section_name, None)
            if section is None or not isinstance(values, dict):
                continue
            for k, v in values.items():
                if hasattr(section, k):
                    setattr(section, k, v)

    # Environment overrides always win
    _apply_env_overrides(config)
    return config

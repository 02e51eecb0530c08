"""YAML configuration for the SPX screener.

Defaults ship in ``spx_screener/config/default_params.yaml``; a user file is
deep-merged over them so it only needs the keys it changes.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Tuple

import yaml

from ..criteria.query import QueryDefaults, ScanRequest
from ..criteria.ranges import RangeCriteria
from .error_handling import ConfigurationError, CriteriaError

logger = logging.getLogger("spx_screener.config")

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config" / "default_params.yaml"


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge ``override`` into a copy of ``base``."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def read_yaml(path: str | Path) -> Dict[str, Any]:
    """Read a YAML mapping.

    Raises:
        ConfigurationError: If the file is missing, unparsable or not a mapping
    """
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"Config file not found: {path}")
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping, got {type(data).__name__}")
    return data


@dataclass
class ScreenerConfig:
    """Runtime settings for scans."""

    symbol: str = "^SPX"
    provider: str = "yfinance"
    tradier_sandbox: bool = True
    context_size: int = 4
    strike_step: float = 5.0
    query_defaults: QueryDefaults = field(default_factory=QueryDefaults)
    presets: Dict[str, ScanRequest] = field(default_factory=dict)
    calendar: Dict[str, Any] = field(default_factory=lambda: {'type': 'nyse'})
    max_retries: int = 3
    backoff_factor: float = 2.0
    max_wait: float = 30.0
    ladder_distances: Tuple[float, ...] = (150, 200, 250, 350)
    bid_levels: Tuple[float, ...] = (0.05, 0.10, 0.15, 0.20, 0.25, 0.50, 1.00)
    log_level: str = "WARNING"
    log_file: str | None = None

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> "ScreenerConfig":
        """Create ScreenerConfig from a parsed YAML mapping.

        Args:
            config: Mapping with optional market, scan, query_defaults,
                presets, calendar, retry, analytics and logging sections

        Returns:
            ScreenerConfig instance

        Raises:
            ConfigurationError: If a value has the wrong type or a preset is invalid
        """
        market = config.get('market') or {}
        scan = config.get('scan') or {}
        retry = config.get('retry') or {}
        analytics = config.get('analytics') or {}
        log = config.get('logging') or {}

        try:
            settings = cls(
                symbol=str(market.get('symbol', "^SPX")),
                provider=str(market.get('provider', "yfinance")),
                tradier_sandbox=bool(market.get('tradier_sandbox', True)),
                context_size=int(scan.get('context_size', 4)),
                strike_step=float(scan.get('strike_step', 5.0)),
                query_defaults=QueryDefaults.from_dict(config.get('query_defaults') or {}),
                presets=_parse_presets(config.get('presets') or {}),
                calendar=dict(config.get('calendar') or {'type': 'nyse'}),
                max_retries=int(retry.get('max_retries', 3)),
                backoff_factor=float(retry.get('backoff_factor', 2.0)),
                max_wait=float(retry.get('max_wait', 30.0)),
                ladder_distances=_floats(analytics.get('ladder_distances', cls.ladder_distances)),
                bid_levels=_floats(analytics.get('bid_levels', cls.bid_levels)),
                log_level=str(log.get('level', "WARNING")),
                log_file=log.get('file'),
            )
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid configuration value: {e}") from e

        if settings.context_size < 0:
            raise ConfigurationError(f"scan.context_size must be >= 0, got {settings.context_size}")
        if settings.strike_step <= 0:
            raise ConfigurationError(f"scan.strike_step must be positive, got {settings.strike_step}")
        if settings.max_retries < 1:
            raise ConfigurationError(f"retry.max_retries must be >= 1, got {settings.max_retries}")
        if settings.max_wait < 0:
            raise ConfigurationError(f"retry.max_wait must be >= 0, got {settings.max_wait}")
        return settings

    def preset(self, name: str) -> ScanRequest:
        """Look up a named preset such as 'today' or 'tomorrow'.

        Raises:
            ConfigurationError: If no preset has that name
        """
        try:
            return self.presets[name.lower()]
        except KeyError:
            known = ", ".join(sorted(self.presets)) or "none"
            raise ConfigurationError(f"Unknown preset {name!r} (available: {known})")


def _floats(values: Any) -> Tuple[float, ...]:
    return tuple(float(v) for v in values)


def _parse_presets(presets: Dict[str, Any]) -> Dict[str, ScanRequest]:
    parsed: Dict[str, ScanRequest] = {}
    for name, preset in presets.items():
        if not isinstance(preset, dict) or 'trading_days' not in preset:
            raise ConfigurationError(f"Preset {name!r} needs at least trading_days")
        try:
            parsed[str(name).lower()] = ScanRequest(
                trading_days=int(preset['trading_days']),
                criteria=RangeCriteria.from_dict(preset),
            )
        except CriteriaError as e:
            raise ConfigurationError(f"Invalid preset {name!r}: {e}") from e
    return parsed


def load_config(path: str | Path | None = None) -> ScreenerConfig:
    """Load defaults, merge an optional user file over them and build ScreenerConfig.

    Args:
        path: Optional user YAML file

    Returns:
        ScreenerConfig

    Raises:
        ConfigurationError: If either file is invalid
    """
    data = read_yaml(DEFAULT_CONFIG_PATH)
    if path is not None:
        logger.info("Loading config overrides from %s", path)
        data = deep_merge(data, read_yaml(path))
    return ScreenerConfig.from_dict(data)
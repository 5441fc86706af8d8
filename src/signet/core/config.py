"""
Configuration management with TOML + environment variable support.

Configuration hierarchy (later overrides earlier):
1. Default values in code
2. TOML file
3. Environment variables (SIGNET_* prefix)
"""
import os
import tomllib
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import Any, Optional

POLYGON_CHAIN_ID = 137
DEFAULT_CLOB_URL = "https://clob.polymarket.com"


class ConfigManager:
    """Centralized configuration with TOML + env var support.

    Usage:
        config = ConfigManager(Path("config/default.toml"))
        log_level = config.get("signet.log_level")
        buffer = config.get_int("execution.gtd_buffer_seconds", 90)
    """

    def __init__(
        self,
        config_path: Optional[Path] = None,
        env_prefix: str = "SIGNET_",
    ) -> None:
        """Initialize ConfigManager.

        Args:
            config_path: Path to TOML config file (optional)
            env_prefix: Prefix for environment variable overrides
        """
        self._data: dict[str, Any] = {}
        self._env_prefix = env_prefix
        self._config_path = config_path

        if config_path and config_path.exists():
            self._load_toml(config_path)

    def _load_toml(self, path: Path) -> None:
        with open(path, "rb") as f:
            self._data = tomllib.load(f)

    def _get_nested(self, data: dict[str, Any], key: str) -> tuple[bool, Any]:
        """Get a nested value using dot notation.

        Returns (found, value) tuple.
        """
        current = data
        for part in key.split("."):
            if not isinstance(current, dict) or part not in current:
                return False, None
            current = current[part]
        return True, current

    def _get_env_value(self, key: str) -> tuple[bool, Any]:
        """Get value from environment variable.

        Converts key like "clob.chain_id" to "SIGNET_CLOB_CHAIN_ID".
        """
        env_key = self._env_prefix + key.upper().replace(".", "_")
        if env_key in os.environ:
            return True, self._parse_env_value(os.environ[env_key])
        return False, None

    def _parse_env_value(self, value: str) -> Any:
        """Parse environment variable string to appropriate type.

        Hex strings (addresses, keys) are kept verbatim.
        """
        if value.lower() in ("true", "yes", "on"):
            return True
        if value.lower() in ("false", "no", "off"):
            return False
        if value.lower().startswith("0x"):
            return value

        try:
            if "." in value:
                return float(value)
            return int(value)
        except ValueError:
            pass

        if "," in value:
            return [v.strip() for v in value.split(",")]

        return value

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value with dot notation.

        Environment variables take precedence over TOML values.

        Args:
            key: Dot-notation key like "signet.log_level"
            default: Default value if key not found

        Returns:
            Configuration value
        """
        found, value = self._get_env_value(key)
        if found:
            return value

        found, value = self._get_nested(self._data, key)
        if found:
            return value

        return default

    def get_section(self, section: str) -> dict[str, Any]:
        """Get entire configuration section."""
        found, value = self._get_nested(self._data, section)
        if found and isinstance(value, dict):
            return value
        return {}

    def get_decimal(self, key: str, default: Decimal = Decimal("0")) -> Decimal:
        """Get configuration value as Decimal.

        Floats are routed through str() so 0.01 stays 0.01.
        """
        value = self.get(key)
        if value is None:
            return default
        return Decimal(str(value))

    def get_float(self, key: str, default: float = 0.0) -> float:
        value = self.get(key)
        if value is None:
            return default
        return float(value)

    def get_bool(self, key: str, default: bool = False) -> bool:
        value = self.get(key)
        if value is None:
            return default
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return value.lower() in ("true", "1", "yes", "on")
        return bool(value)

    def get_int(self, key: str, default: int = 0) -> int:
        value = self.get(key)
        if value is None:
            return default
        return int(value)

    def get_str(self, key: str, default: Optional[str] = None) -> Optional[str]:
        value = self.get(key)
        if value is None or value == "":
            return default
        return str(value)

    def get_list(self, key: str, default: Optional[list[Any]] = None) -> list[Any]:
        if default is None:
            default = []
        value = self.get(key)
        if value is None:
            return default
        if isinstance(value, list):
            return value
        if isinstance(value, str):
            return [v.strip() for v in value.split(",")]
        return [value]

    def reload(self) -> None:
        """Reload configuration from TOML file."""
        if self._config_path and self._config_path.exists():
            self._load_toml(self._config_path)

    @property
    def raw_data(self) -> dict[str, Any]:
        """Get raw configuration data (for debugging)."""
        return self._data.copy()


@dataclass(frozen=True)
class EngineSettings:
    """Tunables for the order pipeline, resolved once from ConfigManager."""

    clob_url: str = DEFAULT_CLOB_URL
    chain_id: int = POLYGON_CHAIN_ID
    http_timeout_seconds: float = 10.0
    http_proxy: Optional[str] = None

    default_tick_size: Decimal = Decimal("0.01")
    default_min_size: Decimal = Decimal("1")
    max_display_spread: Decimal = Decimal("0.10")

    gtd_buffer_seconds: int = 90
    default_gtd_lifetime_seconds: int = 2 * 60 * 60
    fee_rate_bps: int = 0
    client_ready_timeout_seconds: float = 5.0
    chain_switch_poll_attempts: int = 15
    chain_switch_poll_interval_seconds: float = 0.3

    batch_capacity: int = 15

    credential_ttl_seconds: int = 24 * 60 * 60
    credential_store_path: Optional[str] = None

    open_orders_ttl_seconds: float = 30.0

    audit_enabled: bool = False
    audit_url: Optional[str] = None
    audit_token: Optional[str] = None
    audit_timeout_seconds: float = 5.0

    @classmethod
    def from_config(cls, config: ConfigManager) -> "EngineSettings":
        """Build settings from a ConfigManager, falling back to defaults."""
        defaults = cls()
        return cls(
            clob_url=config.get_str("clob.url", defaults.clob_url),
            chain_id=config.get_int("clob.chain_id", defaults.chain_id),
            http_timeout_seconds=config.get_float(
                "clob.timeout_seconds", defaults.http_timeout_seconds
            ),
            http_proxy=config.get_str("clob.http_proxy"),
            default_tick_size=config.get_decimal(
                "market.default_tick_size", defaults.default_tick_size
            ),
            default_min_size=config.get_decimal(
                "market.default_min_size", defaults.default_min_size
            ),
            max_display_spread=config.get_decimal(
                "pricing.max_display_spread", defaults.max_display_spread
            ),
            gtd_buffer_seconds=config.get_int(
                "execution.gtd_buffer_seconds", defaults.gtd_buffer_seconds
            ),
            default_gtd_lifetime_seconds=config.get_int(
                "execution.default_gtd_lifetime_seconds",
                defaults.default_gtd_lifetime_seconds,
            ),
            fee_rate_bps=config.get_int("execution.fee_rate_bps", defaults.fee_rate_bps),
            client_ready_timeout_seconds=config.get_float(
                "execution.client_ready_timeout_seconds",
                defaults.client_ready_timeout_seconds,
            ),
            chain_switch_poll_attempts=config.get_int(
                "execution.chain_switch_poll_attempts",
                defaults.chain_switch_poll_attempts,
            ),
            chain_switch_poll_interval_seconds=config.get_float(
                "execution.chain_switch_poll_interval_seconds",
                defaults.chain_switch_poll_interval_seconds,
            ),
            batch_capacity=config.get_int("batch.capacity", defaults.batch_capacity),
            credential_ttl_seconds=config.get_int(
                "credentials.ttl_seconds", defaults.credential_ttl_seconds
            ),
            credential_store_path=config.get_str("credentials.store_path"),
            open_orders_ttl_seconds=config.get_float(
                "execution.open_orders_ttl_seconds", defaults.open_orders_ttl_seconds
            ),
            audit_enabled=config.get_bool("audit.enabled", defaults.audit_enabled),
            audit_url=config.get_str("audit.url"),
            audit_token=config.get_str("audit.token"),
            audit_timeout_seconds=config.get_float(
                "audit.timeout_seconds", defaults.audit_timeout_seconds
            ),
        )

# config.py
"""
Configuration management for the compensation engine.
Loads from .env, validates critical keys.
"""
import os
import logging
from typing import Any, Dict
from dotenv import load_dotenv

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Configuration error exception."""
    pass


class Config:
    """
    Configuration manager with static and dynamic values.

    Usage:
        # Load from .env
        Config.initialize_from_env()

        # Get value
        url = Config.get(Config.DATABASE_URL)

        # Set dynamic value
        Config.set(Config.MLM_STRUCTURE, "unilevel")
    """

    # ═══════════════════════════════════════════════════════════════════════
    # CONFIGURATION KEYS
    # ═══════════════════════════════════════════════════════════════════════

    # Database
    DATABASE_URL = "DATABASE_URL"

    # Network structure defaults (seed values for system_config)
    MLM_STRUCTURE = "MLM_STRUCTURE"
    BINARY_MAX_DEPTH = "BINARY_MAX_DEPTH"
    UNILEVEL_MAX_DEPTH = "UNILEVEL_MAX_DEPTH"
    PERFORMANCE_BONUS_ENABLED = "PERFORMANCE_BONUS_ENABLED"
    PV_CALCULATION = "PV_CALCULATION"

    # Settlement
    MONTHLY_CUTOFF_DAY = "MONTHLY_CUTOFF_DAY"
    CUTOFF_HOUR = "CUTOFF_HOUR"

    # System
    LOG_LEVEL = "LOG_LEVEL"

    # ═══════════════════════════════════════════════════════════════════════
    # CRITICAL KEYS (must be present)
    # ═══════════════════════════════════════════════════════════════════════

    CRITICAL_KEYS = [
        DATABASE_URL,
    ]

    # ═══════════════════════════════════════════════════════════════════════
    # STORAGE
    # ═══════════════════════════════════════════════════════════════════════

    _config: Dict[str, Any] = {}
    _initialized: bool = False

    # ═══════════════════════════════════════════════════════════════════════
    # METHODS
    # ═══════════════════════════════════════════════════════════════════════

    @classmethod
    def initialize_from_env(cls) -> None:
        """
        Load configuration from .env file and process environment.

        Raises:
            ConfigurationError: If a value cannot be parsed
        """
        load_dotenv()

        logger.info("Loading configuration from environment...")

        try:
            # Database
            cls._config[cls.DATABASE_URL] = os.getenv(
                "DATABASE_URL",
                "sqlite:///network_comp.db"
            )

            # Network structure
            structure = os.getenv("MLM_STRUCTURE", "binary").strip().lower()
            if structure not in ("binary", "unilevel"):
                raise ValueError(f"MLM_STRUCTURE must be 'binary' or 'unilevel', got '{structure}'")
            cls._config[cls.MLM_STRUCTURE] = structure

            cls._config[cls.BINARY_MAX_DEPTH] = int(os.getenv("BINARY_MAX_DEPTH", "6"))
            cls._config[cls.UNILEVEL_MAX_DEPTH] = int(os.getenv("UNILEVEL_MAX_DEPTH", "6"))
            cls._config[cls.PERFORMANCE_BONUS_ENABLED] = (
                os.getenv("PERFORMANCE_BONUS_ENABLED", "false").lower() == "true"
            )
            cls._config[cls.PV_CALCULATION] = os.getenv("PV_CALCULATION", "percentage").lower()

            # Settlement
            cls._config[cls.MONTHLY_CUTOFF_DAY] = int(os.getenv("MONTHLY_CUTOFF_DAY", "25"))
            cls._config[cls.CUTOFF_HOUR] = int(os.getenv("CUTOFF_HOUR", "0"))

            # System
            cls._config[cls.LOG_LEVEL] = os.getenv("LOG_LEVEL", "INFO").upper()

            cls._initialized = True
            logger.info("Configuration loaded from environment successfully")

        except Exception as e:
            logger.error(f"Failed to load configuration: {e}")
            raise ConfigurationError(f"Configuration loading failed: {e}")

    @classmethod
    def validate_critical_keys(cls) -> None:
        """
        Validate that all critical configuration keys are present.

        Raises:
            ConfigurationError: If any critical key is missing
        """
        missing = []
        for key in cls.CRITICAL_KEYS:
            if not cls.get(key):
                missing.append(key)

        if missing:
            error_msg = f"Missing critical configuration keys: {', '.join(missing)}"
            logger.critical(error_msg)
            raise ConfigurationError(error_msg)

        logger.info("All critical configuration keys validated ✓")

    @classmethod
    def get(cls, key: str, default: Any = None) -> Any:
        """Get configuration value."""
        return cls._config.get(key, default)

    @classmethod
    def set(cls, key: str, value: Any, source: str = "runtime") -> None:
        """
        Set configuration value.

        Args:
            key: Configuration key
            value: New value
            source: Where the value came from (for logging)
        """
        old_value = cls._config.get(key)
        cls._config[key] = value
        if old_value != value:
            logger.debug(f"Config {key} updated from {source}: {old_value} -> {value}")

    @classmethod
    def is_initialized(cls) -> bool:
        """Check whether environment configuration was loaded."""
        return cls._initialized

    @classmethod
    def reset(cls) -> None:
        """Drop all loaded values. Used by tests."""
        cls._config = {}
        cls._initialized = False

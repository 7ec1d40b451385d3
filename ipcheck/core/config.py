"""
Configuration management for IPCheck
"""

import logging
import math
import os
from pathlib import Path
from typing import Dict, Optional, Any

import yaml

from ipcheck.core.exceptions import ConfigurationError

CACHE_BACKENDS = ("redis", "memory")

# Seconds on top of the stage timeouts for merging and classification
LOOKUP_HEADROOM = 2.0

# Seconds a lock outlives the deadline of the lookup it guards
LOCK_MARGIN = 3

class Config:
    """Configuration management for IPCheck"""

    def __init__(self, config_file: Optional[Path] = None, debug: bool = False):
        """
        Initialize configuration with optional config file

        Args:
            config_file: Path to configuration file (YAML)
            debug: Enable debug mode
        """
        self.debug = debug

        # Default settings
        self._initialize_defaults()

        # Load configuration file if provided
        if config_file:
            self._load_config_file(config_file)

        # Load environment variables
        self._load_environment()

        # Deadlines not set explicitly
        self._derive_timeouts()

        # Create necessary directories
        self._ensure_directories()

        # Validate configuration
        self._validate_configuration()

    def _initialize_defaults(self):
        """Initialize default configuration values"""
        # Output settings
        self.monochrome = False
        self.json_output = False
        self.json_pretty = False

        # Provider credentials; a provider without its key stays disabled
        self.ipqs_key = None
        self.abuseipdb_key = None
        self.ip2location_key = None
        self.ipdata_key = None
        self.cloudflare_token = None

        # Optional analysis service (OpenAI-compatible chat completions)
        self.llm_api_key = None
        self.llm_base_url = None
        self.llm_model = "gpt-4o-mini"

        # Timeouts (seconds)
        self.phase1_timeout = 5.0
        self.phase2_timeout = 10.0
        self.analysis_timeout = 15.0
        # None: derived from the stage timeouts once file and env are applied
        self.lookup_timeout = None

        # Cache and lock settings
        self.cache_backend = "redis"
        self.redis_url = None
        self.redis_host = "localhost"
        self.redis_port = 6379
        self.cache_key_prefix = "ip:check:"
        self.cache_ttl = 900
        self.lock_ttl = None
        self.lock_retry_interval = 0.1
        self.lock_wait_timeout = None

        # HTTP client
        self.user_agent = "IPCheck/1.0.0"

        # Paths and directories
        self.config_dir = Path.home() / ".ipcheck"
        self.log_file = self.config_dir / "ipcheck_debug.log"

    def _load_config_file(self, config_file: Path):
        """
        Load configuration from YAML file

        Args:
            config_file: Path to configuration file

        Raises:
            ConfigurationError: If the file cannot be read or parsed
        """
        try:
            if not config_file.exists():
                raise ConfigurationError(f"Configuration file not found: {config_file}")

            with open(config_file, 'r') as f:
                config_data = yaml.safe_load(f)

            if not isinstance(config_data, dict):
                raise ConfigurationError("Configuration file must contain a YAML dictionary")

            # Update configuration with file values
            self._update_from_dict(config_data)

        except ConfigurationError:
            raise
        except Exception as e:
            raise ConfigurationError(f"Error loading configuration file: {e}")

    def _load_environment(self):
        """Load configuration from environment variables"""
        # API credentials
        self.ipqs_key = os.environ.get("IPQS_KEY", self.ipqs_key)
        self.abuseipdb_key = os.environ.get("ABUSEIPDB_KEY", self.abuseipdb_key)
        self.ip2location_key = os.environ.get("IP2LOCATION_KEY", self.ip2location_key)
        self.ipdata_key = os.environ.get("IPDATA_KEY", self.ipdata_key)
        self.cloudflare_token = os.environ.get("CLOUDFLARE_API_TOKEN", self.cloudflare_token)
        self.llm_api_key = os.environ.get("LLM_API_KEY", self.llm_api_key)
        self.llm_base_url = os.environ.get("LLM_BASE_URL", self.llm_base_url)
        self.llm_model = os.environ.get("LLM_MODEL", self.llm_model)

        # Cache backend
        self.cache_backend = os.environ.get("IPCHECK_CACHE_BACKEND", self.cache_backend)
        self.redis_url = os.environ.get("REDIS_URL", self.redis_url)
        self.redis_host = os.environ.get("REDIS_HOST", self.redis_host)
        redis_port = os.environ.get("REDIS_PORT")
        if redis_port:
            try:
                self.redis_port = int(redis_port)
            except ValueError:
                raise ConfigurationError(f"REDIS_PORT must be an integer: {redis_port}")

        # Boolean settings
        if os.environ.get("IPCHECK_DEBUG") in ("1", "true", "yes"):
            self.debug = True
        if os.environ.get("IPCHECK_MONOCHROME") in ("1", "true", "yes"):
            self.monochrome = True
        if os.environ.get("IPCHECK_JSON") in ("1", "true", "yes"):
            self.json_output = True
        if os.environ.get("IPCHECK_JSON_PRETTY") in ("1", "true", "yes"):
            self.json_pretty = True

    def _derive_timeouts(self):
        """Fill deadlines left unset from the stage timeouts"""
        stages = (self.phase1_timeout, self.phase2_timeout, self.analysis_timeout)
        if any(isinstance(v, bool) or not isinstance(v, (int, float)) for v in stages):
            # Left for validation to report
            return

        if self.lookup_timeout is None:
            self.lookup_timeout = sum(stages) + LOOKUP_HEADROOM
        if self.lock_ttl is None and isinstance(self.lookup_timeout, (int, float)):
            self.lock_ttl = math.ceil(self.lookup_timeout) + LOCK_MARGIN
        if self.lock_wait_timeout is None and isinstance(self.lock_ttl, int):
            self.lock_wait_timeout = float(self.lock_ttl + LOCK_MARGIN + 2)

    def _ensure_directories(self):
        """Ensure required directories exist"""
        try:
            self.config_dir.mkdir(exist_ok=True)
        except Exception as e:
            logging.warning(f"Could not create directory: {e}")

    def _validate_configuration(self):
        """
        Validate configuration values

        Raises:
            ConfigurationError: If configuration is invalid
        """
        for name in ("phase1_timeout", "phase2_timeout", "analysis_timeout",
                     "lookup_timeout", "lock_retry_interval", "lock_wait_timeout"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
                raise ConfigurationError(f"{name} must be a positive number")

        for name in ("cache_ttl", "lock_ttl", "redis_port"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise ConfigurationError(f"{name} must be a positive integer")

        # A live holder must never lose its lock mid-computation
        if self.lock_ttl < self.lookup_timeout:
            raise ConfigurationError("lock_ttl must not be shorter than lookup_timeout")

        if self.cache_backend not in CACHE_BACKENDS:
            raise ConfigurationError(
                f"cache_backend must be one of: {', '.join(CACHE_BACKENDS)}"
            )

    def _update_from_dict(self, config_data: Dict[str, Any]):
        """
        Update configuration from dictionary

        Args:
            config_data: Dictionary containing configuration values
        """
        for key, value in config_data.items():
            if hasattr(self, key) and not key.startswith('_'):
                if key in ("config_dir", "log_file") and value is not None:
                    value = Path(value)
                setattr(self, key, value)

    @property
    def analysis_enabled(self) -> bool:
        """Whether the optional analysis service is configured"""
        return bool(self.llm_api_key and self.llm_base_url)

    @property
    def redis_dsn(self) -> str:
        """Connection URL for the Redis cache backend"""
        if self.redis_url:
            return self.redis_url
        return f"redis://{self.redis_host}:{self.redis_port}/0"


"""
Configuration Management

Handles loading configuration from environment variables and config files.
"""

import os
from pathlib import Path
from dataclasses import dataclass, asdict
from typing import Optional
import json

from dotenv import load_dotenv

from .dns.constants import MDNS_GROUP, MDNS_PORT, WILDCARD_TYPE


@dataclass
class Config:
    """
    Discovery configuration.

    Configuration priority (highest to lowest):
    1. Environment variables (DNSSD_*)
    2. Config file (config.json)
    3. Default values
    """
    # Network
    multicast_address: str = MDNS_GROUP
    port: int = MDNS_PORT

    # Discovery defaults
    discovery_wait: int = 3  # seconds
    query_type: str = WILDCARD_TYPE
    key: str = 'address'

    # Query burst timing
    send_attempts: int = 3  # per interface
    retry_interval: float = 0.1  # seconds
    listen_settle: float = 0.1  # seconds

    # Monitoring
    monitor_queue_size: int = 1000  # packets buffered per iterated subscription

    # Logging
    log_level: str = 'INFO'

    @classmethod
    def from_env(cls) -> 'Config':
        """Load configuration from environment variables."""
        load_dotenv()

        config = cls()

        # Network
        config.multicast_address = os.getenv('DNSSD_MULTICAST_ADDRESS', config.multicast_address)
        config.port = int(os.getenv('DNSSD_PORT', config.port))

        # Discovery
        config.discovery_wait = int(os.getenv('DNSSD_WAIT', config.discovery_wait))
        config.query_type = os.getenv('DNSSD_QUERY_TYPE', config.query_type)
        config.key = os.getenv('DNSSD_KEY', config.key)

        # Timing
        config.send_attempts = int(os.getenv('DNSSD_SEND_ATTEMPTS', config.send_attempts))
        config.retry_interval = float(os.getenv('DNSSD_RETRY_INTERVAL', config.retry_interval))
        config.listen_settle = float(os.getenv('DNSSD_LISTEN_SETTLE', config.listen_settle))

        # Monitoring
        config.monitor_queue_size = int(os.getenv('DNSSD_MONITOR_QUEUE_SIZE', config.monitor_queue_size))

        # Logging
        config.log_level = os.getenv('DNSSD_LOG_LEVEL', config.log_level)

        return config

    @classmethod
    def from_file(cls, path: Path) -> 'Config':
        """Load configuration from a JSON file."""
        if not path.exists():
            return cls()

        with open(path) as f:
            data = json.load(f)

        config = cls()
        for key, value in data.items():
            if hasattr(config, key):
                setattr(config, key, value)

        return config

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return asdict(self)

    def save(self, path: Path):
        """Save configuration to a JSON file."""
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)


def load_config(config_path: Optional[Path] = None) -> Config:
    """
    Load configuration from file and environment.

    Environment variables override file settings.
    """
    # Start with defaults
    config = Config()

    # Load from file if provided
    if config_path and config_path.exists():
        config = Config.from_file(config_path)

    # Override with environment variables
    env_config = Config.from_env()
    defaults = Config()

    # Merge (env takes precedence for non-default values)
    for key in defaults.to_dict():
        env_val = getattr(env_config, key)
        if env_val != getattr(defaults, key):
            setattr(config, key, env_val)

    return config


# Example config file template
EXAMPLE_CONFIG = """
{
  "multicast_address": "224.0.0.251",
  "port": 5353,
  "discovery_wait": 3,
  "query_type": "*",
  "key": "address",
  "send_attempts": 3,
  "retry_interval": 0.1,
  "listen_settle": 0.1,
  "monitor_queue_size": 1000,
  "log_level": "INFO"
}
"""

"""
Configuration management for the starter server.

This module handles environment variable parsing, default value management
and validation for the transport adapter. The capability registry itself
has no configuration.
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

from capability_registry.exceptions import ConfigurationError, log_error_with_context

logger = logging.getLogger(__name__)

TRANSPORTS = ("stdio", "streamable-http", "sse")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class ServerConfig:
    """
    Configuration settings for the MCP starter server.

    Environment Variables:
        PORT: HTTP port for the streamable-http and sse transports
        MCP_SERVER_HOST: HTTP bind address
        MCP_ENABLE_CORS: Allow cross-origin requests from any host (true/false)
        MCP_TRANSPORT: Default transport (stdio, streamable-http, sse)
        MCP_LOG_LEVEL: Logging level
    """

    host: str = "0.0.0.0"
    port: int = 3000
    enable_cors: bool = True
    transport: str = "stdio"
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> 'ServerConfig':
        """
        Create configuration from environment variables.

        Returns:
            ServerConfig: Configuration instance with values from environment

        Raises:
            ConfigurationError: If configuration validation fails
        """
        try:
            config = cls(
                host=os.getenv('MCP_SERVER_HOST', '0.0.0.0').strip() or '0.0.0.0',
                port=cls._parse_port('PORT', 3000),
                enable_cors=cls._parse_boolean('MCP_ENABLE_CORS', True),
                transport=os.getenv('MCP_TRANSPORT', 'stdio').strip().lower() or 'stdio',
                log_level=os.getenv('MCP_LOG_LEVEL', 'INFO').strip().upper() or 'INFO',
            )
            config._validate()
            return config

        except ConfigurationError as e:
            log_error_with_context(logger, e, {"operation": "config_loading"})
            raise

    def with_overrides(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
        enable_cors: Optional[bool] = None,
        transport: Optional[str] = None,
        log_level: Optional[str] = None
    ) -> 'ServerConfig':
        """Return a copy with command line values applied on top of this one."""
        config = ServerConfig(
            host=host if host is not None else self.host,
            port=port if port is not None else self.port,
            enable_cors=enable_cors if enable_cors is not None else self.enable_cors,
            transport=transport if transport is not None else self.transport,
            log_level=log_level.upper() if log_level is not None else self.log_level,
        )
        config._validate()
        return config

    @classmethod
    def _parse_port(cls, env_var: str, default: int) -> int:
        """
        Parse a TCP port from environment variable.

        Raises:
            ConfigurationError: If value is not an integer between 1 and 65535
        """
        value_str = os.getenv(env_var)
        if value_str is None or not value_str.strip():
            return default

        try:
            value = int(value_str.strip())
        except ValueError:
            raise ConfigurationError(
                f"Invalid integer value for {env_var}: '{value_str}'",
                config_key=env_var,
                config_value=value_str
            )
        if not 1 <= value <= 65535:
            raise ConfigurationError(
                f"{env_var} must be between 1 and 65535, got {value}",
                config_key=env_var,
                config_value=value
            )
        return value

    @classmethod
    def _parse_boolean(cls, env_var: str, default: bool) -> bool:
        """
        Parse a boolean from environment variable.

        Raises:
            ConfigurationError: If value is not a valid boolean
        """
        value_str = os.getenv(env_var)
        if value_str is None or not value_str.strip():
            return default

        value_str = value_str.strip().lower()
        if value_str in ('true', '1', 'yes', 'on', 'enabled'):
            return True
        elif value_str in ('false', '0', 'no', 'off', 'disabled'):
            return False
        else:
            raise ConfigurationError(
                f"{env_var} must be a valid boolean value (true/false, 1/0, yes/no, on/off, enabled/disabled), "
                f"got '{value_str}'",
                config_key=env_var,
                config_value=value_str
            )

    def _validate(self) -> None:
        """
        Validate the complete configuration.

        Raises:
            ConfigurationError: If validation fails
        """
        if self.transport not in TRANSPORTS:
            raise ConfigurationError(
                f"Invalid transport '{self.transport}'. Valid options are: {', '.join(TRANSPORTS)}",
                config_key="MCP_TRANSPORT",
                config_value=self.transport
            )
        if self.log_level not in LOG_LEVELS:
            raise ConfigurationError(
                f"Invalid log level '{self.log_level}'. Valid options are: {', '.join(LOG_LEVELS)}",
                config_key="MCP_LOG_LEVEL",
                config_value=self.log_level
            )
        if not 1 <= self.port <= 65535:
            raise ConfigurationError(
                f"Port must be between 1 and 65535, got {self.port}",
                config_key="PORT",
                config_value=self.port
            )

    @property
    def is_http(self) -> bool:
        return self.transport != "stdio"

    def __str__(self) -> str:
        return (
            f"ServerConfig("
            f"transport={self.transport}, "
            f"host={self.host}, "
            f"port={self.port}, "
            f"cors={self.enable_cors}, "
            f"log_level={self.log_level}"
            f")"
        )

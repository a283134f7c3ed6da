"""
Configuration validation module.

Validates configuration settings on startup to catch misconfigurations
early and report them with clear messages.
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlparse

import config as app_config


class ConfigValidationError(Exception):
    """Raised when configuration validation fails"""
    pass


class ConfigValidator:
    """Validates application configuration"""

    def __init__(self,
                 server_config: Optional[Dict[str, Any]] = None,
                 reconnect_config: Optional[Dict[str, Any]] = None,
                 auction_config: Optional[Dict[str, Any]] = None,
                 logging_config: Optional[Dict[str, Any]] = None):
        self.server_config = server_config if server_config is not None else app_config.SERVER_CONFIG
        self.reconnect_config = reconnect_config if reconnect_config is not None else app_config.RECONNECT_CONFIG
        self.auction_config = auction_config if auction_config is not None else app_config.AUCTION_CONFIG
        self.logging_config = logging_config if logging_config is not None else app_config.LOGGING_CONFIG
        self.errors: List[str] = []
        self.warnings: List[str] = []

    def validate_all(self) -> Tuple[bool, List[str], List[str]]:
        """
        Validate all configuration settings.

        Returns:
            Tuple of (is_valid, errors, warnings)
        """
        self.errors.clear()
        self.warnings.clear()

        self._validate_server_config()
        self._validate_reconnect_config()
        self._validate_auction_config()
        self._validate_logging_config()

        is_valid = len(self.errors) == 0
        return is_valid, self.errors.copy(), self.warnings.copy()

    def _validate_server_config(self):
        """Validate the authority endpoint"""
        url = self.server_config.get("url", "")
        parsed = urlparse(url)
        if parsed.scheme not in ("ws", "wss"):
            self.errors.append(f"Auction server URL must use ws:// or wss://, got: {url!r}")
        elif not parsed.netloc:
            self.errors.append(f"Auction server URL has no host: {url!r}")
        elif parsed.scheme == "ws" and parsed.hostname not in ("localhost", "127.0.0.1", "::1"):
            self.warnings.append(f"Auction server {parsed.hostname} is reached without TLS (ws://)")

    def _validate_reconnect_config(self):
        """Validate reconnect delays"""
        initial = self.reconnect_config.get("initial_delay", 3.0)
        multiplier = self.reconnect_config.get("multiplier", 1.0)
        max_delay = self.reconnect_config.get("max_delay", 30.0)
        jitter = self.reconnect_config.get("jitter", 0.0)

        if initial <= 0:
            self.errors.append(f"Reconnect initial_delay must be positive, got {initial}")
        elif initial < 0.5:
            self.warnings.append(f"Reconnect initial_delay {initial}s may hammer the server. Recommended: >= 1s")
        if multiplier < 1.0:
            self.errors.append(f"Reconnect multiplier must be >= 1.0, got {multiplier}")
        if max_delay < initial:
            self.errors.append(f"Reconnect max_delay ({max_delay}s) is below initial_delay ({initial}s)")
        if not 0.0 <= jitter < 1.0:
            self.errors.append(f"Reconnect jitter must be in [0, 1), got {jitter}")

    def _validate_auction_config(self):
        """Validate bid increments and display sentinels"""
        increments = self.auction_config.get("bid_increments", [])
        if not increments:
            self.warnings.append("No bid increments configured; only exact bids will be available")
        for increment in increments:
            if isinstance(increment, bool) or not isinstance(increment, int) or increment <= 0:
                self.errors.append(f"Bid increment must be a positive integer, got {increment!r}")

        if not self.auction_config.get("placeholder_item"):
            self.errors.append("placeholder_item must be a non-empty string")
        if not self.auction_config.get("no_bidder"):
            self.errors.append("no_bidder sentinel must be a non-empty string")

    def _validate_logging_config(self):
        """Validate logging configuration"""
        log_level = self.logging_config.get("log_level", "INFO")
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if log_level.upper() not in valid_levels:
            self.errors.append(f"Invalid log level '{log_level}'. Must be one of: {', '.join(valid_levels)}")

        if self.logging_config.get("enable_file_logging", True):
            parent_dir = Path(self.logging_config.get("log_dir", "./logs")).resolve().parent
            if not parent_dir.exists():
                self.errors.append(f"Log directory parent '{parent_dir}' does not exist")
            elif not os.access(parent_dir, os.W_OK):
                self.errors.append(f"Log directory parent '{parent_dir}' is not writable")

        max_size = self.logging_config.get("max_log_size_mb", 10)
        if max_size < 1 or max_size > 1000:
            self.warnings.append(f"Log file size {max_size}MB may be {'too small' if max_size < 5 else 'too large'}. Recommended: 5-100MB")


def validate_startup_config(validator: Optional[ConfigValidator] = None) -> List[str]:
    """
    Validate configuration on startup.

    Returns:
        Warnings found during validation

    Raises:
        ConfigValidationError: If configuration errors are found
    """
    validator = validator or ConfigValidator()
    is_valid, errors, warnings = validator.validate_all()

    if not is_valid:
        error_msg = f"Found {len(errors)} configuration error(s): " + "; ".join(errors)
        if warnings:
            error_msg += f" (also {len(warnings)} warning(s))"
        raise ConfigValidationError(error_msg)

    return warnings

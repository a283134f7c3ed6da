"""
Centralized configuration for the auction client
"""

import os
from dotenv import load_dotenv

load_dotenv()

# Authority endpoint
SERVER_CONFIG = {
    "url": os.getenv("AUCTION_SERVER_URL", "ws://localhost:8080/ws"),
    "ping_interval": 0,  # websocket-client keepalive; 0 disables
}

# Reconnect behaviour
# multiplier=1.0 and jitter=0.0 gives the plain fixed-delay retry loop
RECONNECT_CONFIG = {
    "initial_delay": float(os.getenv("RECONNECT_INITIAL_DELAY", "3.0")),
    "multiplier": float(os.getenv("RECONNECT_MULTIPLIER", "2.0")),
    "max_delay": float(os.getenv("RECONNECT_MAX_DELAY", "30.0")),
    "jitter": float(os.getenv("RECONNECT_JITTER", "0.2")),  # fraction of the delay
}

# Auction view settings
AUCTION_CONFIG = {
    "placeholder_item": "Waiting for Vehicle...",
    "no_bidder": "none",
    "bid_increments": [100, 500, 1000],
    "guest_prefix": "Guest-",
    "username": os.getenv("AUCTION_USERNAME", ""),
    "history_size": 100,
}

# Display settings
DISPLAY_CONFIG = {
    "colors": {
        "reset": "\033[0m",
        "red": "\033[31m",
        "green": "\033[32m",
        "yellow": "\033[33m",
        "cyan": "\033[36m",
    },
    "urgent_seconds": 10,  # time left below this is drawn in red
    "title": "HIGH SPEED AUCTION",
}

# Logging configuration
LOGGING_CONFIG = {
    "log_level": os.getenv("LOG_LEVEL", "INFO"),
    "log_dir": os.getenv("LOG_DIR", "./logs"),
    "enable_file_logging": os.getenv("ENABLE_FILE_LOGGING", "true").lower() == "true",
    # The dashboard owns the terminal, so console logging is off by default
    "enable_console_logging": os.getenv("ENABLE_CONSOLE_LOGGING", "false").lower() == "true",
    "structured_logging": os.getenv("ENVIRONMENT", "development").lower() == "production",
    "max_log_size_mb": int(os.getenv("MAX_LOG_SIZE_MB", "10")),
    "backup_count": int(os.getenv("LOG_BACKUP_COUNT", "5")),
}

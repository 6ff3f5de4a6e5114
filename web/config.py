"""
Web service configuration.
"""
import os

from replenish.config import config

# Web server settings
WEB_HOST = os.getenv("WEB_HOST", "0.0.0.0")
WEB_PORT = int(os.getenv("WEB_PORT", "8080"))

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = os.getenv("LOG_FORMAT", "text")

# Rate limits (slowapi syntax)
SYNC_TRIGGER_LIMIT = os.getenv("SYNC_TRIGGER_LIMIT", "10/minute")
READ_LIMIT = "60/minute"

VERSION = config.version

# damage_capture/config/settings.py
"""Configuration settings for the baggage damage capture system."""
import os
from dataclasses import dataclass

@dataclass
class ShiftConfig:
    EARLY_START_HOUR = int(os.getenv("EARLY_START_HOUR", "4"))
    LATE_START_HOUR = int(os.getenv("LATE_START_HOUR", "13"))
    EARLY_FINALIZE_HOUR = int(os.getenv("EARLY_FINALIZE_HOUR", "12"))
    LATE_FINALIZE_HOUR = int(os.getenv("LATE_FINALIZE_HOUR", "21"))
    # Shift that owns 00:00 up to EARLY_START_HOUR: "late" or "early"
    NIGHT_SHIFT = os.getenv("NIGHT_SHIFT", "late")

@dataclass
class SessionConfig:
    MIN_RECORDS_ADVISORY = int(os.getenv("MIN_RECORDS_ADVISORY", "50"))
    EXPIRY_HOUR = int(os.getenv("EXPIRY_HOUR", "23"))
    EXPIRY_MINUTE = int(os.getenv("EXPIRY_MINUTE", "59"))
    POLL_INTERVAL = float(os.getenv("EXPIRY_POLL_INTERVAL", "1.0"))
    SCAN_DELAY = float(os.getenv("SCAN_DELAY", "1.0"))
    DEFAULT_USER = os.getenv("DEFAULT_USER", "unknown")
    DEFAULT_AIRLINE = os.getenv("DEFAULT_AIRLINE", "LATAM")

@dataclass
class NetworkConfig:
    SERVER_URL = os.getenv("DAMAGE_SERVER_URL", "")
    MAX_RETRIES = int(os.getenv("MAX_RETRIES", "3"))
    RETRY_BACKOFF_UNIT = float(os.getenv("RETRY_BACKOFF_UNIT", "1.0"))
    SEND_TIMEOUT = float(os.getenv("SEND_TIMEOUT", "15.0"))
    PROBE_TIMEOUT = float(os.getenv("PROBE_TIMEOUT", "5.0"))
    SOURCE_TAG = os.getenv("SOURCE_TAG", "regis-danos")

@dataclass
class PathConfig:
    BASE_DIR = os.getenv(
        "DAMAGE_CAPTURE_HOME",
        os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    )
    DATA_DIR = os.path.join(BASE_DIR, 'data')
    LOG_DIR = os.path.join(BASE_DIR, 'logs')

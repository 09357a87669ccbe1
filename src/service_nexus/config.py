# service_nexus/config.py
import os
from dotenv import load_dotenv

load_dotenv() # Load .env file from project root

DEFAULT_STORAGE_KEY = "service-nexus-services"
# Same order of magnitude as a browser's localStorage allowance
DEFAULT_QUOTA_BYTES = 5 * 1024 * 1024


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


SERVICES_STORAGE_KEY = os.getenv("SERVICES_STORAGE_KEY") or DEFAULT_STORAGE_KEY
STORAGE_QUOTA_BYTES = _int_env("STORAGE_QUOTA_BYTES", DEFAULT_QUOTA_BYTES)
SIMULATED_TEST_DELAY = _float_env("SIMULATED_TEST_DELAY", 1.5)
SIMULATED_SUITE_DELAY_SCALE = _float_env("SIMULATED_SUITE_DELAY_SCALE", 1.0)

import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv

# Load environment variables from .env file, if it exists
load_dotenv()


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return float(raw)


# Tunables for PIN format, geofence radius and lockout policy
@dataclass(frozen=True)
class LockerSettings:
    lockout_threshold: int = 5
    lock_window_seconds: int = 60
    min_radius_meters: float = 100.0
    max_radius_meters: float = 1000.0
    default_radius_meters: float = 100.0
    pin_min_length: int = 4
    pin_max_length: int = 8
    bcrypt_rounds: int = 10
    max_file_bytes: int = 50 * 1024 * 1024

    def __post_init__(self):
        if self.lockout_threshold < 1:
            raise ValueError("LOCKOUT_THRESHOLD must be at least 1")
        if self.lock_window_seconds <= 0:
            raise ValueError("LOCK_WINDOW_SECONDS must be positive")
        if not 0 < self.min_radius_meters <= self.max_radius_meters:
            raise ValueError("Radius bounds must satisfy 0 < min <= max")
        if not self.min_radius_meters <= self.default_radius_meters <= self.max_radius_meters:
            raise ValueError("DEFAULT_RADIUS_METERS must lie within the radius bounds")
        if not 1 <= self.pin_min_length <= self.pin_max_length:
            raise ValueError("PIN length bounds must satisfy 1 <= min <= max")
        # bcrypt only accepts cost factors in this range
        if not 4 <= self.bcrypt_rounds <= 31:
            raise ValueError("BCRYPT_ROUNDS must be between 4 and 31")

    @classmethod
    def from_env(cls) -> "LockerSettings":
        return cls(
            lockout_threshold=_int_env("LOCKOUT_THRESHOLD", 5),
            lock_window_seconds=_int_env("LOCK_WINDOW_SECONDS", 60),
            min_radius_meters=_float_env("MIN_RADIUS_METERS", 100.0),
            max_radius_meters=_float_env("MAX_RADIUS_METERS", 1000.0),
            default_radius_meters=_float_env("DEFAULT_RADIUS_METERS", 100.0),
            pin_min_length=_int_env("PIN_MIN_LENGTH", 4),
            pin_max_length=_int_env("PIN_MAX_LENGTH", 8),
            bcrypt_rounds=_int_env("BCRYPT_ROUNDS", 10),
            max_file_bytes=_int_env("MAX_FILE_BYTES", 50 * 1024 * 1024),
        )


@lru_cache
def get_settings() -> LockerSettings:
    return LockerSettings.from_env()

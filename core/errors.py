from typing import Optional

from fastapi import status


# Base for every failure the locker core reports back to a caller.
# Each subclass carries the HTTP status used by the handler in main.py.
class LockerError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "locker_error"

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail

    def payload(self) -> dict:
        return {"status": "error", "code": self.code, "detail": self.detail}


class InvalidInput(LockerError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "invalid_input"


class Unauthorized(LockerError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "unauthorized"


class ZoneNotFound(LockerError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class ZoneConflict(LockerError):
    status_code = status.HTTP_409_CONFLICT
    code = "zone_exists"

    def __init__(self, detail: str, zone_id: Optional[str] = None):
        super().__init__(detail)
        self.zone_id = zone_id

    def payload(self) -> dict:
        body = super().payload()
        body["zone_id"] = self.zone_id
        return body


class VerificationFailed(LockerError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "invalid_pin"

    def __init__(self, failed_attempts: int, attempts_remaining: int):
        super().__init__("Invalid PIN")
        self.failed_attempts = failed_attempts
        self.attempts_remaining = attempts_remaining

    def payload(self) -> dict:
        body = super().payload()
        body["failed_attempts"] = self.failed_attempts
        body["attempts_remaining"] = self.attempts_remaining
        return body


class ZoneLocked(LockerError):
    status_code = status.HTTP_423_LOCKED
    code = "locked"

    def __init__(self, retry_after_seconds: int):
        super().__init__(f"Too many attempts. Try again in {retry_after_seconds}s.")
        self.retry_after_seconds = retry_after_seconds

    def payload(self) -> dict:
        body = super().payload()
        body["retry_after_seconds"] = self.retry_after_seconds
        return body


class StorageFailure(LockerError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "storage_unavailable"

import hashlib
import logging
import re

import bcrypt

from core.errors import InvalidInput

logger = logging.getLogger(__name__)

# Unsalted SHA-256 hex digests written by the first client release
LEGACY_DIGEST_RE = re.compile(r"^[0-9a-fA-F]{64}$")
# bcrypt modular crypt format: $2b$10$ + 22 chars salt + 31 chars digest
BCRYPT_HASH_RE = re.compile(r"^\$2[abxy]?\$\d{2}\$[./A-Za-z0-9]{53}$")


class PinCredential:
    """
    Hashes and verifies the short numeric PIN protecting a zone.

    New hashes are always bcrypt with an embedded salt and cost. Verification
    also accepts legacy SHA-256 hex digests so zones created before the
    migration keep working; that path compares with plain string equality and
    is not constant-time.
    """

    def __init__(self, rounds: int = 10, min_length: int = 4, max_length: int = 8):
        self.rounds = rounds
        self.min_length = min_length
        self.max_length = max_length

    @classmethod
    def from_settings(cls, settings) -> "PinCredential":
        return cls(
            rounds=settings.bcrypt_rounds,
            min_length=settings.pin_min_length,
            max_length=settings.pin_max_length,
        )

    def validate_format(self, secret) -> None:
        if not isinstance(secret, str):
            raise InvalidInput("PIN must be a string of digits.")
        # str.isdigit() accepts things like '²'; only ASCII 0-9 are PIN digits
        if not secret or not all("0" <= ch <= "9" for ch in secret):
            raise InvalidInput("PIN must contain digits only.")
        if not self.min_length <= len(secret) <= self.max_length:
            if self.min_length == self.max_length:
                raise InvalidInput(f"PIN must be exactly {self.min_length} digits.")
            raise InvalidInput(
                f"PIN must be {self.min_length} to {self.max_length} digits."
            )

    def hash(self, secret: str) -> str:
        self.validate_format(secret)
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(secret.encode("utf-8"), salt).decode("ascii")

    @staticmethod
    def is_legacy(stored_hash) -> bool:
        return isinstance(stored_hash, str) and bool(LEGACY_DIGEST_RE.match(stored_hash))

    @staticmethod
    def verify(secret, stored_hash) -> bool:
        if not isinstance(secret, str) or not isinstance(stored_hash, str):
            return False
        try:
            secret_bytes = secret.encode("utf-8")
        except UnicodeEncodeError:
            # Lone surrogates cannot be a typed PIN
            return False

        if LEGACY_DIGEST_RE.match(stored_hash):
            digest = hashlib.sha256(secret_bytes).hexdigest()
            return digest == stored_hash.lower()

        if not BCRYPT_HASH_RE.match(stored_hash):
            logger.warning("[PIN] Stored hash has an unrecognised format; treating as no match")
            return False

        try:
            return bcrypt.checkpw(secret_bytes, stored_hash.encode("ascii"))
        except ValueError as e:
            logger.warning(f"[PIN] bcrypt rejected stored hash: {e}")
            return False

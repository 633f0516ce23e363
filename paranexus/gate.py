from __future__ import annotations

import hashlib
import hmac
import secrets

from .storage import PASSPHRASE_KEY, KeyValueStore


DIGEST_SCHEME = "sha256"


def hash_passphrase(passphrase: str, *, salt: str | None = None) -> str:
    salt = salt or secrets.token_hex(8)
    digest = hashlib.sha256(f"{salt}:{passphrase}".encode("utf-8")).hexdigest()
    return f"{DIGEST_SCHEME}${salt}${digest}"


def check_passphrase(passphrase: str, stored: str) -> bool:
    parts = stored.split("$")
    if len(parts) != 3 or parts[0] != DIGEST_SCHEME:
        return False
    expected = hash_passphrase(passphrase, salt=parts[1])
    return hmac.compare_digest(expected, stored)


class PassphraseGate:
    """Local unlock screen check. Keeps honest people honest; nothing more."""

    def __init__(self, kv: KeyValueStore, *, min_length: int = 4) -> None:
        self.kv = kv
        self.min_length = min_length

    def is_initialized(self) -> bool:
        return bool(self.kv.load(PASSPHRASE_KEY))

    def initialize(self, passphrase: str, confirm: str) -> tuple[bool, str]:
        if len(passphrase) < self.min_length:
            return False, f"Password must be at least {self.min_length} characters."
        if passphrase != confirm:
            return False, "Passwords do not match."
        if not self.kv.save(PASSPHRASE_KEY, hash_passphrase(passphrase)):
            return False, "Could not save the password."
        return True, "Password set."

    def verify(self, passphrase: str) -> tuple[bool, str]:
        stored = self.kv.load(PASSPHRASE_KEY)
        if not stored or not check_passphrase(passphrase, stored):
            return False, "Incorrect password. Please try again."
        return True, "Unlocked."

"""
Kestrel - Password Hashing

Argon2id password hashing on top of argon2-cffi.
"""

from __future__ import annotations

from argon2 import PasswordHasher as Argon2PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError


class PasswordHasher:
    """
    Argon2id password hasher.

    Security parameters:
    - time_cost=2, memory_cost=65536 (64MB), parallelism=4

    Example:
        >>> hasher = PasswordHasher()
        >>> encoded = hasher.hash("secret")
        >>> hasher.verify(encoded, "secret")
        True
    """

    def __init__(
        self,
        time_cost: int = 2,
        memory_cost: int = 65536,
        parallelism: int = 4,
        hash_len: int = 32,
        salt_len: int = 16,
    ):
        self.hasher = Argon2PasswordHasher(
            time_cost=time_cost,
            memory_cost=memory_cost,
            parallelism=parallelism,
            hash_len=hash_len,
            salt_len=salt_len,
        )

    def hash(self, password: str) -> str:
        """
        Hash password.

        Example output:
            $argon2id$v=19$m=65536,t=2,p=4$saltbase64$hashbase64
        """
        return self.hasher.hash(password)

    def verify(self, password_hash: str, password: str) -> bool:
        """True if ``password`` matches ``password_hash``; malformed hashes never match."""
        if not password_hash or not password_hash.startswith("$argon2"):
            return False
        try:
            return self.hasher.verify(password_hash, password)
        except (VerifyMismatchError, VerificationError, InvalidHashError):
            return False

    def needs_rehash(self, password_hash: str) -> bool:
        """True when the hash was produced with other parameters."""
        try:
            return self.hasher.check_needs_rehash(password_hash)
        except (InvalidHashError, ValueError):
            return True


default_hasher = PasswordHasher()

"""
Password hashing utilities using bcrypt.
"""

import asyncio
import secrets
from functools import cached_property

import bcrypt

# Number of rounds for bcrypt hashing (12 is secure default)
BCRYPT_ROUNDS = 12

# bcrypt only accepts cost factors in this range
MIN_ROUNDS = 4
MAX_ROUNDS = 31

# bcrypt only uses the first 72 bytes of a password
MAX_PASSWORD_BYTES = 72


class PasswordHasher:
    """
    Password hashing service.

    The cost factor is fixed per instance. Hashes embed their own salt and
    cost, so verification works for hashes produced with any cost.
    """

    def __init__(self, rounds: int = BCRYPT_ROUNDS):
        if not MIN_ROUNDS <= rounds <= MAX_ROUNDS:
            raise ValueError(
                f"bcrypt rounds must be between {MIN_ROUNDS} and {MAX_ROUNDS}, got {rounds}"
            )
        self.rounds = rounds

    @staticmethod
    def _truncate_password(password: str) -> bytes:
        """Encode and truncate to the bcrypt input limit."""
        return password.encode("utf-8")[:MAX_PASSWORD_BYTES]

    def hash(self, password: str) -> str:
        """
        Hash a password using bcrypt.

        Args:
            password: Plain text password

        Returns:
            Hashed password string ($2b$<rounds>$...)
        """
        salt = bcrypt.gensalt(rounds=self.rounds)
        hashed = bcrypt.hashpw(self._truncate_password(password), salt)
        return hashed.decode("utf-8")

    def verify(self, plain_password: str, hashed_password: str) -> bool:
        """
        Verify a password against its hash.

        Returns False for a wrong password and for any hash bcrypt
        cannot parse.
        """
        try:
            return bcrypt.checkpw(
                self._truncate_password(plain_password),
                hashed_password.encode("utf-8"),
            )
        except (ValueError, TypeError, AttributeError):
            return False

    def needs_upgrade(self, hashed_password: str) -> bool:
        """
        Check if a password hash should be regenerated.

        bcrypt hashes look like $2b$12$<53 chars>; the second field is the
        cost factor. Unparseable hashes always need an upgrade.
        """
        try:
            parts = hashed_password.split("$")
            if len(parts) != 4 or not parts[1].startswith("2"):
                return True
            return int(parts[2]) != self.rounds
        except (ValueError, AttributeError):
            return True

    @cached_property
    def dummy_hash(self) -> str:
        """
        Hash of a random secret at the configured cost.

        Verifying against it when an account does not exist makes a miss
        take as long as a wrong password.
        """
        return self.hash(secrets.token_urlsafe(16))

    def simulate_verify(self, plain_password: str) -> bool:
        """Spend the cost of a verification without a real hash. Always False."""
        self.verify(plain_password, self.dummy_hash)
        return False

    async def simulate_verify_async(self, plain_password: str) -> bool:
        return await asyncio.to_thread(self.simulate_verify, plain_password)

    async def hash_async(self, password: str) -> str:
        """Hash in a worker thread so the event loop keeps serving requests."""
        return await asyncio.to_thread(self.hash, password)

    async def verify_async(self, plain_password: str, hashed_password: str) -> bool:
        """Verify in a worker thread."""
        return await asyncio.to_thread(self.verify, plain_password, hashed_password)


_default_hasher = PasswordHasher()


# Convenience functions
def hash_password(password: str) -> str:
    """Hash a password."""
    return _default_hasher.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password."""
    return _default_hasher.verify(plain_password, hashed_password)

"""Credential storage and verification."""
import hmac
from typing import Optional

import bcrypt

BCRYPT = "bcrypt"
PLAINTEXT = "plaintext"


class CredentialHasher:
    """Turns a password into its stored form and checks logins against it.

    ``plaintext`` mode stores the password as given and exists for
    compatibility with clients and fixtures that expect literal storage.
    """

    def __init__(self, mode: str = BCRYPT, rounds: int = 12):
        if mode not in (BCRYPT, PLAINTEXT):
            raise ValueError(f"Unknown credential hashing mode: {mode}")
        self.mode = mode
        self.rounds = rounds

    def hash(self, credential: Optional[str]) -> Optional[str]:
        if credential is None:
            return None
        if self.mode == PLAINTEXT:
            return credential
        return bcrypt.hashpw(credential.encode(), bcrypt.gensalt(rounds=self.rounds)).decode()

    def verify(self, credential: Optional[str], stored: Optional[str]) -> bool:
        if stored is None or credential is None:
            return stored is None and credential is None
        if self.mode == PLAINTEXT:
            return hmac.compare_digest(credential.encode(), stored.encode())
        try:
            return bcrypt.checkpw(credential.encode(), stored.encode())
        except ValueError:
            # stored value is not a bcrypt hash (e.g. snapshot written in plaintext mode)
            return False

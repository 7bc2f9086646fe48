"""
Campus Guardian Users — credential records

Sign-in identities live in their own table, apart from profile documents.
Deleting a profile leaves the identity in place.
"""
import hashlib
import hmac
import logging
import os
import uuid
from typing import Optional

from ..errors import Conflict
from ..store.models import get_conn, server_ts

logger = logging.getLogger(__name__)

PBKDF2_ROUNDS = 120_000


def init_auth_schema(db_path: str):
    conn = get_conn(db_path)
    conn.execute("""
        CREATE TABLE IF NOT EXISTS auth_identities (
            uid TEXT PRIMARY KEY,
            email TEXT UNIQUE NOT NULL,
            password_hash TEXT NOT NULL,
            salt TEXT NOT NULL,
            created TEXT,
            last_login TEXT
        )
    """)
    conn.commit()
    conn.close()


def hash_password(password: str, salt: bytes) -> str:
    return hashlib.pbkdf2_hmac("sha256", password.encode(), salt, PBKDF2_ROUNDS).hex()


class AuthProvider:
    """Email + password identities keyed by uid."""

    def __init__(self, db_path: str):
        self.db_path = db_path
        init_auth_schema(db_path)

    def create_identity(self, email: str, password: str) -> str:
        email = email.strip().lower()
        if self.uid_for_email(email):
            raise Conflict("An account with this email already exists.")
        uid = uuid.uuid4().hex[:28]
        salt = os.urandom(16)
        conn = get_conn(self.db_path)
        try:
            conn.execute(
                "INSERT INTO auth_identities (uid, email, password_hash, salt, created) VALUES (?, ?, ?, ?, ?)",
                (uid, email, hash_password(password, salt), salt.hex(), server_ts()),
            )
            conn.commit()
        finally:
            conn.close()
        logger.info(f"[Auth] identity created for {email}")
        return uid

    def uid_for_email(self, email: str) -> Optional[str]:
        conn = get_conn(self.db_path)
        row = conn.execute(
            "SELECT uid FROM auth_identities WHERE email = ?", (email.strip().lower(),)
        ).fetchone()
        conn.close()
        return row["uid"] if row else None

    def authenticate(self, email: str, password: str) -> Optional[str]:
        """Return the uid when the password matches, else None."""
        conn = get_conn(self.db_path)
        try:
            row = conn.execute(
                "SELECT uid, password_hash, salt FROM auth_identities WHERE email = ?",
                (email.strip().lower(),),
            ).fetchone()
            if not row:
                return None
            candidate = hash_password(password, bytes.fromhex(row["salt"]))
            if not hmac.compare_digest(candidate, row["password_hash"]):
                return None
            conn.execute(
                "UPDATE auth_identities SET last_login = ? WHERE uid = ?", (server_ts(), row["uid"])
            )
            conn.commit()
            return row["uid"]
        finally:
            conn.close()

    def identity_exists(self, uid: str) -> bool:
        conn = get_conn(self.db_path)
        row = conn.execute("SELECT 1 FROM auth_identities WHERE uid = ?", (uid,)).fetchone()
        conn.close()
        return row is not None

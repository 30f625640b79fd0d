"""
Operator authentication
A single credential from settings, compared verbatim, and opaque bearer
tokens kept in memory for the life of the process.
"""
import logging
import secrets
from typing import Dict, Optional

from salesdash.core.config import settings

logger = logging.getLogger(__name__)

SESSION_VALUE = "authenticated"


def verify_credentials(email: str, password: str) -> bool:
    """Check the operator email/password pair (no hashing, no lookup)"""
    email_ok = secrets.compare_digest(email.encode(), settings.ADMIN_EMAIL.encode())
    password_ok = secrets.compare_digest(password.encode(), settings.ADMIN_PASSWORD.encode())
    return email_ok and password_ok


class SessionRegistry:
    """In-memory bearer tokens; no expiry, dropped on logout or restart"""

    def __init__(self):
        self._sessions: Dict[str, str] = {}

    def create(self, email: str) -> str:
        token = secrets.token_urlsafe(settings.SESSION_TOKEN_BYTES)
        self._sessions[token] = email
        logger.info(f"Session opened for {email}")
        return token

    def get(self, token: str) -> Optional[str]:
        return self._sessions.get(token)

    def revoke(self, token: str) -> bool:
        email = self._sessions.pop(token, None)
        if email is not None:
            logger.info(f"Session closed for {email}")
        return email is not None

    def __len__(self) -> int:
        return len(self._sessions)


# Global session registry
sessions = SessionRegistry()

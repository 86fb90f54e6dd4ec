"""Authorization for saved-analysis operations."""

import hmac
import logging
from abc import ABC, abstractmethod
from typing import Optional

logger = logging.getLogger(__name__)


class Authorizer(ABC):
    """Decides whether a bearer token may act for a user."""

    @abstractmethod
    def user_for_token(self, token: Optional[str]) -> Optional[str]:
        """The user id the token belongs to, or None."""

    def is_authorized(self, token: Optional[str], user_id: str) -> bool:
        owner = self.user_for_token(token)
        return owner is not None and owner == user_id


class StaticTokenAuthorizer(Authorizer):
    """
    Fixed token -> user id table.

    Tokens are configured as ``token:user`` pairs separated by commas, e.g.
    ``JD_API_TOKENS="s3cret:user-1,other:user-2"``.
    """

    def __init__(self, tokens: Optional[dict[str, str]] = None):
        self.tokens = dict(tokens or {})

    @classmethod
    def from_string(cls, value: Optional[str]) -> "StaticTokenAuthorizer":
        tokens: dict[str, str] = {}
        for pair in (value or "").split(","):
            token, sep, user_id = pair.strip().partition(":")
            if not sep or not token or not user_id:
                if pair.strip():
                    logger.warning("Ignoring malformed token entry")
                continue
            tokens[token] = user_id
        return cls(tokens)

    def user_for_token(self, token: Optional[str]) -> Optional[str]:
        if not token:
            return None
        for known, user_id in self.tokens.items():
            if hmac.compare_digest(known, token):
                return user_id
        return None

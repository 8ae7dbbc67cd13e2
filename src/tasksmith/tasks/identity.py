# src/tasksmith/tasks/identity.py

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass

logger = logging.getLogger(__name__)

LOCAL_PREFIX = "local-"


@dataclass(slots=True, frozen=True)
class Identity:
    """Acting principal stamped as `owner` on written records."""

    user_id: str
    authenticated: bool = False

    @property
    def is_local(self) -> bool:
        return not self.authenticated


class IdentityProvider:
    """
    Session-scoped identity source.

    - signed in: the authenticated user id
    - signed out: a pseudo-identity generated on first use and reused for the
      rest of the session (also after a logout)

    Records written under the pseudo-identity are not re-owned after a later
    login; there is no migration path.
    """

    def __init__(self, *, local_prefix: str = LOCAL_PREFIX) -> None:
        self._local_prefix = local_prefix
        self._local: Identity | None = None
        self._authenticated: Identity | None = None

    def current_or_create(self) -> Identity:
        if self._authenticated is not None:
            return self._authenticated
        if self._local is None:
            self._local = Identity(user_id=f"{self._local_prefix}{uuid.uuid4()}")
            logger.info("Generated local pseudo-identity %s", self._local.user_id)
        return self._local

    def sign_in(self, user_id: str) -> Identity:
        user_id = (user_id or "").strip()
        if not user_id:
            raise ValueError("user_id is required")
        self._authenticated = Identity(user_id=user_id, authenticated=True)
        logger.info("Signed in as %s", user_id)
        return self._authenticated

    def sign_out(self) -> None:
        if self._authenticated is not None:
            logger.info("Signed out %s", self._authenticated.user_id)
        self._authenticated = None

    @property
    def signed_in(self) -> bool:
        return self._authenticated is not None

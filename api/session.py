"""Signed session tokens and the in-memory table registry."""

import logging
from datetime import datetime, timedelta
from typing import Callable
from uuid import uuid4

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from config import config
from velvet.game import AsyncioScheduler, BlackjackTable
from velvet.game.scheduler import Scheduler
from velvet.rules import TableRules

logger = logging.getLogger(__name__)


class SessionSigner:
    """Sign and verify session IDs using itsdangerous."""

    def __init__(self, secret_key: str | None = None) -> None:
        """Initialize the signer with a secret key."""
        self._secret_key = secret_key or config.security.secret_key
        self._serializer = URLSafeTimedSerializer(self._secret_key)

    def sign(self, session_id: str) -> str:
        """Create a signed token from a session ID."""
        return self._serializer.dumps(session_id)

    def unsign(self, token: str, max_age: int | None = None) -> str | None:
        """
        Verify and extract session_id from a signed token.

        Args:
            token: The signed token to verify
            max_age: Maximum age in seconds (defaults to session_ttl)

        Returns:
            The session ID if valid, None otherwise
        """
        max_age = max_age or config.session_ttl
        try:
            return self._serializer.loads(token, max_age=max_age)
        except (BadSignature, SignatureExpired):
            return None


# Global signer instance
_session_signer: SessionSigner | None = None


def get_session_signer() -> SessionSigner:
    """Get or create the session signer."""
    global _session_signer
    if _session_signer is None:
        _session_signer = SessionSigner()
    return _session_signer


def extract_session_id(token: str) -> str | None:
    """
    Extract the raw session ID from a signed token.

    Args:
        token: The signed session token

    Returns:
        The raw session ID if valid, None otherwise
    """
    return get_session_signer().unsign(token)


class TableRegistry:
    """
    In-memory tables keyed by session ID.

    Tables live only as long as the process; idle tables expire after
    ``ttl`` seconds and have their timers cancelled.
    """

    def __init__(
        self,
        rules: TableRules | None = None,
        scheduler_factory: Callable[[], Scheduler] = AsyncioScheduler,
        ttl: int | None = None,
    ) -> None:
        self.rules = rules or config.table.to_rules()
        self._scheduler_factory = scheduler_factory
        self._ttl = ttl or config.session_ttl
        self._tables: dict[str, tuple[BlackjackTable, datetime]] = {}

    def _new_table(self) -> BlackjackTable:
        return BlackjackTable(rules=self.rules, scheduler=self._scheduler_factory())

    def create(self) -> str:
        """Open a table and return its signed session token."""
        session_id = str(uuid4())
        self._tables[session_id] = (self._new_table(), self._expiry())
        logger.info("table opened for session %s", session_id)
        return get_session_signer().sign(session_id)

    def get(self, session_id: str) -> BlackjackTable | None:
        """Return the table for a session, refreshing its expiry."""
        entry = self._tables.get(session_id)
        if entry is None:
            return None

        table, expiry = entry
        if expiry < datetime.now():
            self.delete(session_id)
            return None

        self._tables[session_id] = (table, self._expiry())
        return table

    def replace(self, session_id: str) -> BlackjackTable:
        """Swap in a brand-new table for an existing or new session."""
        self.delete(session_id)
        table = self._new_table()
        self._tables[session_id] = (table, self._expiry())
        return table

    def delete(self, session_id: str) -> None:
        """Close and forget a session's table."""
        entry = self._tables.pop(session_id, None)
        if entry is not None:
            entry[0].close()

    def cleanup_expired(self) -> int:
        """Remove expired tables."""
        now = datetime.now()
        expired = [sid for sid, (_, expiry) in self._tables.items() if expiry < now]
        for sid in expired:
            self.delete(sid)
        return len(expired)

    def __len__(self) -> int:
        return len(self._tables)

    def _expiry(self) -> datetime:
        return datetime.now() + timedelta(seconds=self._ttl)


# Global registry instance
_registry: TableRegistry | None = None


def get_registry() -> TableRegistry:
    """Get or create the table registry."""
    global _registry
    if _registry is None:
        _registry = TableRegistry()
    return _registry

"""
Session and user profile stores.

Keyed, in-memory records used only as scoring and adaptation input.
"""

import threading
from dataclasses import replace
from datetime import datetime
from typing import Dict, Optional

from .context import SessionContext, TemplateContext, UserProfile
from .errors import MissingSessionId


class SessionStore:
    """Lazily-created per-session history.

    A session id is mandatory; the store never invents one.
    """

    def __init__(self):
        self._sessions: Dict[str, SessionContext] = {}
        self._lock = threading.Lock()

    def get_or_create(self, context: TemplateContext) -> SessionContext:
        """Return the session for the context, creating it on first use.

        Raises:
            MissingSessionId: If the context carries no session id
        """
        session_id = context.session_id
        if not session_id:
            raise MissingSessionId()

        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                session = SessionContext(session_id=session_id, start_time=datetime.now())
                self._sessions[session_id] = session
            return session

    def get(self, session_id: str) -> Optional[SessionContext]:
        with self._lock:
            return self._sessions.get(session_id)

    def record_template(self, session_id: str, template_id: str) -> SessionContext:
        """Append a used template id to the session."""
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise MissingSessionId(f"Unknown session: {session_id}")
            session.templates_used.append(template_id)
            return session

    def record_outcome(
        self,
        session_id: str,
        success: bool,
        satisfaction: Optional[float] = None
    ) -> SessionContext:
        """Fold a caller-reported outcome into the running success rate.

        Args:
            session_id: Existing session id
            success: Whether the last generation was accepted
            satisfaction: Optional satisfaction score, replaces the previous one
        """
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise MissingSessionId(f"Unknown session: {session_id}")
            successes = session.success_rate * session.outcome_count + (1 if success else 0)
            session.outcome_count += 1
            session.success_rate = successes / session.outcome_count
            if satisfaction is not None:
                session.user_satisfaction = satisfaction
            return session

    def __len__(self) -> int:
        return len(self._sessions)


class ProfileStore:
    """User profiles keyed by id.

    Updated only through put/update; the optimizer only reads.
    """

    def __init__(self):
        self._profiles: Dict[str, UserProfile] = {}
        self._lock = threading.Lock()

    def put(self, profile: UserProfile) -> None:
        with self._lock:
            self._profiles[profile.id] = profile

    def get(self, user_id: str) -> Optional[UserProfile]:
        with self._lock:
            return self._profiles.get(user_id)

    def update(self, user_id: str, **changes) -> Optional[UserProfile]:
        """Apply changes to an existing profile.

        Returns:
            The updated profile, or None if the user is unknown
        """
        with self._lock:
            existing = self._profiles.get(user_id)
            if existing is None:
                return None
            changes.setdefault("last_active", datetime.now())
            updated = replace(existing, **changes)
            self._profiles[user_id] = updated
            return updated

    def __len__(self) -> int:
        return len(self._profiles)

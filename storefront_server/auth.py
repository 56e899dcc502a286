"""Admin password gate with a persisted session flag."""

import hmac
import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from .models import AdminSession

logger = logging.getLogger(__name__)


class AdminAuthManager:
    """Manages the admin authenticated flag and its persistence."""

    def __init__(self, password: Optional[str], session_file: Optional[str] = None) -> None:
        """
        Initialize the admin gate.

        Args:
            password: The admin password. When unset, admin login is disabled.
            session_file: Path to store session data. Defaults to ~/.storefront_admin_session.json
        """
        if session_file is None:
            session_file = str(Path.home() / ".storefront_admin_session.json")
        self.session_file = session_file
        self._password = password
        self.session: AdminSession = self._load_session()

    def _load_session(self) -> AdminSession:
        """Load session data from file if it exists."""
        if os.path.exists(self.session_file):
            try:
                with open(self.session_file, "r") as f:
                    return AdminSession(**json.load(f))
            except (json.JSONDecodeError, ValueError) as e:
                logger.warning(f"Ignoring unreadable admin session file: {e}")
        return AdminSession()

    def _save_session(self) -> None:
        with open(self.session_file, "w") as f:
            json.dump(self.session.model_dump(mode="json"), f)
        os.chmod(self.session_file, 0o600)

    def login(self, password: str) -> bool:
        """Check the password and persist the authenticated flag on success."""
        if not self._password:
            logger.warning("Admin login attempted but no admin password is configured")
            return False
        if not hmac.compare_digest(password.encode(), self._password.encode()):
            logger.info("Admin login failed")
            return False

        self.session = AdminSession(is_authenticated=True, logged_in_at=datetime.now(timezone.utc))
        self._save_session()
        logger.info("Admin logged in")
        return True

    def logout(self) -> None:
        self.session = AdminSession()
        if os.path.exists(self.session_file):
            os.remove(self.session_file)
        logger.info("Admin logged out")

    def is_authenticated(self) -> bool:
        # A leftover session file does not unlock a gate with no password
        return bool(self._password) and self.session.is_authenticated

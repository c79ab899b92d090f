import threading
import uuid
from typing import Dict, Iterable, Optional

from healthdash.utils.models import UserAccount

class DuplicateEmailError(Exception):
    """Raised when an email is registered twice."""
    pass

class UserDirectory:
    """
    In-memory stand-in for the identity provider. Emails are unique and
    matched case-insensitively, user ids are opaque strings.
    """

    def __init__(self, emails: Iterable[str] = ()):
        self._lock = threading.Lock()
        self._by_id: Dict[str, UserAccount] = {}
        self._by_email: Dict[str, UserAccount] = {}
        for email in emails:
            self.register(email)

    def register(self, email: str) -> UserAccount:
        key = email.strip().casefold()
        with self._lock:
            if key in self._by_email:
                raise DuplicateEmailError(f"Email {email} is already registered.")
            account = UserAccount(id=str(uuid.uuid4()), email=email.strip())
            self._by_email[key] = account
            self._by_id[account.id] = account
        return account

    def get(self, user_id: str) -> Optional[UserAccount]:
        with self._lock:
            return self._by_id.get(user_id)

    def find_by_email(self, email: str) -> Optional[UserAccount]:
        if not email:
            return None
        with self._lock:
            return self._by_email.get(email.strip().casefold())

    def resolve_user_id_by_key(self, api_key: str) -> Optional[str]:
        # The API key is the user's registered email
        account = self.find_by_email(api_key)
        return account.id if account else None

# intentmarket/services/user_service.py
import logging

from intentmarket.core.errors import Conflict
from intentmarket.core.security import hash_password, verify_password
from intentmarket.models.user import User
from intentmarket.repositories.base import Storage
from intentmarket.schemas.user import UserCreate, UserLogin

logger = logging.getLogger(__name__)


class UserService:
    """
    Business logic for accounts.

    Responsibilities:
      - unique usernames
      - hash passwords before they reach storage
      - credential checks for login
    """

    def register(self, storage: Storage, payload: UserCreate) -> User:
        """
        Create an account with the requested role.

        Raises:
            Conflict: if the username is already taken.
        """
        if storage.users.get_by_username(payload.username) is not None:
            raise Conflict("Username already exists")

        user = User(
            username=payload.username,
            password=hash_password(payload.password),
            name=payload.name,
            role=payload.role,
        )
        user = storage.users.create(user)
        logger.info("Registered %s account %s (id=%s)", user.role, user.username, user.id)
        return user

    def authenticate(self, storage: Storage, payload: UserLogin) -> User | None:
        """Return the user for valid credentials, else None."""
        user = storage.users.get_by_username(payload.username)
        if user is None or not verify_password(payload.password, user.password):
            return None
        return user

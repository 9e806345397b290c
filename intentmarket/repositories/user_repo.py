# intentmarket/repositories/user_repo.py
from sqlmodel import Session, select

from intentmarket.models.user import User
from intentmarket.repositories.base import UserRepository, translate_store_errors


class SqlUserRepository(UserRepository):
    """
    Data access layer for User.

    Responsibilities:
      - Pure DB operations (CRUD + queries)
      - No FastAPI, no HTTP, no business logic
    """

    def __init__(self, session: Session):
        self.session = session

    def get_by_id(self, user_id: int) -> User | None:
        """Return a User by primary key, or None if not found."""
        with translate_store_errors(self.session):
            return self.session.get(User, user_id)

    def get_by_username(self, username: str) -> User | None:
        """Return a User by unique username, or None if not found."""
        with translate_store_errors(self.session):
            stmt = select(User).where(User.username == username)
            return self.session.exec(stmt).first()

    def create(self, user: User) -> User:
        """Insert a new User and return the persisted row."""
        with translate_store_errors(self.session):
            self.session.add(user)
            self.session.commit()
            self.session.refresh(user)
            return user

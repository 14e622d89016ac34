import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import Depends
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.user import MAX_USER_AGE, MIN_USER_AGE, User
from ..services.errors import NotFoundError, StoreError, ValidationError
from ..utils.identifiers import generate_user_id

logger = logging.getLogger(__name__)

_UPDATABLE_FIELDS = ("name", "age", "photo_url")


def parse_age(value: Any) -> int:
    """
    Coerce a client-supplied age into an int within [1, 100].

    Accepts ints and numeric strings; booleans, floats with a fraction,
    non-numeric text and out-of-range values raise ValidationError.
    """
    if value is None or isinstance(value, bool):
        raise ValidationError("Age is required")
    if isinstance(value, float):
        if not value.is_integer():
            raise ValidationError("Age must be a whole number")
        value = int(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            raise ValidationError("Age is required")
        try:
            value = int(text)
        except ValueError:
            raise ValidationError("Age must be a number") from None
    if not isinstance(value, int):
        raise ValidationError("Age must be a number")
    if value < MIN_USER_AGE or value > MAX_USER_AGE:
        raise ValidationError(
            f"Age must be between {MIN_USER_AGE} and {MAX_USER_AGE}"
        )
    return value


def _clean_name(value: Any) -> str:
    if value is None or not str(value).strip():
        raise ValidationError("Name is required")
    return str(value).strip()


class UserManager:
    """Manages user profiles using SQLAlchemy."""

    def __init__(self):
        self.db = None

    def set_db(self, db: Session):
        """Set the database session."""
        self.db = db

    def get_user_by_email(self, email: str) -> Optional[User]:
        """Get user data by email (case-insensitive)."""
        req_id = uuid.uuid4()
        logger.debug(f"[{req_id}] Attempting to get user with email: {email}")
        if not email:
            logger.warning(f"[{req_id}] No email provided.")
            return None
        clean_email = email.strip().lower()
        user = self.db.query(User).filter(func.lower(User.email) == clean_email).first()
        if user:
            logger.info(f"[{req_id}] User found with email: {email}")
        else:
            logger.info(f"[{req_id}] User not found with email: {email}")
        return user

    def get_user_by_id(self, user_id: str) -> Optional[User]:
        """Get user data by primary key user_id."""
        if not user_id:
            return None
        user = self.db.query(User).filter(User.user_id == user_id).first()
        if user is None:
            logger.info(f"User not found with user_id: {user_id}")
        return user

    def get_users_by_ids(self, user_ids: List[str]) -> Dict[str, User]:
        if not user_ids:
            return {}
        rows = self.db.query(User).filter(User.user_id.in_(list(user_ids))).all()
        return {user.user_id: user for user in rows}

    def get_all_users(self) -> List[User]:
        return self.db.query(User).order_by(User.created_at, User.user_id).all()

    def add_user(
        self,
        name: Any,
        age: Any,
        email: Optional[str] = None,
        photo_url: Optional[str] = None,
    ) -> User:
        clean_name = _clean_name(name)
        clean_age = parse_age(age)
        clean_email = email.strip().lower() if email and email.strip() else None
        try:
            user = User(
                user_id=generate_user_id(self.db, clean_name),
                name=clean_name,
                email=clean_email,
                age=clean_age,
                photo_url=photo_url or None,
            )
            self.db.add(user)
            self.db.commit()
            self.db.refresh(user)
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error(f"Database error creating user {clean_email}: {exc}")
            raise StoreError(str(exc)) from exc
        logger.info(f"Created user {user.user_id} ({clean_email})")
        return user

    def register_user(
        self,
        email: Optional[str],
        name: Any,
        age: Any,
        photo_url: Optional[str] = None,
    ) -> tuple:
        """
        Register the caller's profile.

        Returns ``(user, created)``. When a profile with the same email
        already exists it is returned unchanged with ``created=False``.
        """
        clean_name = _clean_name(name)
        clean_age = parse_age(age)
        if not email:
            raise ValidationError("Verified identity carries no email")
        existing = self.get_user_by_email(email)
        if existing is not None:
            return existing, False
        return self.add_user(clean_name, clean_age, email=email, photo_url=photo_url), True

    def update_user(self, user_id: str, updated_data: Dict[str, Any]) -> User:
        """Partial update of name, age and photo_url."""
        user = self.get_user_by_id(user_id)
        if user is None:
            raise NotFoundError(f"User not found: {user_id}")

        unknown = sorted(set(updated_data) - set(_UPDATABLE_FIELDS))
        if unknown:
            raise ValidationError(f"Fields cannot be updated: {', '.join(unknown)}")

        if "name" in updated_data:
            user.name = _clean_name(updated_data["name"])
        if "age" in updated_data:
            user.age = parse_age(updated_data["age"])
        if "photo_url" in updated_data:
            user.photo_url = updated_data["photo_url"] or None
        user.updated_at = datetime.now(timezone.utc)

        try:
            self.db.add(user)
            self.db.commit()
            self.db.refresh(user)
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error(f"Error updating user {user_id}: {exc}")
            raise StoreError(str(exc)) from exc
        return user

    def delete_user(self, user_id: str) -> None:
        """Delete a user; meetings and participant snapshots are left untouched."""
        user = self.get_user_by_id(user_id)
        if user is None:
            raise NotFoundError(f"User not found: {user_id}")
        try:
            self.db.delete(user)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error(f"Error deleting user {user_id}: {exc}")
            raise StoreError(str(exc)) from exc
        logger.info(f"Deleted user {user_id}")


def get_user_manager(db: Session = Depends(get_db)) -> UserManager:
    """Dependency provider for UserManager."""
    manager = UserManager()
    manager.set_db(db)
    return manager

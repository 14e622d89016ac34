from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.sql import func

from app.database import Base

MIN_USER_AGE = 1
MAX_USER_AGE = 100


class User(Base):
    __tablename__ = "users"

    user_id = Column(String(20), primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=True)
    age = Column(Integer, nullable=True)
    photo_url = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def profile_snapshot(self) -> dict:
        """Denormalised profile copied onto participant rows at join time."""
        return {
            "name": self.name,
            "email": self.email,
            "age": self.age,
            "photo_url": self.photo_url,
        }

    def __repr__(self) -> str:
        return f"User(user_id={self.user_id!r}, email={self.email!r})"

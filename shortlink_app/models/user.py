from sqlalchemy import Column, Integer, String
from shortlink_app.models.base import Base


class User(Base):
    """Plain credential record. No hashing, no sessions."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    username = Column(String, unique=True, nullable=False, index=True)
    password = Column(String, nullable=False)

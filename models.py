from sqlalchemy import Column, DateTime, Integer, String, Text, UniqueConstraint
from sqlalchemy.sql import func

from database import Base


class User(Base):
    """
    Signup record. The password is kept as submitted; there is no
    login flow that would check it.
    """

    __tablename__ = "users"
    __table_args__ = (UniqueConstraint("username", name="uq_user_username"),)

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(128), nullable=False, index=True)
    password = Column(String(256), nullable=False)


class Community(Base):
    """One accepted form submission together with the report generated from it."""

    __tablename__ = "communities"

    id = Column(Integer, primary_key=True, index=True)
    rename = Column(Text, nullable=False)
    robux_fund = Column(Text, nullable=False)
    communities_member = Column(Text, nullable=False)
    owner_username = Column(Text, nullable=False)
    original_file_name = Column(String(255), nullable=True)
    discord_webhook = Column(Text, nullable=True)
    original_content = Column(Text, nullable=False)
    generated_content = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

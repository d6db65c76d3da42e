from typing import Optional

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from profileapi.models.base import BaseModel


class User(BaseModel):
    __tablename__ = "users"

    anon_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    # Reserved for linking an anonymous id to a real account later
    user_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    avatar_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    def __repr__(self):
        return f"<User(anon_id={self.anon_id}, name={self.name})>"

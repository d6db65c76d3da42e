from sqlalchemy import Column, DateTime
from sqlalchemy.orm import declarative_base, declared_attr

from profileapi.utils.timezone_utils import utc_now

Base = declarative_base()


class TimestampMixin:
    """created_at / updated_at columns; the storage adapter sets them from its clock"""

    @declared_attr
    def created_at(cls):
        return Column(DateTime(timezone=True), nullable=False, default=utc_now)

    @declared_attr
    def updated_at(cls):
        return Column(
            DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
        )


class BaseModel(Base, TimestampMixin):
    """Base class for tables carrying both timestamps"""

    __abstract__ = True

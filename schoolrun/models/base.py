"""
Base SQLAlchemy model with common fields and utilities.
"""
from sqlalchemy import Column, Integer, DateTime
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()


class BaseModel(Base):
    """
    Abstract base model with common fields and methods for all models.
    """
    __abstract__ = True

    # Primary key
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<{self.__class__.__name__}(id={self.id})>"


class TimestampMixin:
    """Mixin for tables that only need a creation timestamp."""
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

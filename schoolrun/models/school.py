"""
School directory model. Each school is one pickup stop candidate.
"""
from sqlalchemy import Column, String, Float, Integer, Boolean, Time

from .base import BaseModel


class School(BaseModel):
    """A school with its location, dismissal time and rider count."""
    __tablename__ = 'schools'

    name = Column(String(255), nullable=False)
    address = Column(String(500), nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    dismissal_time = Column(Time, nullable=False)  # local time-of-day
    student_count = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    @property
    def has_location(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def __repr__(self):
        return f"<School(id={self.id}, name='{self.name}', dismissal={self.dismissal_time})>"

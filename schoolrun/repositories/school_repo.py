from typing import List, Optional, Sequence
from sqlalchemy.orm import Session

from ..models.school import School
from .base import CRUDBase


class SchoolRepository(CRUDBase[School]):
    def __init__(self):
        super().__init__(School)

    def get_active(self, db: Session, school_ids: Optional[Sequence[int]] = None) -> List[School]:
        """Active schools, optionally limited to the given ids, in id order"""
        query = db.query(self.model).filter(self.model.is_active.is_(True))
        if school_ids is not None:
            query = query.filter(self.model.id.in_(list(school_ids)))
        return query.order_by(self.model.id).all()

    def get_missing_ids(self, db: Session, school_ids: Sequence[int]) -> List[int]:
        """Ids from the list that have no active school"""
        found = {
            row.id for row in
            db.query(self.model.id).filter(self.model.id.in_(list(school_ids)), self.model.is_active.is_(True))
        }
        return [school_id for school_id in school_ids if school_id not in found]


school_repository = SchoolRepository()

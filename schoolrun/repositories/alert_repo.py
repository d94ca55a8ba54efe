from datetime import datetime
from typing import Any, Dict, List, Optional, Set, Tuple
from sqlalchemy import desc
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..models.alert import MissedSchoolAlert
from .base import CRUDBase

_INSERT_OR_IGNORE = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


class AlertRepository(CRUDBase[MissedSchoolAlert]):
    def __init__(self):
        super().__init__(MissedSchoolAlert)

    def exists(self, db: Session, trip_id: int, route_stop_id: int, alert_type: str) -> bool:
        return (
            db.query(self.model.id)
            .filter(
                self.model.trip_id == trip_id,
                self.model.route_stop_id == route_stop_id,
                self.model.alert_type == alert_type,
            )
            .first()
        ) is not None

    def get_keys_for_trip(self, db: Session, trip_id: int) -> Set[Tuple[int, str]]:
        """(route_stop_id, alert_type) pairs already raised for a trip"""
        rows = (
            db.query(self.model.route_stop_id, self.model.alert_type)
            .filter(self.model.trip_id == trip_id)
            .all()
        )
        return {(row.route_stop_id, row.alert_type) for row in rows}

    def insert_if_absent(self, db: Session, values: Dict[str, Any]) -> bool:
        """
        Insert an alert unless one with the same (trip, stop, type) exists.

        Returns True when a row was written. Does not commit. The unique
        constraint decides, so concurrent writers cannot both succeed.
        """
        dialect = db.get_bind().dialect.name
        insert_factory = _INSERT_OR_IGNORE.get(dialect)

        if insert_factory is not None:
            stmt = (
                insert_factory(self.model.__table__)
                .values(**values)
                .on_conflict_do_nothing(index_elements=["trip_id", "route_stop_id", "alert_type"])
            )
            result = db.execute(stmt)
            return result.rowcount == 1

        try:
            with db.begin_nested():
                db.add(self.model(**values))
            return True
        except IntegrityError:
            return False

    def get_unsent(self, db: Session, limit: int = 100) -> List[MissedSchoolAlert]:
        return (
            db.query(self.model)
            .filter(self.model.sent.is_(False))
            .order_by(self.model.detected_at, self.model.id)
            .limit(limit)
            .all()
        )

    def mark_sent(self, db: Session, alert: MissedSchoolAlert, sent_at: datetime) -> MissedSchoolAlert:
        alert.sent = True
        alert.sent_at = sent_at
        db.add(alert)
        db.commit()
        return alert

    def search(
        self,
        db: Session,
        *,
        trip_id: Optional[int] = None,
        alert_type: Optional[str] = None,
        sent: Optional[bool] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[MissedSchoolAlert]:
        query = db.query(self.model)
        if trip_id is not None:
            query = query.filter(self.model.trip_id == trip_id)
        if alert_type is not None:
            query = query.filter(self.model.alert_type == alert_type)
        if sent is not None:
            query = query.filter(self.model.sent.is_(sent))
        return query.order_by(desc(self.model.detected_at), desc(self.model.id)).offset(skip).limit(limit).all()


alert_repository = AlertRepository()

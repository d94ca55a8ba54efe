from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session, selectinload

from ..models.route import Route, RouteStop
from .base import CRUDBase


class RouteRepository(CRUDBase[Route]):
    def __init__(self):
        super().__init__(Route)

    def get_with_stops(self, db: Session, route_id: int) -> Optional[Route]:
        return (
            db.query(self.model)
            .options(selectinload(self.model.stops).selectinload(RouteStop.school))
            .filter(self.model.id == route_id)
            .first()
        )

    def get_active_routes(self, db: Session) -> List[Route]:
        return (
            db.query(self.model)
            .options(selectinload(self.model.stops).selectinload(RouteStop.school))
            .filter(self.model.is_active.is_(True))
            .order_by(self.model.id)
            .all()
        )

    def get_stop(self, db: Session, route_id: int, stop_id: int) -> Optional[RouteStop]:
        return (
            db.query(RouteStop)
            .filter(RouteStop.id == stop_id, RouteStop.route_id == route_id)
            .first()
        )

    def replace_active_routes(self, db: Session, routes_in: List[Dict[str, Any]]) -> List[Route]:
        """
        Deactivate every active route and insert the given ones, in one commit.

        Each dict holds the Route columns plus a "stops" list of RouteStop
        column dicts. Old routes are kept for trip history, never edited.
        """
        (
            db.query(self.model)
            .filter(self.model.is_active.is_(True))
            .update({self.model.is_active: False}, synchronize_session=False)
        )

        created = []
        for route_data in routes_in:
            route_data = dict(route_data)
            stops_data = route_data.pop("stops", [])
            route = self.model(**route_data, is_active=True)
            route.stops = [RouteStop(**stop) for stop in stops_data]
            db.add(route)
            created.append(route)

        db.commit()
        for route in created:
            db.refresh(route)
        return created


route_repository = RouteRepository()

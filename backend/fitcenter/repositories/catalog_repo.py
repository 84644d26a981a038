"""Catalog repository: locations and the services offered at them."""

from typing import List, Optional

from fitcenter.db.base import Location as DbLocation
from fitcenter.db.base import Service as DbService
from fitcenter.domain.entities import Location as DomainLocation
from fitcenter.domain.entities import Service as DomainService
from fitcenter.domain.interfaces import ICatalogReader


class CatalogRepository(ICatalogReader):
    """Read-only access to locations and services."""

    def __init__(self, db_session) -> None:
        self.db = db_session

    def get_location(self, location_id: int) -> Optional[DomainLocation]:
        db_location = self.db.query(DbLocation).filter_by(id=location_id).first()
        return self._location_to_domain(db_location) if db_location else None

    def list_locations(self) -> List[DomainLocation]:
        db_locations = self.db.query(DbLocation).order_by(DbLocation.name).all()
        return [self._location_to_domain(loc) for loc in db_locations]

    def get_service(self, service_id: int) -> Optional[DomainService]:
        db_service = self.db.query(DbService).filter_by(id=service_id).first()
        return self._service_to_domain(db_service) if db_service else None

    def _location_to_domain(self, db_location: DbLocation) -> DomainLocation:
        return DomainLocation(
            id=db_location.id,
            name=db_location.name,
            address=db_location.address or "",
        )

    def _service_to_domain(self, db_service: DbService) -> DomainService:
        return DomainService(
            id=db_service.id,
            name=db_service.name,
            description=db_service.description,
            price=db_service.price,
            duration_minutes=db_service.duration_minutes,
            max_capacity=db_service.max_capacity,
            is_active=db_service.is_active,
            location_ids=sorted(loc.id for loc in db_service.locations),
        )

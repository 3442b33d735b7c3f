"""
Catalog repositories - services and the providers offering them.
"""
from typing import Any, Dict, Iterable, List, Optional
from uuid import UUID

from sqlalchemy import or_, select, text

from kmerbeauty.lib.errors import NotFoundError, translate_db_errors
from kmerbeauty.models.providers import Salon, Therapist
from kmerbeauty.models.services import Service
from kmerbeauty.repositories.base import BaseRepository


# Geo-search stored function, resolved by parameter name
NEARBY_PROVIDERS_SQL = text(
    """
    SELECT * FROM get_nearby_providers(
        lat => CAST(:lat AS double precision),
        lng => CAST(:lng AS double precision),
        radius_meters => CAST(:radius_meters AS integer),
        client_city => CAST(:client_city AS text),
        client_district => CAST(:client_district AS text),
        filter_service_id => CAST(:filter_service_id AS uuid)
    )
    """
)


def _as_uuids(values: Iterable[Any]) -> List[UUID]:
    """Function rows may carry ids as strings"""
    return list({value if isinstance(value, UUID) else UUID(str(value)) for value in values})


class ServiceRepository(BaseRepository):
    """Repository for the service catalog"""
    
    def get_service(self, service_id: UUID) -> Service:
        """
        Get a service by id.
        
        Raises:
            NotFoundError: If no service has this id
        """
        with translate_db_errors("get_service"):
            service = self.db.get(Service, service_id)
        if service is None:
            raise NotFoundError("Service", str(service_id))
        return service
    
    def services_by_names(self, names: Iterable[str]) -> List[Service]:
        """Services whose French or English name is one of `names`"""
        wanted = sorted({name for name in names if name})
        if not wanted:
            return []
        stmt = select(Service).where(
            or_(Service.name_fr.in_(wanted), Service.name_en.in_(wanted))
        )
        with translate_db_errors("services_by_names"):
            return list(self.db.execute(stmt).scalars().all())


class ProviderRepository(BaseRepository):
    """Repository for salons, therapists and the geo-search function"""
    
    def nearby_providers(
        self,
        service_id: UUID,
        latitude: Optional[float],
        longitude: Optional[float],
        radius_meters: int,
        city: Optional[str] = None,
        district: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """
        Run get_nearby_providers for one service.
        
        Returns:
            One dict per provider row, keys as returned by the function
        """
        params = {
            "lat": latitude,
            "lng": longitude,
            "radius_meters": radius_meters,
            "client_city": city,
            "client_district": district,
            "filter_service_id": str(service_id),
        }
        with translate_db_errors("get_nearby_providers"):
            rows = self.db.execute(NEARBY_PROVIDERS_SQL, params).mappings().all()
        return [dict(row) for row in rows]
    
    def salons_by_ids(self, salon_ids: Iterable[Any]) -> List[Salon]:
        ids = _as_uuids(salon_ids)
        if not ids:
            return []
        with translate_db_errors("salon_details"):
            return list(self.db.execute(select(Salon).where(Salon.id.in_(ids))).scalars().all())
    
    def therapists_by_ids(self, therapist_ids: Iterable[Any]) -> List[Therapist]:
        """Therapists with their user account eagerly loaded"""
        ids = _as_uuids(therapist_ids)
        if not ids:
            return []
        with translate_db_errors("therapist_details"):
            return list(
                self.db.execute(select(Therapist).where(Therapist.id.in_(ids))).unique().scalars().all()
            )
    
    def provider_user_id(self, provider_id: UUID, provider_type: str) -> UUID:
        """
        Resolve the user account behind a salon or therapist.
        
        Args:
            provider_id: Salon or therapist id
            provider_type: "salon" or "therapist"
            
        Raises:
            NotFoundError: If the provider does not exist
        """
        model = Salon if provider_type == "salon" else Therapist
        with translate_db_errors("provider_user_id"):
            user_id = self.db.execute(
                select(model.user_id).where(model.id == provider_id)
            ).scalar_one_or_none()
        if user_id is None:
            raise NotFoundError(model.__name__, str(provider_id))
        return user_id

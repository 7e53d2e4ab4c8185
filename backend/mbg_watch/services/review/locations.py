"""
MBG Watch - Location Directory

Validates the province -> city -> district hierarchy against the reference
tables. Submission rejects a hierarchy that does not resolve; the scorer only
ever sees verified locations.
"""
from dataclasses import dataclass
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from ...errors import ValidationError
from ...models.db_models import CityDB, DistrictDB, ProvinceDB


@dataclass(frozen=True)
class ResolvedLocation:
    province_id: str
    province_name: str
    city_id: str
    city_name: str
    district_id: Optional[str] = None
    district_name: Optional[str] = None

    @property
    def is_complete(self) -> bool:
        return self.district_id is not None


class LocationDirectory:
    def __init__(self, db: Session):
        self.db = db

    def resolve(
        self,
        province_id: Optional[str],
        city_id: Optional[str],
        district_id: Optional[str] = None,
    ) -> ResolvedLocation:
        """
        Check that each level exists and belongs to its parent.

        Raises ValidationError naming the first offending field.
        """
        if not province_id:
            raise ValidationError("Province is required", field="provinceId")
        if not city_id:
            raise ValidationError("City is required", field="cityId")

        province = self.db.get(ProvinceDB, province_id)
        if province is None:
            raise ValidationError(f"Unknown province '{province_id}'", field="provinceId")

        city = self.db.get(CityDB, city_id)
        if city is None or city.province_id != province_id:
            raise ValidationError(
                f"City '{city_id}' is not in province '{province_id}'", field="cityId"
            )

        district = None
        if district_id:
            district = self.db.get(DistrictDB, district_id)
            if district is None or district.city_id != city_id:
                raise ValidationError(
                    f"District '{district_id}' is not in city '{city_id}'", field="districtId"
                )

        return ResolvedLocation(
            province_id=province.id,
            province_name=province.name,
            city_id=city.id,
            city_name=city.name,
            district_id=district.id if district else None,
            district_name=district.name if district else None,
        )

    def load(self, provinces: List[Dict]) -> int:
        """
        Upsert a nested reference payload:
        [{id, name, cities: [{id, name, districts: [{id, name}]}]}]

        Returns the number of rows written. Caller commits.
        """
        written = 0
        for p in provinces:
            self.db.merge(ProvinceDB(id=p["id"], name=p["name"]))
            written += 1
            for c in p.get("cities", []):
                self.db.merge(CityDB(id=c["id"], province_id=p["id"], name=c["name"]))
                written += 1
                for d in c.get("districts", []):
                    self.db.merge(DistrictDB(id=d["id"], city_id=c["id"], name=d["name"]))
                    written += 1
        self.db.flush()
        return written

"""
Directory Domain Models

Schools and governing bodies, where they are, and how the rest of the system
refers to them: a ProviderRef for whoever hands equipment over and an
ActorRef for whoever pressed the button.

Fun fact: Sri Lanka has 9 provinces and 25 districts. The Northern Province
alone holds five of them, more than any other!
"""

from enum import Enum

from pydantic import BaseModel, Field, model_validator


class SriLankanProvince(str, Enum):
    """Provinces of Sri Lanka"""

    CENTRAL = "Central Province"
    EASTERN = "Eastern Province"
    NORTH_CENTRAL = "North Central Province"
    NORTHERN = "Northern Province"
    NORTH_WESTERN = "North Western Province"
    SABARAGAMUWA = "Sabaragamuwa Province"
    SOUTHERN = "Southern Province"
    UVA = "Uva Province"
    WESTERN = "Western Province"


class SriLankanDistrict(str, Enum):
    """Administrative districts of Sri Lanka"""

    AMPARA = "Ampara"
    ANURADHAPURA = "Anuradhapura"
    BADULLA = "Badulla"
    BATTICALOA = "Batticaloa"
    COLOMBO = "Colombo"
    GALLE = "Galle"
    GAMPAHA = "Gampaha"
    HAMBANTOTA = "Hambantota"
    JAFFNA = "Jaffna"
    KALUTARA = "Kalutara"
    KANDY = "Kandy"
    KEGALLE = "Kegalle"
    KILINOCHCHI = "Kilinochchi"
    KURUNEGALA = "Kurunegala"
    MANNAR = "Mannar"
    MATALE = "Matale"
    MATARA = "Matara"
    MONARAGALA = "Monaragala"
    MULLAITIVU = "Mullaitivu"
    NUWARA_ELIYA = "Nuwara Eliya"
    POLONNARUWA = "Polonnaruwa"
    PUTTALAM = "Puttalam"
    RATNAPURA = "Ratnapura"
    TRINCOMALEE = "Trincomalee"
    VAVUNIYA = "Vavuniya"


PROVINCE_DISTRICTS: dict[SriLankanProvince, frozenset[SriLankanDistrict]] = {
    SriLankanProvince.WESTERN: frozenset(
        {SriLankanDistrict.COLOMBO, SriLankanDistrict.GAMPAHA, SriLankanDistrict.KALUTARA}
    ),
    SriLankanProvince.CENTRAL: frozenset(
        {SriLankanDistrict.KANDY, SriLankanDistrict.MATALE, SriLankanDistrict.NUWARA_ELIYA}
    ),
    SriLankanProvince.SOUTHERN: frozenset(
        {SriLankanDistrict.GALLE, SriLankanDistrict.MATARA, SriLankanDistrict.HAMBANTOTA}
    ),
    SriLankanProvince.NORTHERN: frozenset(
        {
            SriLankanDistrict.JAFFNA,
            SriLankanDistrict.KILINOCHCHI,
            SriLankanDistrict.MANNAR,
            SriLankanDistrict.MULLAITIVU,
            SriLankanDistrict.VAVUNIYA,
        }
    ),
    SriLankanProvince.EASTERN: frozenset(
        {SriLankanDistrict.AMPARA, SriLankanDistrict.BATTICALOA, SriLankanDistrict.TRINCOMALEE}
    ),
    SriLankanProvince.NORTH_WESTERN: frozenset(
        {SriLankanDistrict.KURUNEGALA, SriLankanDistrict.PUTTALAM}
    ),
    SriLankanProvince.NORTH_CENTRAL: frozenset(
        {SriLankanDistrict.ANURADHAPURA, SriLankanDistrict.POLONNARUWA}
    ),
    SriLankanProvince.UVA: frozenset(
        {SriLankanDistrict.BADULLA, SriLankanDistrict.MONARAGALA}
    ),
    SriLankanProvince.SABARAGAMUWA: frozenset(
        {SriLankanDistrict.KEGALLE, SriLankanDistrict.RATNAPURA}
    ),
}


def district_belongs_to_province(
    district: SriLankanDistrict, province: SriLankanProvince
) -> bool:
    """Check that a district lies inside a province"""
    return district in PROVINCE_DISTRICTS[province]


class Coordinates(BaseModel):
    """WGS84 point in decimal degrees"""

    latitude: float = Field(..., ge=-90.0, le=90.0)
    longitude: float = Field(..., ge=-180.0, le=180.0)


class Location(BaseModel):
    """
    Where a school or governing body sits

    District and province drive the categorical proximity fallback;
    coordinates, when both sides have them, drive the great-circle distance.
    """

    district: SriLankanDistrict = Field(..., description="Administrative district")
    province: SriLankanProvince = Field(..., description="Province containing the district")
    zonal: str | None = Field(default=None, description="Education zone, if known")
    coordinates: Coordinates | None = Field(default=None, description="Map position")

    @model_validator(mode="after")
    def validate_district_in_province(self) -> "Location":
        """District must belong to the stated province"""
        if not district_belongs_to_province(self.district, self.province):
            raise ValueError(
                f"District {self.district.value} is not in {self.province.value}"
            )
        return self


class ProviderType(str, Enum):
    """Kinds of entity that can hand equipment over"""

    SCHOOL = "school"
    GOVERNING_BODY = "governing_body"


class ProviderRef(BaseModel):
    """
    Tagged reference to a provider

    The discriminant decides which directory resolves the id, so provider
    handling never depends on guessing from the id's shape.
    """

    provider_type: ProviderType
    provider_id: str = Field(..., min_length=1)

    model_config = {"frozen": True}

    @property
    def key(self) -> str:
        """Stable string form, e.g. "school:0190..." """
        return f"{self.provider_type.value}:{self.provider_id}"

    @classmethod
    def school(cls, school_id: str) -> "ProviderRef":
        return cls(provider_type=ProviderType.SCHOOL, provider_id=school_id)

    @classmethod
    def governing_body(cls, governing_body_id: str) -> "ProviderRef":
        return cls(provider_type=ProviderType.GOVERNING_BODY, provider_id=governing_body_id)


class ActorType(str, Enum):
    """Who may act on a request"""

    SCHOOL = "school"
    GOVERNING_BODY = "governing_body"
    ADMIN = "admin"


class ActorRef(BaseModel):
    """
    Identity of the caller, recorded as supplied

    Resolved once at write time and stored with the record it touched,
    so later readers never reconstruct it from unrelated id fields.
    """

    actor_type: ActorType
    actor_id: str = Field(..., min_length=1)
    display_name: str | None = None

    model_config = {"frozen": True}

    def as_provider(self) -> ProviderRef | None:
        """The provider this actor speaks for, if any (admins speak for nobody)"""
        if self.actor_type == ActorType.SCHOOL:
            return ProviderRef.school(self.actor_id)
        if self.actor_type == ActorType.GOVERNING_BODY:
            return ProviderRef.governing_body(self.actor_id)
        return None


SYSTEM_ACTOR = ActorRef(actor_type=ActorType.ADMIN, actor_id="system", display_name="System")

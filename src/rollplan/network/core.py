import enum
from dataclasses import dataclass, field
from typing import Any


class FacilityType(enum.Enum):
    CEMENT_PLANT = "cement_plant"  # Kilns + finish mills
    GRINDING = "grinding"  # Finish mills only
    TERMINAL = "terminal"  # Storage + shipments, no production


class EquipmentType(enum.Enum):
    KILN = "kiln"
    FINISH_MILL = "finish_mill"
    RAW_MILL = "raw_mill"


# Which equipment types allocate production at each facility type
PRODUCTION_STAGES: dict[FacilityType, frozenset[EquipmentType]] = {
    FacilityType.CEMENT_PLANT: frozenset(
        {EquipmentType.KILN, EquipmentType.FINISH_MILL}
    ),
    FacilityType.GRINDING: frozenset({EquipmentType.FINISH_MILL}),
    FacilityType.TERMINAL: frozenset(),
}


@dataclass
class Country:
    id: str
    name: str = ""


@dataclass
class Region:
    id: str
    country_id: str | None = None
    name: str = ""


@dataclass
class SubRegion:
    id: str
    region_id: str | None = None
    name: str = ""


@dataclass
class Facility:
    """
    A plant, grinding station or terminal in the network.
    """

    id: str
    name: str
    type: FacilityType
    code: str = ""
    sub_region_id: str | None = None

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("Facility ID cannot be empty")

    def runs_stage(self, equipment_type: EquipmentType) -> bool:
        return equipment_type in PRODUCTION_STAGES[self.type]


@dataclass
class Equipment:
    id: str
    facility_id: str
    type: EquipmentType
    name: str = ""

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("Equipment ID cannot be empty")
        if not self.name:
            self.name = self.id


@dataclass
class Capability:
    """Maximum daily rate of one product on one equipment unit."""

    equipment_id: str
    product_id: str
    max_rate_stn: float = 0.0


@dataclass
class Storage:
    """
    A silo, dome or warehouse.

    The first allowed product is "the" product of the storage.
    """

    id: str
    facility_id: str
    name: str = ""
    allowed_product_ids: list[str] = field(default_factory=list)
    max_capacity_stn: Any = None  # Unbounded when absent or non-positive

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("Storage ID cannot be empty")
        if not self.name:
            self.name = self.id

    @property
    def product_id(self) -> str | None:
        return self.allowed_product_ids[0] if self.allowed_product_ids else None


class CampaignStatus(enum.Enum):
    PRODUCE = "produce"
    MAINTENANCE = "maintenance"
    IDLE = "idle"


@dataclass
class CampaignBlock:
    """One planned day of one equipment unit."""

    date: str  # ISO yyyy-mm-dd
    facility_id: str
    equipment_id: str
    status: CampaignStatus | None = None
    product_id: str | None = None
    rate_stn: Any = 0.0

    @property
    def resolved_status(self) -> CampaignStatus:
        if self.status is not None:
            return self.status
        try:
            rate = float(self.rate_stn or 0)
        except (TypeError, ValueError):
            rate = 0.0
        if self.product_id and rate > 0:
            return CampaignStatus.PRODUCE
        return CampaignStatus.IDLE


@dataclass
class ProductionActual:
    date: str
    facility_id: str
    equipment_id: str
    product_id: str
    qty_stn: Any = 0.0


@dataclass
class InventoryCount:
    """Physical count; overrides the carried-forward BOD on its date."""

    date: str
    facility_id: str
    storage_id: str
    qty_stn: Any = 0.0


@dataclass
class ShipmentActual:
    date: str
    facility_id: str
    product_id: str
    qty_stn: Any = 0.0


@dataclass
class DemandForecast:
    date: str
    facility_id: str
    product_id: str
    qty_stn: Any = 0.0


@dataclass
class Transfer:
    """Plant-to-plant movement, out of the source and into the destination."""

    date: str
    from_facility_id: str | None
    to_facility_id: str | None
    product_id: str
    qty_stn: Any = 0.0

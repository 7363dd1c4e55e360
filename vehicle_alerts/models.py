"""
Data models for Vehicle Alerts.

Defines the dataclasses persisted in Supabase and passed between the
discovery, extraction and dispatch loops. Each model maps one table row;
to_dict() produces the column dict for writes and from_dict() rebuilds the
model from a row returned by the store.
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Optional


def _parse_timestamp(value) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    # PostgREST returns "Z"-suffixed timestamps on some versions
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


@dataclass
class Listing:
    """
    One discovered listing awaiting or having completed extraction.

    external_id is unique per source, so re-discovering the same item
    never creates a second row.
    """
    source: str
    external_id: str
    detail_url: str
    id: Optional[int] = None
    discovered_at: datetime = field(default_factory=datetime.utcnow)
    extracted: bool = False

    def to_dict(self) -> dict:
        data = {
            "source": self.source,
            "external_id": self.external_id,
            "detail_url": self.detail_url,
            "discovered_at": self.discovered_at.isoformat(),
            "extracted": self.extracted,
        }
        if self.id is not None:
            data["id"] = self.id
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Listing":
        return cls(
            id=data.get("id"),
            source=data["source"],
            external_id=data["external_id"],
            detail_url=data["detail_url"],
            discovered_at=_parse_timestamp(data.get("discovered_at")) or datetime.utcnow(),
            extracted=bool(data.get("extracted", False)),
        )


@dataclass
class VehicleCategory:
    """The (make, model, age) grouping used for price statistics."""
    make: str
    model: str
    age_years: int
    id: Optional[int] = None

    def to_dict(self) -> dict:
        data = {"make": self.make, "model": self.model, "age_years": self.age_years}
        if self.id is not None:
            data["id"] = self.id
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "VehicleCategory":
        return cls(
            id=data.get("id"),
            make=data["make"],
            model=data["model"],
            age_years=int(data["age_years"]),
        )


@dataclass
class VehicleSpec:
    """Structured attributes extracted for one listing."""
    listing_id: int
    category_id: int
    price: int
    mileage: Optional[int] = None
    power: Optional[int] = None
    engine_displacement: Optional[int] = None
    fuel_type: Optional[str] = None
    transmission: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "listing_id": self.listing_id,
            "category_id": self.category_id,
            "price": self.price,
            "mileage": self.mileage,
            "power": self.power,
            "displacement": self.engine_displacement,
            "fuel_type": self.fuel_type,
            "transmission": self.transmission,
            "city": self.city,
            "postal_code": self.postal_code,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "VehicleSpec":
        return cls(
            listing_id=data["listing_id"],
            category_id=data["category_id"],
            price=data["price"],
            mileage=data.get("mileage"),
            power=data.get("power"),
            engine_displacement=data.get("displacement"),
            fuel_type=data.get("fuel_type"),
            transmission=data.get("transmission"),
            city=data.get("city"),
            postal_code=data.get("postal_code"),
        )


@dataclass
class ParsedDetail:
    """
    Attribute bag produced by a source adapter from one detail page.

    The category fields (make, model, age_years) and price are always
    present; adapters raise ParseIncompleteError instead of returning
    a partial bag.
    """
    make: str
    model: str
    age_years: int
    price: int
    mileage: Optional[int] = None
    power: Optional[int] = None
    engine_displacement: Optional[int] = None
    fuel_type: Optional[str] = None
    transmission: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[int] = None

    def to_category(self) -> VehicleCategory:
        return VehicleCategory(make=self.make, model=self.model, age_years=self.age_years)

    def to_spec(self, listing_id: int, category_id: int) -> VehicleSpec:
        return VehicleSpec(
            listing_id=listing_id,
            category_id=category_id,
            price=self.price,
            mileage=self.mileage,
            power=self.power,
            engine_displacement=self.engine_displacement,
            fuel_type=self.fuel_type,
            transmission=self.transmission,
            city=self.city,
            postal_code=self.postal_code,
        )


@dataclass
class PriceStatistic:
    """Average and median price of a category and its neighbour years."""
    category_id: int
    average: int
    median: int

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "PriceStatistic":
        return cls(
            category_id=data["category_id"],
            average=data["average"],
            median=data["median"],
        )


@dataclass
class WorkItem:
    """Queue entry signalling a freshly extracted spec awaiting alert evaluation."""
    listing_id: int
    in_progress: bool = False
    enqueued_at: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            "listing_id": self.listing_id,
            "in_progress": self.in_progress,
            "enqueued_at": self.enqueued_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "WorkItem":
        return cls(
            listing_id=data["listing_id"],
            in_progress=bool(data.get("in_progress", False)),
            enqueued_at=_parse_timestamp(data.get("enqueued_at")) or datetime.utcnow(),
        )


def _bound(data: dict, key: str) -> Optional[int]:
    # Subscription forms store an unset bound as 0
    return data.get(key) or None


@dataclass
class AlertFilter:
    """
    A subscriber's criteria for being notified of a matching vehicle.

    Every bound is optional; None means the dimension is unconstrained.
    A stored bound of 0 is read as None.
    Owned by the subscription surface, read-only here.
    """
    id: int
    subscriber_id: int
    zipcodes: Optional[list[int]] = None
    age_min: Optional[int] = None
    age_max: Optional[int] = None
    price_min: Optional[int] = None
    price_max: Optional[int] = None
    displacement_min: Optional[int] = None
    displacement_max: Optional[int] = None
    mileage_min: Optional[int] = None
    mileage_max: Optional[int] = None
    power_min: Optional[int] = None
    power_max: Optional[int] = None
    fuel_type: Optional[str] = None
    transmission: Optional[str] = None
    make: Optional[str] = None
    model: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "AlertFilter":
        return cls(
            id=data["id"],
            subscriber_id=data["subscriber_id"],
            zipcodes=list(data["zipcodes"]) if data.get("zipcodes") else None,
            age_min=_bound(data, "age_min"),
            age_max=_bound(data, "age_max"),
            price_min=_bound(data, "price_min"),
            price_max=_bound(data, "price_max"),
            displacement_min=_bound(data, "displacement_min"),
            displacement_max=_bound(data, "displacement_max"),
            mileage_min=_bound(data, "mileage_min"),
            mileage_max=_bound(data, "mileage_max"),
            power_min=_bound(data, "power_min"),
            power_max=_bound(data, "power_max"),
            fuel_type=data.get("fuel_type") or None,
            transmission=data.get("transmission") or None,
            make=data.get("make") or None,
            model=data.get("model") or None,
        )


@dataclass
class VehiclePayload:
    """
    Flattened spec + category + listing link handed to notifiers.

    Built fresh by the dispatcher for each work item; never persisted.
    """
    listing_id: int
    category_id: int
    make: str
    model: str
    age_years: int
    detail_url: str = ""
    price: Optional[int] = None
    mileage: Optional[int] = None
    power: Optional[int] = None
    engine_displacement: Optional[int] = None
    fuel_type: Optional[str] = None
    transmission: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[int] = None

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def build(
        cls,
        spec: VehicleSpec,
        category: VehicleCategory,
        detail_url: str = "",
    ) -> "VehiclePayload":
        return cls(
            listing_id=spec.listing_id,
            category_id=spec.category_id,
            make=category.make,
            model=category.model,
            age_years=category.age_years,
            detail_url=detail_url,
            price=spec.price,
            mileage=spec.mileage,
            power=spec.power,
            engine_displacement=spec.engine_displacement,
            fuel_type=spec.fuel_type,
            transmission=spec.transmission,
            city=spec.city,
            postal_code=spec.postal_code,
        )

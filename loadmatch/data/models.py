"""Domain models for loads, vehicles, matches and lane analytics

Loads, vehicles and lane series are supplied per request. Matches and
anomalies are derived values recomputed on every call.
"""

import math
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from loadmatch.exceptions import ValidationError


class EquipmentType(str, Enum):
    """Trailer / container equipment kind."""

    REEFER = "Reefer"
    FLATBED = "Flatbed"
    DRY_VAN = "Dry Van"
    TANKER = "Tanker"
    CONTAINER = "Container"
    BULK = "Bulk"
    PALLETIZED = "Palletized"


class VehicleClass(str, Enum):
    """Transport mode of a vehicle."""

    TRUCK = "Truck"
    PLANE = "Plane"
    SHIP = "Ship"


class Priority(str, Enum):
    """Load priority."""

    STANDARD = "Standard"
    EXPRESS = "Express"
    URGENT = "Urgent"


class AnomalyType(str, Enum):
    SPIKE = "spike"
    DROP = "drop"
    STABLE = "stable"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


SEVERITY_RANK = {Severity.HIGH: 0, Severity.MEDIUM: 1, Severity.LOW: 2}


def _pick(record: Mapping[str, Any], *keys: str) -> Any:
    """Return the first present, non-empty value among camelCase/snake_case aliases"""
    for key in keys:
        value = record.get(key)
        if value is not None and value != "":
            return value
    return None


def _require_text(value: Any, field_name: str, record_id: Optional[str]) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"missing required field '{field_name}'", record_id)
    return str(value).strip()


def _require_list(value: Any, field_name: str, record_id: Optional[str]) -> None:
    if not isinstance(value, (list, tuple)):
        raise ValidationError(f"{field_name} must be a list, got {type(value).__name__}", record_id)


def _parse_enum(enum_cls, value: Any, field_name: str, record_id: Optional[str]):
    if isinstance(value, enum_cls):
        return value
    if value is None:
        raise ValidationError(f"missing required field '{field_name}'", record_id)
    try:
        return enum_cls(str(value).strip())
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(
            f"invalid {field_name} '{value}' (expected one of: {allowed})", record_id
        ) from None


def _parse_positive_int(value: Any, field_name: str, record_id: Optional[str]) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a positive integer, got {value!r}", record_id)
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be a positive integer, got {value!r}", record_id) from None
    if math.isnan(number) or math.isinf(number) or not number.is_integer():
        raise ValidationError(f"{field_name} must be a positive integer, got {value!r}", record_id)
    if number <= 0:
        raise ValidationError(f"{field_name} must be > 0, got {value!r}", record_id)
    return int(number)


def parse_date(value: Any, field_name: str = "date", record_id: Optional[str] = None) -> date:
    """
    Parse a calendar date

    Accepts date/datetime objects and ISO strings ('2025-11-05' or a full
    ISO timestamp, of which only the date part is used).

    Raises:
        ValidationError: If the value is missing or not a valid calendar date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if value is None or not str(value).strip():
        raise ValidationError(f"missing required field '{field_name}'", record_id)

    text = str(value).strip()
    try:
        if len(text) == 10:
            return date.fromisoformat(text)
        if text.endswith(('Z', 'z')):
            text = text[:-1] + '+00:00'
        return datetime.fromisoformat(text).date()
    except ValueError:
        raise ValidationError(f"{field_name} '{value}' is not a valid calendar date", record_id) from None


@dataclass(frozen=True)
class Load:
    """A freight load waiting for a vehicle."""

    id: str
    origin: str
    destination: str
    equipment: EquipmentType
    weight: int
    pickup_date: date
    priority: Priority = Priority.STANDARD
    special_requirements: Optional[str] = None

    @classmethod
    def from_dict(cls, record: Mapping[str, Any]) -> 'Load':
        """
        Build a Load from a raw wire/file record

        Raises:
            ValidationError: On missing fields, unknown enum values,
                non-positive weight or unparsable pickup date
        """
        if not isinstance(record, Mapping):
            raise ValidationError(f"load record must be a mapping, got {type(record).__name__}")

        record_id = _pick(record, 'id', 'load_id', 'loadId')
        record_id = _require_text(record_id, 'id', None)

        priority = _pick(record, 'priority')
        return cls(
            id=record_id,
            origin=_require_text(_pick(record, 'origin'), 'origin', record_id),
            destination=_require_text(_pick(record, 'destination'), 'destination', record_id),
            equipment=_parse_enum(EquipmentType, _pick(record, 'equipment', 'equipment_type'),
                                  'equipment', record_id),
            weight=_parse_positive_int(_pick(record, 'weight'), 'weight', record_id),
            pickup_date=parse_date(_pick(record, 'pickupDate', 'pickup_date'), 'pickupDate', record_id),
            priority=(Priority.STANDARD if priority is None
                      else _parse_enum(Priority, priority, 'priority', record_id)),
            special_requirements=_pick(record, 'specialRequirements', 'special_requirements'),
        )

    def validate(self) -> 'Load':
        """Re-check invariants of a directly constructed instance"""
        return Load.from_dict(self.to_dict())

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'id': self.id,
            'origin': self.origin,
            'destination': self.destination,
            'equipment': _enum_value(self.equipment),
            'weight': self.weight,
            'pickupDate': _date_text(self.pickup_date),
            'priority': _enum_value(self.priority),
        }
        if self.special_requirements:
            data['specialRequirements'] = self.special_requirements
        return data


@dataclass(frozen=True)
class Vehicle:
    """A vehicle (truck, plane or ship) available for loads."""

    id: str
    location: str
    equipment: EquipmentType
    available_date: date
    vehicle_class: VehicleClass = VehicleClass.TRUCK
    capacity: Optional[int] = None
    notes: Optional[str] = None

    @classmethod
    def from_dict(cls, record: Mapping[str, Any]) -> 'Vehicle':
        """
        Build a Vehicle from a raw wire/file record

        Raises:
            ValidationError: On missing fields, unknown enum values,
                non-positive capacity or unparsable available date
        """
        if not isinstance(record, Mapping):
            raise ValidationError(f"vehicle record must be a mapping, got {type(record).__name__}")

        record_id = _pick(record, 'id', 'truck_id', 'truckId', 'vehicle_id', 'vehicleId')
        record_id = _require_text(record_id, 'id', None)

        capacity = _pick(record, 'capacity')
        vehicle_class = _pick(record, 'vehicleType', 'vehicle_type', 'vehicle_class')
        return cls(
            id=record_id,
            location=_require_text(_pick(record, 'location'), 'location', record_id),
            equipment=_parse_enum(EquipmentType, _pick(record, 'equipment', 'equipment_type'),
                                  'equipment', record_id),
            available_date=parse_date(_pick(record, 'availableDate', 'available_date'),
                                      'availableDate', record_id),
            vehicle_class=(VehicleClass.TRUCK if vehicle_class is None
                           else _parse_enum(VehicleClass, vehicle_class, 'vehicleType', record_id)),
            capacity=None if capacity is None else _parse_positive_int(capacity, 'capacity', record_id),
            notes=_pick(record, 'notes'),
        )

    def validate(self) -> 'Vehicle':
        """Re-check invariants of a directly constructed instance"""
        return Vehicle.from_dict(self.to_dict())

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'id': self.id,
            'location': self.location,
            'equipment': _enum_value(self.equipment),
            'availableDate': _date_text(self.available_date),
            'vehicleType': _enum_value(self.vehicle_class),
        }
        if self.capacity is not None:
            data['capacity'] = self.capacity
        if self.notes:
            data['notes'] = self.notes
        return data


@dataclass(frozen=True)
class Match:
    """A scored load/vehicle pairing."""

    load_id: str
    vehicle_id: str
    match_score: float
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'loadId': self.load_id,
            'truckId': self.vehicle_id,
            'matchScore': self.match_score,
            'reason': self.reason,
        }


@dataclass(frozen=True)
class LaneVolumeSeries:
    """
    Shipment volumes for one origin/destination lane

    Volumes are chronological: the last entry is the current period and
    the one before it the previous period.
    """

    lane: str
    volumes: Tuple[float, ...]
    origin: Optional[str] = None
    destination: Optional[str] = None
    periods: Optional[Tuple[str, ...]] = None

    @classmethod
    def from_dict(cls, record: Mapping[str, Any]) -> 'LaneVolumeSeries':
        """
        Build a series from a raw record

        Accepts either a 'volumes' list or a 'history' list of
        {'week': ..., 'loads': ...} points.

        Raises:
            ValidationError: On a missing lane key, a non-list volumes/history/periods
                field, a history point that is not a mapping, or
                negative/non-numeric volumes
        """
        if not isinstance(record, Mapping):
            raise ValidationError(f"lane record must be a mapping, got {type(record).__name__}")

        origin = _pick(record, 'origin')
        destination = _pick(record, 'destination')
        lane = _pick(record, 'lane')
        if lane is None and origin and destination:
            lane = lane_key(origin, destination)
        lane = _require_text(lane, 'lane', None)

        periods = None
        history = record.get('history')
        if history is not None:
            _require_list(history, 'history', lane)
            for point in history:
                if not isinstance(point, Mapping):
                    raise ValidationError(
                        f"history point must be a mapping, got {type(point).__name__}", lane
                    )
            volumes = [_pick(point, 'loads', 'volume') for point in history]
            periods = tuple(str(_pick(point, 'week', 'period')) for point in history)
        else:
            volumes = record.get('volumes')
            raw_periods = record.get('periods')
            if raw_periods is not None:
                _require_list(raw_periods, 'periods', lane)
                periods = tuple(str(p) for p in raw_periods)

        if volumes is None:
            raise ValidationError("missing required field 'volumes'", lane)
        _require_list(volumes, 'volumes', lane)

        parsed = []
        for value in volumes:
            try:
                number = float(value)
            except (TypeError, ValueError):
                raise ValidationError(f"volume {value!r} is not numeric", lane) from None
            if math.isnan(number) or number < 0:
                raise ValidationError(f"volume {value!r} must be a non-negative number", lane)
            parsed.append(number)

        if periods is not None and len(periods) != len(parsed):
            raise ValidationError(
                f"periods ({len(periods)}) and volumes ({len(parsed)}) differ in length", lane
            )

        return cls(lane=lane, volumes=tuple(parsed), origin=origin,
                   destination=destination, periods=periods)

    @property
    def current(self) -> Optional[float]:
        return self.volumes[-1] if self.volumes else None

    @property
    def previous(self) -> Optional[float]:
        return self.volumes[-2] if len(self.volumes) >= 2 else None


@dataclass(frozen=True)
class InsightAnomaly:
    """Classified volume change on one lane."""

    lane: str
    type: AnomalyType
    severity: Severity
    percent_change: float
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'lane': self.lane,
            'type': self.type.value,
            'severity': self.severity.value,
            'message': self.message,
            'percentChange': self.percent_change,
        }


@dataclass(frozen=True)
class SkippedRecord:
    """A record rejected during batch processing."""

    record_id: Optional[str]
    kind: str
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {'id': self.record_id, 'kind': self.kind, 'reason': self.reason}


@dataclass
class OperationalCounters:
    """
    Operational counters supplied by the caller

    The engine never computes these; they are combined with match and
    anomaly results when snapshots are built.
    """

    active_shipments: int = 0
    previous_shipments: Optional[int] = None
    quote_requests: int = 0
    avg_response_time_minutes: float = 0.0
    available_vehicles: int = 0
    utilization_percent: float = 0.0
    uptime_percent: float = 100.0
    avg_freight_cost: float = 0.0
    previous_freight_cost: float = 0.0
    processing_time_minutes: float = 0.0
    previous_processing_time_minutes: float = 0.0
    ai_roi_percent: float = 0.0
    previous_ai_roi_percent: float = 0.0
    previous_match_accuracy: float = 0.0
    total_loads: Optional[int] = None
    forecast_pairs: List[Tuple[float, float]] = field(default_factory=list)
    subsystems: List[Dict[str, Any]] = field(default_factory=list)
    system_status: List[Dict[str, Any]] = field(default_factory=list)
    recent_activity: List[Dict[str, Any]] = field(default_factory=list)

    _ALIASES = {
        'activeShipments': 'active_shipments',
        'previousShipments': 'previous_shipments',
        'quoteRequests': 'quote_requests',
        'avgResponseTimeMinutes': 'avg_response_time_minutes',
        'availableVehicles': 'available_vehicles',
        'utilizationPercent': 'utilization_percent',
        'uptimePercent': 'uptime_percent',
        'avgFreightCost': 'avg_freight_cost',
        'previousFreightCost': 'previous_freight_cost',
        'processingTimeMinutes': 'processing_time_minutes',
        'previousProcessingTimeMinutes': 'previous_processing_time_minutes',
        'aiRoiPercent': 'ai_roi_percent',
        'previousAiRoiPercent': 'previous_ai_roi_percent',
        'previousMatchAccuracy': 'previous_match_accuracy',
        'totalLoads': 'total_loads',
        'forecastPairs': 'forecast_pairs',
        'systemStatus': 'system_status',
        'recentActivity': 'recent_activity',
    }

    @classmethod
    def from_dict(cls, record: Optional[Mapping[str, Any]]) -> 'OperationalCounters':
        """Build counters from a camelCase or snake_case mapping, ignoring unknown keys"""
        if record is None:
            return cls()
        known = set(cls.__dataclass_fields__)
        values = {}
        for key, value in record.items():
            name = cls._ALIASES.get(key, key)
            if name in known and not name.startswith('_'):
                values[name] = value
        if 'forecast_pairs' in values:
            values['forecast_pairs'] = [_as_pair(p) for p in values['forecast_pairs']]
        return cls(**values)


def _as_pair(value: Any) -> Tuple[float, float]:
    if isinstance(value, Mapping):
        return float(value['actual']), float(value['predicted'])
    actual, predicted = value
    return float(actual), float(predicted)


def lane_key(origin: str, destination: str) -> str:
    """Canonical lane label, e.g. 'Dallas, TX → Atlanta, GA'"""
    return f"{origin} → {destination}"


def split_lane(lane: str) -> Tuple[str, str]:
    """Best-effort inverse of lane_key(); returns ('', '') parts when unknown"""
    for separator in ('→', '->'):
        if separator in lane:
            origin, destination = lane.split(separator, 1)
            return origin.strip(), destination.strip()
    return lane, ''


def _enum_value(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


def _date_text(value: Any) -> Any:
    return value.isoformat() if isinstance(value, date) else value


def parse_records(records: Sequence[Any], parser, kind: str) -> Tuple[list, List[SkippedRecord]]:
    """
    Parse a batch of raw records, skipping invalid ones

    Args:
        records: Raw mappings or already built model instances
        parser: Model class with from_dict() (and validate() for instances)
        kind: Record kind for skip reports ('load', 'vehicle', 'series')

    Returns:
        Tuple of (valid instances, skipped records)
    """
    valid = []
    skipped = []
    seen = set()

    for record in records or []:
        try:
            if isinstance(record, parser):
                item = record.validate() if hasattr(record, 'validate') else record
            else:
                item = parser.from_dict(record)
        except ValidationError as e:
            record_id = e.record_id
            if record_id is None and isinstance(record, Mapping):
                record_id = record.get('id')
            skipped.append(SkippedRecord(record_id=record_id, kind=kind, reason=e.message))
            continue

        item_id = getattr(item, 'id', None) or getattr(item, 'lane', None)
        if item_id in seen:
            skipped.append(SkippedRecord(record_id=item_id, kind=kind,
                                         reason=f"duplicate {kind} identifier"))
            continue
        seen.add(item_id)
        valid.append(item)

    return valid, skipped

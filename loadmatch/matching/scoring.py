"""Soft scoring for load/vehicle pairs

Each sub-score lies in [0, 1]. The pair score is the weighted sum of the
location, date and capacity sub-scores plus an optional priority boost
(credited by the engine to the best candidate of a load only).
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from loadmatch.data.models import EquipmentType, Load, Priority, Vehicle, VehicleClass
from loadmatch.exceptions import ConfigurationError
from loadmatch.utils.config import ConfigLoader
from loadmatch.utils.numeric import clamp


WEIGHT_TOLERANCE = 1e-6

PRIORITY_CREDIT = {
    Priority.STANDARD: 0.0,
    Priority.EXPRESS: 0.5,
    Priority.URGENT: 1.0,
}

# Equipment each transport mode can carry
CLASS_EQUIPMENT = {
    VehicleClass.TRUCK: frozenset({EquipmentType.REEFER, EquipmentType.FLATBED,
                                   EquipmentType.DRY_VAN, EquipmentType.TANKER}),
    VehicleClass.PLANE: frozenset({EquipmentType.PALLETIZED, EquipmentType.CONTAINER}),
    VehicleClass.SHIP: frozenset({EquipmentType.CONTAINER, EquipmentType.BULK}),
}


@dataclass(frozen=True)
class MatchConfig:
    """
    Tunable matching constants

    Attributes:
        location_weight: Weight of location proximity
        date_weight: Weight of date fit
        capacity_weight: Weight of capacity headroom
        priority_weight: Weight of the priority boost
        scale_factor_miles: Distance at which the location score halves
        lookahead_days: Day gap at which the date score reaches 0
        utilization_low: Lower bound of the ideal utilization band
        utilization_high: Upper bound of the ideal utilization band
        neutral_location_score: Location score when distance is unknown
        neutral_capacity_score: Capacity score when capacity is unknown
        resolver_timeout_seconds: Deadline shared by all resolver lookups of a batch
        resolver_workers: Thread pool size for resolver lookups
        enforce_vehicle_class: Filter out vehicles whose class cannot carry
            the load's equipment
    """

    location_weight: float = 0.4
    date_weight: float = 0.3
    capacity_weight: float = 0.2
    priority_weight: float = 0.1
    scale_factor_miles: float = 250.0
    lookahead_days: int = 7
    utilization_low: float = 0.7
    utilization_high: float = 0.9
    neutral_location_score: float = 0.5
    neutral_capacity_score: float = 0.5
    resolver_timeout_seconds: float = 2.0
    resolver_workers: int = 8
    enforce_vehicle_class: bool = False

    def __post_init__(self):
        self.validate()

    def validate(self):
        """
        Check weights and thresholds

        Raises:
            ConfigurationError: If any constant is out of range
        """
        weights = self.weights
        for name, value in weights.items():
            if value < 0:
                raise ConfigurationError(f"matching weight '{name}' must be >= 0, got {value}")

        total = sum(weights.values())
        if abs(total - 1.0) > WEIGHT_TOLERANCE:
            raise ConfigurationError(f"matching weights must sum to 1.0, got {total:.6f}")

        if self.scale_factor_miles <= 0:
            raise ConfigurationError("scale_factor_miles must be > 0")
        if self.lookahead_days <= 0:
            raise ConfigurationError("lookahead_days must be > 0")
        if not 0 < self.utilization_low <= self.utilization_high < 1:
            raise ConfigurationError(
                "utilization band must satisfy 0 < low <= high < 1, "
                f"got [{self.utilization_low}, {self.utilization_high}]"
            )
        for name in ('neutral_location_score', 'neutral_capacity_score'):
            value = getattr(self, name)
            if not 0 <= value <= 1:
                raise ConfigurationError(f"{name} must be within [0, 1], got {value}")
        if self.resolver_timeout_seconds <= 0:
            raise ConfigurationError("resolver_timeout_seconds must be > 0")
        if self.resolver_workers < 1:
            raise ConfigurationError("resolver_workers must be >= 1")

    @property
    def weights(self) -> Dict[str, float]:
        return {
            'location': self.location_weight,
            'date': self.date_weight,
            'capacity': self.capacity_weight,
            'priority': self.priority_weight,
        }

    @classmethod
    def from_config(cls, config: Optional[ConfigLoader]) -> 'MatchConfig':
        """
        Build from the 'matching' section of a configuration file

        Missing keys fall back to the class defaults.
        """
        if config is None:
            return cls()

        defaults = cls.__dataclass_fields__
        band = config.get('matching.utilization_band', None) or [
            defaults['utilization_low'].default, defaults['utilization_high'].default
        ]
        if len(band) != 2:
            raise ConfigurationError(f"matching.utilization_band must have two values, got {band}")

        def _get(key, name):
            return config.get(key, defaults[name].default)

        try:
            return cls(
                location_weight=float(_get('matching.weights.location', 'location_weight')),
                date_weight=float(_get('matching.weights.date', 'date_weight')),
                capacity_weight=float(_get('matching.weights.capacity', 'capacity_weight')),
                priority_weight=float(_get('matching.weights.priority', 'priority_weight')),
                scale_factor_miles=float(_get('matching.scale_factor_miles', 'scale_factor_miles')),
                lookahead_days=int(_get('matching.lookahead_days', 'lookahead_days')),
                utilization_low=float(band[0]),
                utilization_high=float(band[1]),
                neutral_location_score=float(_get('matching.neutral_location_score',
                                                  'neutral_location_score')),
                neutral_capacity_score=float(_get('matching.neutral_capacity_score',
                                                  'neutral_capacity_score')),
                resolver_timeout_seconds=float(_get('matching.resolver.timeout_seconds',
                                                    'resolver_timeout_seconds')),
                resolver_workers=int(_get('matching.resolver.workers', 'resolver_workers')),
                enforce_vehicle_class=bool(_get('matching.enforce_vehicle_class',
                                                'enforce_vehicle_class')),
            )
        except (TypeError, ValueError) as e:
            if isinstance(e, ConfigurationError):
                raise
            raise ConfigurationError(f"invalid matching configuration: {e}") from e


def passes_hard_filters(
    load: Load,
    vehicle: Vehicle,
    config: Optional[MatchConfig] = None
) -> Tuple[bool, Optional[str]]:
    """
    Check the disqualifying constraints for a pair

    The vehicle-class check only runs when config.enforce_vehicle_class is set.

    Returns:
        (True, None) if the pair may be scored, else (False, reason)
    """
    if load.equipment != vehicle.equipment:
        return False, "equipment mismatch"
    if config is not None and config.enforce_vehicle_class:
        if load.equipment not in CLASS_EQUIPMENT[vehicle.vehicle_class]:
            return False, f"{vehicle.vehicle_class.value} cannot carry {load.equipment.value}"
    if vehicle.capacity is not None and load.weight > vehicle.capacity:
        return False, "over capacity"
    if vehicle.available_date > load.pickup_date:
        return False, "available after pickup"
    return True, None


def location_score(distance_miles: Optional[float], config: MatchConfig) -> float:
    """Inverse-distance score: 1 / (1 + d / scale); neutral when distance is unknown"""
    if distance_miles is None:
        return config.neutral_location_score
    return 1.0 / (1.0 + max(distance_miles, 0.0) / config.scale_factor_miles)


def date_score(gap_days: int, config: MatchConfig) -> float:
    """1.0 for same-day availability, linear decay to 0 at the lookahead window"""
    if gap_days < 0:
        return 0.0
    return max(0.0, 1.0 - gap_days / config.lookahead_days)


def capacity_score(weight: int, capacity: Optional[int], config: MatchConfig) -> Tuple[float, Optional[float]]:
    """
    Score capacity headroom

    Returns:
        (score, utilization); utilization is None when capacity is unknown
    """
    if capacity is None:
        return config.neutral_capacity_score, None

    utilization = weight / capacity
    low, high = config.utilization_low, config.utilization_high

    if utilization < low:
        score = utilization / low
    elif utilization <= high:
        score = 1.0
    else:
        score = max(0.0, (1.0 - utilization) / (1.0 - high))

    return score, utilization


@dataclass(frozen=True)
class PairScore:
    """Intermediate score breakdown for one compatible pair."""

    load: Load
    vehicle: Vehicle
    distance_miles: Optional[float]
    gap_days: int
    utilization: Optional[float]
    location: float
    date: float
    capacity: float
    priority: float = 0.0

    def contributions(self, config: MatchConfig) -> Dict[str, float]:
        return {
            'location': config.location_weight * self.location,
            'date': config.date_weight * self.date,
            'capacity': config.capacity_weight * self.capacity,
            'priority': config.priority_weight * self.priority,
        }

    def base_total(self, config: MatchConfig) -> float:
        parts = self.contributions(config)
        return parts['location'] + parts['date'] + parts['capacity']

    def total(self, config: MatchConfig) -> float:
        return clamp(sum(self.contributions(config).values()), 0.0, 1.0)


def score_pair(load: Load, vehicle: Vehicle, distance_miles: Optional[float],
               config: MatchConfig) -> PairScore:
    """Compute the sub-scores for a pair that passed the hard filters"""
    gap_days = (load.pickup_date - vehicle.available_date).days
    cap_score, utilization = capacity_score(load.weight, vehicle.capacity, config)

    return PairScore(
        load=load,
        vehicle=vehicle,
        distance_miles=distance_miles,
        gap_days=gap_days,
        utilization=utilization,
        location=location_score(distance_miles, config),
        date=date_score(gap_days, config),
        capacity=cap_score,
    )


def _describe(factor: str, pair: PairScore, config: MatchConfig) -> str:
    if factor == 'location':
        if pair.distance_miles is None:
            return "location proximity (distance unknown, neutral)"
        return (f"location proximity ({pair.distance_miles:,.0f} mi from origin, "
                f"scale {config.scale_factor_miles:g} mi)")
    if factor == 'date':
        if pair.gap_days == 0:
            return "date fit (available same day)"
        return f"date fit (available {pair.gap_days}d before pickup, window {config.lookahead_days}d)"
    if factor == 'capacity':
        if pair.utilization is None:
            return "capacity headroom (capacity unknown, neutral)"
        return f"capacity headroom ({pair.utilization:.0%} utilization)"
    return f"priority boost ({pair.load.priority.value}, best candidate)"


def build_reason(pair: PairScore, config: MatchConfig) -> str:
    """
    Human-readable explanation listing factors by contribution

    Example:
        'Reefer match; dominant factors: location proximity (31 mi from
        origin, scale 250 mi) +0.36, date fit (available same day) +0.30, ...'
    """
    parts = pair.contributions(config)
    ranked = sorted(
        ((name, value) for name, value in parts.items() if value > 0),
        key=lambda item: (-item[1], item[0])
    )

    factors: List[str] = [f"{_describe(name, pair, config)} +{value:.2f}" for name, value in ranked]
    summary = "; ".join([f"{pair.load.equipment.value} match"] +
                        ([f"dominant factors: {', '.join(factors)}"] if factors else []))
    return summary

"""Load/vehicle match engine

Pairs every valid load with every compatible vehicle, scores the pair
and returns the full ranked candidate set per load.
"""

import concurrent.futures
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, List, Optional, Sequence

from loadmatch.data.models import Load, Match, SkippedRecord, Vehicle, parse_records
from loadmatch.exceptions import DependencyError
from loadmatch.geo.resolver import CityTableResolver, LocationKey, LocationResolver
from loadmatch.matching.scoring import (
    PRIORITY_CREDIT,
    MatchConfig,
    PairScore,
    build_reason,
    passes_hard_filters,
    score_pair,
)
from loadmatch.utils.logging_config import get_logger


logger = get_logger(__name__)


SCORE_DECIMALS = 4


@dataclass
class MatchResult:
    """Matches plus the records that were rejected while parsing."""

    matches: List[Match] = field(default_factory=list)
    skipped: List[SkippedRecord] = field(default_factory=list)
    loads_count: int = 0
    vehicles_count: int = 0

    def loads_with_match(self, min_score: float) -> int:
        return len({m.load_id for m in self.matches if m.match_score >= min_score})


class MatchEngine:
    """
    Score and rank load/vehicle pairings

    Steps:
    1. Validate loads and vehicles (invalid records are skipped and reported)
    2. Resolve each distinct location once (thread pool, shared deadline)
    3. Apply hard filters (equipment, capacity, availability date)
    4. Score compatible pairs and credit the priority boost
    5. Rank per load: descending score, then ascending vehicle id
    """

    def __init__(
        self,
        resolver: Optional[LocationResolver] = None,
        config: Optional[MatchConfig] = None
    ):
        """
        Initialize match engine

        Args:
            resolver: Location resolver (default: built-in city table)
            config: Matching constants (default: MatchConfig())
        """
        self.resolver = resolver if resolver is not None else CityTableResolver()
        self.config = config if config is not None else MatchConfig()

    def compute_matches(
        self,
        loads: Sequence[Any],
        vehicles: Sequence[Any]
    ) -> MatchResult:
        """
        Compute ranked matches for a batch

        Args:
            loads: Load instances or raw load mappings
            vehicles: Vehicle instances or raw vehicle mappings

        Returns:
            MatchResult with ranked matches and skipped records
        """
        valid_loads, skipped_loads = parse_records(loads, Load, 'load')
        valid_vehicles, skipped_vehicles = parse_records(vehicles, Vehicle, 'vehicle')
        skipped = skipped_loads + skipped_vehicles

        for record in skipped:
            logger.warning(f"Skipping {record.kind} '{record.record_id}': {record.reason}")

        result = MatchResult(
            skipped=skipped,
            loads_count=len(valid_loads),
            vehicles_count=len(valid_vehicles)
        )

        if not valid_loads or not valid_vehicles:
            logger.info(
                f"Nothing to match ({len(valid_loads)} loads, {len(valid_vehicles)} vehicles)"
            )
            return result

        logger.info(f"Matching {len(valid_loads)} loads against {len(valid_vehicles)} vehicles")

        locations = {load.origin for load in valid_loads} | {v.location for v in valid_vehicles}
        resolved = self._resolve_all(locations)

        for load in valid_loads:
            result.matches.extend(self._rank_load(load, valid_vehicles, resolved))

        logger.info(
            f"Generated {len(result.matches)} matches for "
            f"{len({m.load_id for m in result.matches})}/{len(valid_loads)} loads"
        )

        return result

    def _rank_load(
        self,
        load: Load,
        vehicles: Iterable[Vehicle],
        resolved: Dict[str, Optional[LocationKey]]
    ) -> List[Match]:
        """Score all compatible vehicles for one load and return them ranked"""
        candidates: List[PairScore] = []

        for vehicle in vehicles:
            ok, why = passes_hard_filters(load, vehicle, self.config)
            if not ok:
                logger.debug(f"  {load.id}/{vehicle.id} filtered: {why}")
                continue

            distance = self._distance(resolved.get(load.origin), resolved.get(vehicle.location))
            candidates.append(score_pair(load, vehicle, distance, self.config))

        if not candidates:
            return []

        candidates.sort(key=lambda pair: (-pair.base_total(self.config), pair.vehicle.id))

        credit = PRIORITY_CREDIT[load.priority]
        if credit > 0:
            best = candidates[0]
            candidates[0] = replace(best, priority=credit)

        matches = [
            Match(
                load_id=load.id,
                vehicle_id=pair.vehicle.id,
                match_score=round(pair.total(self.config), SCORE_DECIMALS),
                reason=build_reason(pair, self.config)
            )
            for pair in candidates
        ]
        matches.sort(key=lambda m: (-m.match_score, m.vehicle_id))

        return matches

    def _distance(self, a: Optional[LocationKey], b: Optional[LocationKey]) -> Optional[float]:
        if a is None or b is None:
            return None
        try:
            return self.resolver.distance(a, b)
        except Exception as e:
            logger.warning(f"Distance computation failed ({e}); using neutral location score")
            return None

    def _resolve_all(self, locations: Iterable[str]) -> Dict[str, Optional[LocationKey]]:
        """
        Resolve distinct location texts concurrently

        All lookups share one deadline of resolver_timeout_seconds; failures
        and lookups still pending at the deadline map to None ("distance unknown").
        """
        locations = sorted(locations)
        resolved: Dict[str, Optional[LocationKey]] = {}
        timeout = self.config.resolver_timeout_seconds

        executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=min(self.config.resolver_workers, max(1, len(locations)))
        )
        try:
            futures = {text: executor.submit(self.resolver.resolve, text) for text in locations}
            _, pending = concurrent.futures.wait(futures.values(), timeout=timeout)
            for text, future in futures.items():
                if future in pending:
                    future.cancel()
                    self._log_degraded(DependencyError(f"resolver timed out after {timeout}s"), text)
                    resolved[text] = None
                    continue
                try:
                    resolved[text] = future.result()
                except Exception as e:
                    self._log_degraded(DependencyError(str(e)), text)
                    resolved[text] = None
        finally:
            # Do not block on lookups that already timed out
            executor.shutdown(wait=False, cancel_futures=True)

        unresolved = [text for text, key in resolved.items() if key is None]
        if unresolved:
            logger.info(f"{len(unresolved)} location(s) unresolved: {unresolved}")

        return resolved

    @staticmethod
    def _log_degraded(error: DependencyError, text: str):
        logger.warning(f"Resolver failed for '{text}': {error}; using neutral location score")

    def __repr__(self) -> str:
        return f"MatchEngine(resolver={self.resolver!r})"


def assign_exclusive(matches: Sequence[Match], min_score: float = 0.0) -> List[Match]:
    """
    Greedy one-to-one assignment over ranked candidates

    Walks matches by descending score (ties: load id, then vehicle id) and
    keeps a pair only if neither its load nor its vehicle is already taken.
    Greedy, not optimal: a globally better total may exist.

    Args:
        matches: Candidate matches (e.g. MatchResult.matches)
        min_score: Ignore candidates scoring below this value

    Returns:
        Assigned matches in the same order they were accepted
    """
    assigned: List[Match] = []
    used_loads = set()
    used_vehicles = set()

    for match in sorted(matches, key=lambda m: (-m.match_score, m.load_id, m.vehicle_id)):
        if match.match_score < min_score:
            continue
        if match.load_id in used_loads or match.vehicle_id in used_vehicles:
            continue
        assigned.append(match)
        used_loads.add(match.load_id)
        used_vehicles.add(match.vehicle_id)

    logger.debug(f"Exclusive assignment kept {len(assigned)}/{len(matches)} candidates")

    return assigned

"""Nearest-available-responder selection.

Pure functions over snapshots: no database access, no clock. The dispatch
service feeds in the incident point and the available responders and acts
on the returned decision.
"""

import math
from dataclasses import dataclass
from typing import Iterable

from responder_dispatch.geo import GeoPoint, haversine_km, parse_point

NO_RESPONDERS_REASON = "No available responders for emergency"
NO_LOCATION_REASON = "No responders with valid location data"


@dataclass(frozen=True)
class Candidate:
    """Snapshot of an available responder."""

    id: str
    name: str
    coordinates: str | None


@dataclass(frozen=True)
class RankedCandidate:
    candidate: Candidate
    distance_km: float


@dataclass(frozen=True)
class EscalationDecision:
    level: str
    reason: str


@dataclass(frozen=True)
class EscalationPolicy:
    """Severity used for each escalation reason."""

    no_responders_level: str = "critical"
    no_location_level: str = "elevated"


def measure(origin: GeoPoint, candidate: Candidate) -> float:
    """Distance to a candidate, or +inf when its position is missing or malformed."""
    point = parse_point(candidate.coordinates)
    if point is None:
        return math.inf
    return haversine_km(origin, point)


def rank_candidates(origin: GeoPoint, candidates: Iterable[Candidate]) -> list[RankedCandidate]:
    """
    Order candidates nearest first.

    Candidates without a usable position are left out. Equal distances are
    ordered by responder id so repeated runs pick the same unit.
    """
    ranked = [RankedCandidate(c, measure(origin, c)) for c in candidates]
    ranked = [r for r in ranked if not math.isinf(r.distance_km)]
    ranked.sort(key=lambda r: (r.distance_km, r.candidate.id))
    return ranked


def select(
    origin: GeoPoint,
    candidates: list[Candidate],
    policy: EscalationPolicy | None = None,
) -> list[RankedCandidate] | EscalationDecision:
    """
    Rank candidates for an incident, or decide to escalate.

    Returns the non-empty ranked list (first entry is the pick), or an
    EscalationDecision when there is nobody to send.
    """
    policy = policy or EscalationPolicy()

    if not candidates:
        return EscalationDecision(level=policy.no_responders_level, reason=NO_RESPONDERS_REASON)

    ranked = rank_candidates(origin, candidates)
    if not ranked:
        return EscalationDecision(level=policy.no_location_level, reason=NO_LOCATION_REASON)

    return ranked


def assignment_note(distance_km: float) -> str:
    return f"Auto-assigned. Distance: {distance_km:.2f}km"

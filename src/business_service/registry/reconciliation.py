from __future__ import annotations

"""Merge duplicate node observations into one canonical record per public key."""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Union

from business_service.registry.models import CanonicalRecord, LastSeen, RawObservation
from project_utility.clock import freshness_key

__all__ = ["reconcile_observations"]

Observation = Union[RawObservation, CanonicalRecord]


@dataclass(slots=True)
class _Accumulator:
    identity: str
    address: str
    status: str
    last_seen: LastSeen
    telemetry: Mapping[str, Any]
    addresses: List[str] = field(default_factory=list)

    @classmethod
    def start(cls, observation: Observation) -> "_Accumulator":
        accumulator = cls(
            identity=observation.identity,
            address=observation.address,
            status=observation.status,
            last_seen=observation.last_seen,
            telemetry=observation.telemetry,
        )
        for address in _observed_addresses(observation):
            accumulator.add_address(address)
        return accumulator

    def add_address(self, address: str) -> None:
        if address and address not in self.addresses:
            self.addresses.append(address)

    def absorb(self, observation: Observation) -> None:
        for address in _observed_addresses(observation):
            self.add_address(address)
        # strictly newer only: ties keep the earlier observation
        if freshness_key(observation.last_seen) > freshness_key(self.last_seen):
            self.status = observation.status
            self.last_seen = observation.last_seen

    def freeze(self) -> CanonicalRecord:
        return CanonicalRecord(
            identity=self.identity,
            status=self.status,
            address=self.address,
            addresses=tuple(self.addresses),
            last_seen=self.last_seen,
            telemetry=self.telemetry,
        )


def _observed_addresses(observation: Observation) -> Iterable[str]:
    if isinstance(observation, CanonicalRecord):
        return observation.addresses or (observation.address.strip(),)
    return (observation.address.strip(),)


def reconcile_observations(observations: Iterable[Observation]) -> List[CanonicalRecord]:
    """
    Collapse observations sharing an identity, in order of first appearance.

    Every distinct non-empty address is kept in arrival order. Status and `last_seen` follow the
    first observation carrying a strictly newer timestamp; every other field stays as the first
    observation for that identity reported it. Canonical records may be fed back in: their full
    address list is honoured, so reconciling a reconciled sequence returns an equal sequence.
    """

    grouped: Dict[str, _Accumulator] = {}
    for observation in observations:
        existing = grouped.get(observation.identity)
        if existing is None:
            grouped[observation.identity] = _Accumulator.start(observation)
        else:
            existing.absorb(observation)
    return [accumulator.freeze() for accumulator in grouped.values()]

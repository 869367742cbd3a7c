from __future__ import annotations

from business_service.registry.models import CanonicalRecord, RawObservation
from business_service.registry.reconciliation import reconcile_observations


def _obs(identity: str, address: str = "", status: str = "online", last_seen=None, **telemetry) -> RawObservation:
    return RawObservation(identity=identity, address=address, status=status, last_seen=last_seen, telemetry=telemetry)


def test_duplicate_with_older_timestamp_keeps_first_status() -> None:
    records = reconcile_observations(
        [
            _obs("A", "1.1.1.1", "online", 100),
            _obs("A", "2.2.2.2", "offline", 50),
        ]
    )

    assert len(records) == 1
    record = records[0]
    assert record.identity == "A"
    assert record.addresses == ("1.1.1.1", "2.2.2.2")
    assert record.status == "online"
    assert record.last_seen == 100


def test_output_has_one_record_per_identity_in_first_seen_order() -> None:
    records = reconcile_observations(
        [
            _obs("B", "10.0.0.1"),
            _obs("A", "10.0.0.2"),
            _obs("B", "10.0.0.3"),
            _obs("C"),
            _obs("A", "10.0.0.2"),
        ]
    )

    assert [record.identity for record in records] == ["B", "A", "C"]


def test_addresses_are_distinct_non_empty_and_in_arrival_order() -> None:
    records = reconcile_observations(
        [
            _obs("A", "", last_seen=1),
            _obs("A", "3.3.3.3", last_seen=5),
            _obs("A", "   ", last_seen=2),
            _obs("A", "1.1.1.1", last_seen=3),
            _obs("A", "3.3.3.3", last_seen=9),
        ]
    )

    assert records[0].addresses == ("3.3.3.3", "1.1.1.1")
    assert records[0].address == ""


def test_strictly_newer_observation_wins_status_and_timestamp() -> None:
    records = reconcile_observations(
        [
            _obs("A", "1.1.1.1", "syncing", 10),
            _obs("A", "2.2.2.2", "online", 20),
        ]
    )

    assert records[0].status == "online"
    assert records[0].last_seen == 20


def test_timestamp_tie_keeps_earlier_observation() -> None:
    records = reconcile_observations(
        [
            _obs("A", "1.1.1.1", "online", 42),
            _obs("A", "2.2.2.2", "delinquent", 42),
        ]
    )

    assert records[0].status == "online"


def test_missing_timestamp_never_wins() -> None:
    records = reconcile_observations(
        [
            _obs("A", "1.1.1.1", "warning", None),
            _obs("A", "2.2.2.2", "offline", None),
            _obs("B", "3.3.3.3", "online", 0),
            _obs("B", "4.4.4.4", "offline", None),
        ]
    )

    assert records[0].status == "warning"
    assert records[0].last_seen is None
    assert records[1].status == "online"
    assert records[1].last_seen == 0


def test_missing_first_timestamp_loses_to_any_present_timestamp() -> None:
    records = reconcile_observations(
        [
            _obs("A", "1.1.1.1", "inactive", None),
            _obs("A", "1.1.1.1", "active", 1),
        ]
    )

    assert records[0].status == "active"
    assert records[0].last_seen == 1


def test_iso_and_numeric_timestamps_compare_as_instants() -> None:
    records = reconcile_observations(
        [
            _obs("A", "1.1.1.1", "offline", "2024-01-01T00:00:00Z"),
            _obs("A", "1.1.1.1", "online", 1_800_000_000_000),
            _obs("A", "1.1.1.1", "syncing", "2020-06-01T12:00:00+00:00"),
        ]
    )

    assert records[0].status == "online"
    assert records[0].last_seen == 1_800_000_000_000



def test_millisecond_epochs_resolve_freshness() -> None:
    records = reconcile_observations(
        [
            _obs("A", "1.1.1.1", "offline", 1_700_000_000_000),
            _obs("A", "2.2.2.2", "online", 1_700_000_060_000),
            _obs("B", "3.3.3.3", "offline", "2020-01-01T00:00:00Z"),
            _obs("B", "3.3.3.3", "online", 1_700_000_000_000),
        ]
    )

    assert [record.status for record in records] == ["online", "online"]
    assert records[0].last_seen == 1_700_000_060_000
    assert records[1].last_seen == 1_700_000_000_000

def test_passthrough_fields_come_from_first_observation() -> None:
    records = reconcile_observations(
        [
            _obs("A", "1.1.1.1", "offline", 10, credits=5, latency_ms=80.0),
            _obs("A", "2.2.2.2", "online", 99, credits=900, latency_ms=12.0, version="1.2"),
        ]
    )

    record = records[0]
    assert record.status == "online"
    assert dict(record.telemetry) == {"credits": 5, "latency_ms": 80.0}
    assert record.address == "1.1.1.1"


def test_reconciling_reconciled_output_is_a_fixed_point() -> None:
    first = reconcile_observations(
        [
            _obs("A", "1.1.1.1", "online", 1, credits=3),
            _obs("A", "2.2.2.2", "offline", 2),
            _obs("B", "", "syncing"),
        ]
    )

    assert reconcile_observations(first) == first


def test_single_observation_per_identity_passes_through_unchanged() -> None:
    records = reconcile_observations([_obs("A", "1.1.1.1", "online", 7, credits=1)])

    assert records == [
        CanonicalRecord(
            identity="A",
            status="online",
            address="1.1.1.1",
            addresses=("1.1.1.1",),
            last_seen=7,
            telemetry={"credits": 1},
        )
    ]


def test_empty_input_yields_empty_output() -> None:
    assert reconcile_observations([]) == []


def test_input_observations_are_not_mutated() -> None:
    observations = [_obs("A", "1.1.1.1", "online", 1), _obs("A", "2.2.2.2", "offline", 2)]

    reconcile_observations(observations)

    assert observations[0].status == "online"
    assert observations[0].address == "1.1.1.1"

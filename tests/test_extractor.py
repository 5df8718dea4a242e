# tests/test_extractor.py

import pytest

from migrator.core.errors import TransportError
from migrator.database.repository import index_name_for
from migrator.pipeline.extractor import Extractor, parse_timestamp, split_entry
from migrator.types import DETAILS, PARENTS, REPLAY_CHECKPOINTS


def make_extractor(ledger, repository, methods, page_size=100):
    return Extractor(ledger, repository, methods, page_size=page_size)


def test_snapshot_of_parents_and_details(scenario_ledger, repository, methods):
    stats = make_extractor(scenario_ledger, repository, methods).run()

    assert (stats.parents, stats.details) == (2, 3)
    assert [p["id"] for p in repository.find_sorted(PARENTS)] == [5, 6]

    details = repository.find_sorted(DETAILS)
    assert [(d["owner"], d["parent_id"], d["created_at"]) for d in details] == [
        ("A", 5, 300), ("B", 5, 100), ("A", 6, 200),
    ]
    assert all(d["canonical_id"] is None for d in details)


def test_listing_and_detail_calls(scenario_ledger, repository, methods):
    make_extractor(scenario_ledger, repository, methods).run()

    reads = [(kind, method, args) for kind, method, args in scenario_ledger.calls]
    assert reads[0] == ("read_page", methods.list_parents, {"from_index": 0, "limit": 100})
    assert reads[1:] == [
        ("view", methods.list_details, {"id": 5}),
        ("view", methods.list_details, {"id": 6}),
    ]


def test_parent_paging_stops_on_short_page(fake_ledger_factory, repository, methods):
    parents = [(i, {}) for i in range(67)]
    ledger = fake_ledger_factory(parents=parents)

    stats = make_extractor(ledger, repository, methods, page_size=20).run()

    page_reads = [args for kind, _, args in ledger.calls if kind == "read_page"]
    assert [a["from_index"] for a in page_reads] == [0, 20, 40, 60]
    assert stats.parents == 67


def test_rerun_replaces_previous_snapshot(scenario_ledger, repository, methods):
    extractor = make_extractor(scenario_ledger, repository, methods)
    extractor.run()
    extractor.run()

    assert repository.count(PARENTS) == 2
    assert repository.count(DETAILS) == 3


def test_extract_clears_replay_checkpoints(scenario_ledger, repository, methods):
    repository.ensure_collection(REPLAY_CHECKPOINTS)
    repository.upsert(REPLAY_CHECKPOINTS, {"phase": "load_details"},
                      {"next_offset": 4, "batches": 2, "completed": False})

    make_extractor(scenario_ledger, repository, methods).run()

    assert repository.count(REPLAY_CHECKPOINTS) == 0


def test_parent_id_falls_back_to_listing_parent(fake_ledger_factory, repository, methods):
    ledger = fake_ledger_factory(
        parents=[(9, {})],
        details={9: [("carol", {"created_at": "1700000000"})]},
    )

    make_extractor(ledger, repository, methods).run()

    detail = repository.find_one(DETAILS, {"owner": "carol"})
    assert detail["parent_id"] == 9
    assert detail["created_at"] == 1700000000


def test_detail_read_failure_aborts_with_position(scenario_ledger, repository, methods):
    scenario_ledger.fail_on = {methods.list_details: 2}

    with pytest.raises(TransportError) as excinfo:
        make_extractor(scenario_ledger, repository, methods).run()

    assert excinfo.value.context["stage"] == "extract"
    assert excinfo.value.context["parent_id"] == 6
    assert excinfo.value.method == methods.list_details


def test_listing_failure_reports_page(fake_ledger_factory, repository, methods):
    ledger = fake_ledger_factory(parents=[(i, {}) for i in range(30)],
                                 fail_on={methods.list_parents: 2})

    with pytest.raises(TransportError) as excinfo:
        make_extractor(ledger, repository, methods, page_size=10).run()

    assert excinfo.value.context["page_index"] == 1
    assert excinfo.value.context["offset"] == 10
    # nothing was reset or written before the listing completed
    assert not repository.collection_exists(PARENTS)


def test_split_entry_accepts_decoded_structs():
    assert split_entry({"id": 3, "bounty": {"title": "x"}}) == (3, {"title": "x"})
    assert split_entry(("alice", {})) == ("alice", {})
    with pytest.raises(ValueError):
        split_entry((1, 2, 3))


@pytest.mark.parametrize("raw, expected", [
    (100, 100),
    ("1700000000123", 1700000000123),
    (None, None),
    ("soon", None),
    (True, None),
])
def test_parse_timestamp(raw, expected):
    assert parse_timestamp(raw) == expected


def test_sort_indexes_created_once(scenario_ledger, repository, methods):
    extractor = make_extractor(scenario_ledger, repository, methods)
    expected = {
        PARENTS: [index_name_for(PARENTS, [("id", 1)])],
        DETAILS: [index_name_for(DETAILS, [("created_at", 1)]),
                  index_name_for(DETAILS, [("canonical_id", 1)])],
    }

    for _ in range(2):
        extractor.run()
        for collection, names in expected.items():
            indexes = repository.list_indexes(collection)
            for name in names:
                assert indexes.count(name) == 1

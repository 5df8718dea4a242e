# tests/test_repository.py
"""
Staging repository: reset/index idempotency, sorted paging, append-or-create
"""

import pytest

from migrator.database.repository import index_name_for
from migrator.types import DETAILS, OWNER_INDEX, PARENTS


def seed_parents(repository, count):
    repository.ensure_collection(PARENTS)
    repository.insert_many(PARENTS, [{"id": i, "attributes": {}} for i in range(count)])


def test_reset_collection_twice_leaves_it_empty(repository):
    seed_parents(repository, 4)

    assert repository.reset_collection(PARENTS) == 4
    assert repository.count(PARENTS) == 0

    assert repository.reset_collection(PARENTS) == 0
    assert repository.count(PARENTS) == 0


def test_reset_missing_collection_is_noop(repository):
    assert not repository.collection_exists(DETAILS)
    assert repository.reset_collection(DETAILS) == 0
    assert not repository.collection_exists(DETAILS)


def test_ensure_index_never_duplicates(repository):
    repository.ensure_collection(DETAILS)

    assert repository.ensure_index(DETAILS, [("created_at", 1)]) is True
    assert repository.ensure_index(DETAILS, [("created_at", 1)]) is False

    name = index_name_for(DETAILS, [("created_at", 1)])
    assert repository.list_indexes(DETAILS).count(name) == 1


def test_ensure_index_survives_reset(repository):
    repository.ensure_index(PARENTS, [("id", 1)])
    seed_parents(repository, 2)
    repository.reset_collection(PARENTS)

    assert repository.ensure_index(PARENTS, [("id", 1)]) is False


def test_ensure_index_rejects_unknown_field(repository):
    with pytest.raises(ValueError):
        repository.ensure_index(PARENTS, [("nope", 1)])


def test_find_sorted_with_skip_and_limit(repository):
    repository.ensure_collection(DETAILS)
    repository.insert_many(DETAILS, [
        {"owner": owner, "parent_id": 1, "created_at": created_at, "attributes": {}}
        for owner, created_at in [("a", 30), ("b", 10), ("c", 20), ("d", 10)]
    ])

    ordered = repository.find_sorted(DETAILS, sort=[("created_at", 1)])
    # equal created_at falls back to insertion order
    assert [d["owner"] for d in ordered] == ["b", "d", "c", "a"]

    page = repository.find_sorted(DETAILS, sort=[("created_at", 1)], skip=1, limit=2)
    assert [d["owner"] for d in page] == ["d", "c"]

    descending = repository.find_sorted(DETAILS, sort=[("created_at", -1)], limit=1)
    assert descending[0]["owner"] == "a"


def test_find_all_sorted_streams_every_page(repository):
    seed_parents(repository, 7)

    ids = [p["id"] for p in repository.find_all_sorted(PARENTS, sort=[("id", -1)], page_size=3)]

    assert ids == [6, 5, 4, 3, 2, 1, 0]


def test_find_on_missing_collection_returns_nothing(repository):
    assert repository.find_sorted(OWNER_INDEX) == []
    assert repository.find_one(OWNER_INDEX, {"owner": "x"}) is None
    assert repository.count(OWNER_INDEX) == 0


def test_upsert_append_creates_then_appends(repository):
    repository.ensure_collection(OWNER_INDEX)

    assert repository.upsert_append(OWNER_INDEX, {"owner": "alice"}, "canonical_ids", 3) is True
    assert repository.upsert_append(OWNER_INDEX, {"owner": "alice"}, "canonical_ids", 7) is False
    assert repository.upsert_append(OWNER_INDEX, {"owner": "bob"}, "canonical_ids", 1) is True

    alice = repository.find_one(OWNER_INDEX, {"owner": "alice"})
    assert alice["canonical_ids"] == [3, 7]
    assert repository.count(OWNER_INDEX) == 2


def test_bulk_update_requires_seq(repository):
    with pytest.raises(ValueError):
        repository.bulk_update(DETAILS, [{"canonical_id": 0}])


def test_unknown_collection_rejected(repository):
    with pytest.raises(ValueError):
        repository.count("claims")

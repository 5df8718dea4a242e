# tests/test_replay_loader.py

import logging
from types import SimpleNamespace

import pytest

from migrator.core.errors import IntegrityError, TransportError
from migrator.pipeline.reindexer import Reindexer
from migrator.pipeline import replay_loader
from migrator.pipeline.replay_loader import (
    CLEANUP_OWNERS,
    CLEANUP_PARENTS,
    LOAD_DETAILS,
    ReplayLoader,
)
from migrator.types import DETAILS, PARENTS, REPLAY_CHECKPOINTS


@pytest.fixture
def five_claims(repository):
    """Five reindexed claims, owners o0..o2, parents 1 and 2"""
    repository.ensure_collection(PARENTS)
    repository.ensure_collection(DETAILS)
    repository.insert_many(PARENTS, [{"id": 1, "attributes": {}}, {"id": 2, "attributes": {}}])
    repository.insert_many(DETAILS, [
        {"owner": f"o{i % 3}", "parent_id": 1 + i % 2, "created_at": 100 - i,
         "attributes": {"created_at": 100 - i, "slot": i}}
        for i in range(5)
    ])
    Reindexer(repository).run()
    return repository


def load_calls(ledger, methods):
    return [args["claims"] for _, args in ledger.mutations(methods.load_details)]


def test_batch_of_two_over_five_records(five_claims, fake_ledger_factory, methods):
    ledger = fake_ledger_factory()

    stats = ReplayLoader(ledger, five_claims, methods, batch_size=2).run()

    assert [len(batch) for batch in load_calls(ledger, methods)] == [2, 2, 1]
    assert stats.get_phase(LOAD_DETAILS).batches == 3
    assert stats.get_phase(LOAD_DETAILS).records == 5


def test_load_follows_canonical_order(five_claims, fake_ledger_factory, methods):
    ledger = fake_ledger_factory()

    ReplayLoader(ledger, five_claims, methods, batch_size=2).run()

    created = [claim["created_at"] for batch in load_calls(ledger, methods) for claim in batch]
    assert created == sorted(created)


def test_cleanup_runs_before_load(five_claims, fake_ledger_factory, methods):
    ledger = fake_ledger_factory()

    ReplayLoader(ledger, five_claims, methods, batch_size=2).run()

    sequence = [method for method, _ in ledger.mutations()]
    assert sequence == [
        methods.purge_owner_index, methods.purge_owner_index,
        methods.purge_parent_index,
        methods.load_details, methods.load_details, methods.load_details,
    ]


def test_cleanup_payloads(staged_scenario, fake_ledger_factory, methods):
    Reindexer(staged_scenario).run()
    ledger = fake_ledger_factory()

    ReplayLoader(ledger, staged_scenario, methods, batch_size=20).run()

    [(_, owners)] = ledger.mutations(methods.purge_owner_index)
    [(_, parents)] = ledger.mutations(methods.purge_parent_index)
    # index documents are written in canonical order: B (id 0) before A
    assert owners == {"claimers": ["B", "A"]}
    assert parents == {"bounties": [5, 6]}


def test_failure_aborts_and_reports_batch(five_claims, fake_ledger_factory, methods):
    ledger = fake_ledger_factory(fail_on={methods.load_details: 2})

    with pytest.raises(TransportError) as excinfo:
        ReplayLoader(ledger, five_claims, methods, batch_size=2).run()

    context = excinfo.value.context
    assert (context["stage"], context["phase"]) == ("replay", LOAD_DETAILS)
    assert (context["batch_index"], context["offset"]) == (1, 2)
    # the failed call was the last one
    assert len(ledger.mutations(methods.load_details)) == 2

    checkpoint = five_claims.find_one(REPLAY_CHECKPOINTS, {"phase": LOAD_DETAILS})
    assert (checkpoint["next_offset"], checkpoint["batches"], checkpoint["completed"]) == (2, 1, False)


def test_resume_continues_from_checkpoint(five_claims, fake_ledger_factory, methods):
    failing = fake_ledger_factory(fail_on={methods.load_details: 2})
    with pytest.raises(TransportError):
        ReplayLoader(failing, five_claims, methods, batch_size=2).run()

    ledger = fake_ledger_factory()
    stats = ReplayLoader(ledger, five_claims, methods, batch_size=2).run(resume=True)

    assert stats.get_phase(CLEANUP_OWNERS).skipped
    assert stats.get_phase(CLEANUP_PARENTS).skipped
    assert not ledger.mutations(methods.purge_owner_index)
    assert [len(batch) for batch in load_calls(ledger, methods)] == [2, 1]
    assert stats.get_phase(LOAD_DETAILS).batches == 3


def test_plain_rerun_starts_over(five_claims, fake_ledger_factory, methods):
    failing = fake_ledger_factory(fail_on={methods.load_details: 2})
    with pytest.raises(TransportError):
        ReplayLoader(failing, five_claims, methods, batch_size=2).run()

    ledger = fake_ledger_factory()
    ReplayLoader(ledger, five_claims, methods, batch_size=2).run()

    assert len(ledger.mutations(methods.purge_owner_index)) == 2
    assert [len(batch) for batch in load_calls(ledger, methods)] == [2, 2, 1]


def test_dry_run_makes_no_calls_and_no_checkpoints(five_claims, methods):
    stats = ReplayLoader(None, five_claims, methods, batch_size=2, dry_run=True).run()

    assert stats.dry_run
    assert stats.get_phase(LOAD_DETAILS).batches == 3
    assert not five_claims.collection_exists(REPLAY_CHECKPOINTS)


def test_refuses_snapshot_without_canonical_ids(staged_scenario, fake_ledger_factory, methods):
    ledger = fake_ledger_factory()

    with pytest.raises(IntegrityError):
        ReplayLoader(ledger, staged_scenario, methods).run()

    assert ledger.calls == []


def test_ledger_required_unless_dry_run(repository, methods):
    with pytest.raises(ValueError):
        ReplayLoader(None, repository, methods)
    with pytest.raises(ValueError):
        ReplayLoader(None, repository, methods, batch_size=0, dry_run=True)


def test_payload_dump_skipped_unless_debug(five_claims, fake_ledger_factory, methods,
                                           monkeypatch, caplog):
    dumps = []

    def counting_dumps(payload, **kwargs):
        dumps.append(payload)
        return "[]"

    monkeypatch.setattr(replay_loader, "json", SimpleNamespace(dumps=counting_dumps))

    with caplog.at_level(logging.INFO, logger="migrator"):
        ReplayLoader(fake_ledger_factory(), five_claims, methods, batch_size=2).run()
    assert dumps == []

    with caplog.at_level(logging.DEBUG, logger="migrator"):
        ReplayLoader(fake_ledger_factory(), five_claims, methods, batch_size=2).run()
    # two owner batches, one parent batch, three detail batches
    assert len(dumps) == 6

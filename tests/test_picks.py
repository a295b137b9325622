import threading

import pytest

from core.picks import DEFAULT_PRIORITY, PicksRegistry
from core.store import PICKED_STOCKS, StoreError

from conftest import make_record


@pytest.fixture
def registry(store):
    picks = PicksRegistry(store)
    picks.mount()
    yield picks
    picks.unmount()


def test_toggle_adds_then_removes(registry, store):
    record = make_record("AAPL", "Buy", "190.50", "2024-01-02", source="2024/q1/january.json")

    assert registry.toggle(record)
    assert len(registry) == 1
    pick = registry.picks[0]
    assert pick.priority == DEFAULT_PRIORITY
    assert pick.source_file == "2024/q1/january.json"
    assert pick.stock_price == "190.50"
    assert registry.is_picked(record)

    assert registry.toggle(record)
    assert len(registry) == 0
    assert store.select(PICKED_STOCKS) == []
    assert not registry.is_picked(record)


def test_natural_key_ignores_price_and_source(registry):
    registry.toggle(make_record("AAPL", "Buy", "190.50", "2024-01-02", source="a.json"))

    same_key = make_record("AAPL", "Buy", "999.99", "2024-01-02", source="b.json")
    other_date = make_record("AAPL", "Buy", "190.50", "2024-01-03")

    assert registry.is_picked(same_key)
    assert not registry.is_picked(other_date)
    assert registry.picked_flags([same_key, other_date]) == [True, False]


def test_double_toggle_restores_membership(registry):
    keep = make_record("MSFT", "Sell", date="2024-01-03")
    flip = make_record("TSLA", "Buy", date="2024-01-04")
    registry.toggle(keep)
    before = {pick.natural_key for pick in registry.picks}

    registry.toggle(flip)
    registry.toggle(flip)

    assert {pick.natural_key for pick in registry.picks} == before


def test_set_priority(registry):
    registry.toggle(make_record("AAPL"))
    pick_id = registry.picks[0].id

    assert registry.set_priority(pick_id, "high")
    assert registry.get(pick_id).priority == "high"


def test_set_priority_rejects_unknown_level(registry):
    registry.toggle(make_record("AAPL"))

    with pytest.raises(ValueError):
        registry.set_priority(registry.picks[0].id, "urgent")


def test_set_priority_unknown_id_is_soft_failure(registry):
    assert registry.set_priority("missing", "low") is False


def test_remove(registry):
    registry.toggle(make_record("AAPL"))
    registry.toggle(make_record("MSFT"))
    target = registry.picks[0]

    assert registry.remove(target.id)
    assert len(registry) == 1
    assert registry.get(target.id) is None


def test_picks_newest_first(registry):
    registry.toggle(make_record("AAPL"))
    registry.toggle(make_record("MSFT"))

    assert [pick.ticker_name for pick in registry.picks] == ["MSFT", "AAPL"]


def test_cache_follows_external_writes_while_mounted(registry, store):
    store.insert(
        PICKED_STOCKS,
        {"ticker_name": "NVDA", "signal_type": "Buy", "stock_price": "495", "date": "2024-01-04", "priority": "low"},
    )

    assert registry.is_picked(make_record("NVDA", "Buy", date="2024-01-04"))


def test_unmount_releases_subscription(store):
    picks = PicksRegistry(store)
    picks.mount()
    picks.mount()
    assert store.subscription_count(PICKED_STOCKS) == 1

    picks.unmount()

    assert store.subscription_count(PICKED_STOCKS) == 0


def test_failed_insert_leaves_cache_unchanged(registry, store, monkeypatch):
    registry.toggle(make_record("AAPL"))
    before = registry.picks

    def refuse(collection, record):
        raise StoreError("offline")

    monkeypatch.setattr(store, "insert", refuse)

    assert registry.toggle(make_record("MSFT")) is False
    assert registry.picks == before


def test_concurrent_toggles_never_duplicate_a_pick(store):
    picks = PicksRegistry(store)
    picks.mount()
    record = make_record("AAPL")

    for _ in range(50):
        barrier = threading.Barrier(2)

        def flip():
            barrier.wait()
            picks.toggle(record)

        workers = [threading.Thread(target=flip) for _ in range(2)]
        for worker in workers:
            worker.start()
        for worker in workers:
            worker.join(timeout=5)

        rows = store.select(PICKED_STOCKS)
        assert len(rows) <= 1
        # Two toggles from the same starting point cancel out
        assert rows == []
        assert not picks.is_picked(record)

    picks.unmount()

from bitstamp_stream.registry import SubscriptionRegistry


def test_add_remove_is_idempotent():
    reg = SubscriptionRegistry()
    reg.add("live_trades_btcusd")
    reg.add("live_trades_btcusd")
    assert len(reg) == 1
    assert reg.has("live_trades_btcusd")

    reg.remove("live_trades_btcusd")
    reg.remove("live_trades_btcusd")
    assert not reg.has("live_trades_btcusd")
    assert len(reg) == 0


def test_all_is_a_snapshot():
    reg = SubscriptionRegistry()
    reg.add("a")
    snap = reg.all()
    reg.add("b")
    assert snap == frozenset({"a"})
    assert reg.all() == frozenset({"a", "b"})


def test_iteration_allows_mutation():
    reg = SubscriptionRegistry()
    for name in ("a", "b", "c"):
        reg.add(name)
    for name in reg:
        reg.remove(name)
    assert len(reg) == 0


def test_clear_and_contains():
    reg = SubscriptionRegistry()
    reg.add("a")
    assert "a" in reg
    reg.clear()
    assert "a" not in reg

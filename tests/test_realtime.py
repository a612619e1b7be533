import asyncio

import pytest

from skatebounty.client.live import LiveBountyFeed
from skatebounty.services.realtime import MemoryNotifier, Notifier, RealtimeEvent, get_notifier, publish_change

@pytest.mark.asyncio
async def test_memory_notifier_fanout_and_unsubscribe():
    n = MemoryNotifier()
    seen, async_seen = [], []

    async def on_insert_async(row):
        async_seen.append(row["id"])

    unsub = await n.subscribe("bounties", on_insert=lambda row: seen.append(row["id"]))
    await n.subscribe("bounties", on_insert=on_insert_async)
    await n.publish("bounties", "INSERT", {"id": "1"})
    await n.publish("bounties", "DELETE", {"id": "1"})  # no delete handler, ignored
    assert seen == ["1"] and async_seen == ["1"]

    await unsub()
    assert n.subscriber_count("bounties") == 1
    await n.publish("bounties", "INSERT", {"id": "2"})
    assert seen == ["1"] and async_seen == ["1", "2"]

@pytest.mark.asyncio
async def test_broken_subscriber_does_not_block_others():
    n = MemoryNotifier()
    seen = []

    def boom(row):
        raise RuntimeError("boom")

    await n.subscribe("bounties", on_insert=boom)
    await n.subscribe("bounties", on_insert=lambda row: seen.append(row))
    await n.publish("bounties", "INSERT", {"id": "x"})
    assert seen == [{"id": "x"}]

@pytest.mark.asyncio
async def test_publish_change_respects_table_list(policy):
    n = MemoryNotifier()
    seen = []
    await n.subscribe("submissions", on_insert=lambda row: seen.append(row))
    await publish_change(n, "submissions", "INSERT", {"id": "s1"})
    assert seen == []
    policy.realtime_tables = ["bounties", "submissions"]
    await publish_change(n, "submissions", "INSERT", {"id": "s1"})
    assert seen == [{"id": "s1"}]

def test_live_feed_dedupes_inserts():
    live = LiveBountyFeed([{"id": "a", "created_at": "2026-01-01T00:00:00+00:00", "trick": "ollie"}])
    assert live.apply_insert({"id": "a", "created_at": "2026-01-01T00:00:00+00:00", "trick": "ollie"}) is False
    assert live.apply_insert({"id": "b", "created_at": "2026-01-02T00:00:00+00:00", "trick": "kickflip"}) is True
    assert live.apply_insert({"id": "b", "created_at": "2026-01-02T00:00:00+00:00", "trick": "kickflip"}) is False
    assert [r["id"] for r in live.snapshot()] == ["b", "a"]

def test_live_feed_update_and_delete():
    live = LiveBountyFeed([{"id": "a", "status": "open", "created_at": "2026-01-01T00:00:00+00:00"}])
    live.apply(RealtimeEvent(table="bounties", type="UPDATE", row={"id": "a", "status": "closed"}))
    assert live.snapshot()[0]["status"] == "closed"
    assert live.snapshot()[0]["created_at"] == "2026-01-01T00:00:00+00:00"
    live.apply(RealtimeEvent(table="bounties", type="DELETE", row={"id": "a"}))
    assert len(live) == 0
    live.apply(RealtimeEvent(table="bounties", type="DELETE", row={"id": "missing"}))

@pytest.mark.asyncio
async def test_new_bounty_reaches_attached_feed(ac, user):
    _, hdrs = user
    live = LiveBountyFeed()
    await live.attach(get_notifier())
    try:
        r = await ac.post("/bounties", headers=hdrs, json={"trick": "kickflip"})
        b = r.json()
        assert b["id"] in live
        # reloading the list and the pushed row are merged, not doubled
        live.apply_insert(b)
        assert len(live) == 1

        await ac.post(f"/bounties/{b['id']}/close", headers=hdrs)
        assert live.snapshot()[0]["status"] == "closed"
    finally:
        await live.aclose()

@pytest.mark.asyncio
async def test_sse_endpoint_unknown_table_is_404(ac):
    r = await ac.get("/realtime/submission_votes")
    assert r.status_code == 404

def test_snapshot_orders_by_instant_not_text():
    live = LiveBountyFeed([
        {"id": "whole", "created_at": "2026-01-01T10:00:30Z"},
        {"id": "fraction", "created_at": "2026-01-01T10:00:30.500000Z"},
        {"id": "earlier", "created_at": "2026-01-01T10:00:29.900000Z"},
    ])
    assert [r["id"] for r in live.snapshot()] == ["fraction", "whole", "earlier"]

def test_notifier_base_is_abstract():
    with pytest.raises(TypeError):
        Notifier()

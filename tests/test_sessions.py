import asyncio

import pytest
from conftest import FakeClock

from alphabot.core.sessions import CancellationToken, SessionStore, WaiterKind, WaiterRecord


def record(message_id="m1", author_id="100", callback=print, **kwargs):
    return WaiterRecord(
        name="ask",
        message_id=message_id,
        thread_id="200",
        author_id=author_id,
        callback=callback,
        **kwargs,
    )


@pytest.fixture
def store(clock):
    return SessionStore(clock=clock)


# ---- Cooldowns ----


def test_check_cooldown_does_not_set_one(store):
    assert store.check_cooldown("ping", "100", 5).ready
    assert store.check_cooldown("ping", "100", 5).ready
    assert store.stats["cooldowns"] == 0


def test_cooldown_expires(store, clock):
    store.set_cooldown("ping", "100", 5)

    status = store.check_cooldown("ping", "100", 5)
    assert not status.ready
    assert status.remaining == pytest.approx(5)

    clock.advance(5)
    assert store.check_cooldown("ping", "100", 5).ready
    assert store.stats["cooldowns"] == 0


def test_zero_cooldown_is_always_ready(store):
    store.set_cooldown("ping", "100", 0)

    assert store.check_cooldown("ping", "100", 0).ready
    assert store.stats["cooldowns"] == 0


def test_forget_command_drops_its_cooldowns(store):
    store.set_cooldown("ping", "100", 5)
    store.set_cooldown("help", "100", 5)

    store.forget_command("ping")

    assert store.check_cooldown("ping", "100", 5).ready
    assert not store.check_cooldown("help", "100", 5).ready


# ---- Waiters ----


def test_waiter_is_consumed_once(store):
    store.add_waiter(WaiterKind.REPLY, "m1", record())

    assert store.consume_waiter(WaiterKind.REPLY, "m1") is not None
    assert store.consume_waiter(WaiterKind.REPLY, "m1") is None


def test_rejected_waiter_stays_registered(store):
    store.add_waiter(WaiterKind.REPLY, "m1", record(author_id="100"))

    consumed = store.consume_waiter(WaiterKind.REPLY, "m1", accept=lambda r: r.author_id == "101")

    assert consumed is None
    assert store.peek_waiter(WaiterKind.REPLY, "m1") is not None


def test_waiter_kinds_are_separate(store):
    store.add_waiter(WaiterKind.REACTION, "m1", record())

    assert store.peek_waiter(WaiterKind.REPLY, "m1") is None
    assert store.peek_waiter(WaiterKind.REACTION, "m1") is not None


def test_non_callable_waiter_is_ignored(store):
    assert store.add_waiter(WaiterKind.REPLY, "m1", record(callback="nope")) is False
    assert store.peek_waiter(WaiterKind.REPLY, "m1") is None


def test_waiter_expires(store, clock):
    store.add_waiter(WaiterKind.REPLY, "m1", record(), ttl=10)

    clock.advance(9)
    assert store.peek_waiter(WaiterKind.REPLY, "m1") is not None
    clock.advance(1)
    assert store.peek_waiter(WaiterKind.REPLY, "m1") is None


def test_public_view_hides_callback():
    data = record(extra={"step": 2}).public()

    assert "callback" not in data
    assert data["extra"] == {"step": 2}
    assert data["author_only"] is True


def test_sweep_removes_expired_entries(store, clock):
    store.set_cooldown("ping", "100", 5)
    store.set_cooldown("ping", "101", 50)
    store.add_waiter(WaiterKind.REPLY, "m1", record(), ttl=10)
    store.add_waiter(WaiterKind.REACTION, "m2", record("m2"), ttl=0)

    clock.advance(20)

    assert store.sweep() == 2
    assert store.stats == {
        "cooldowns": 1,
        "reply_waiters": 0,
        "reaction_waiters": 1,
        "running_tasks": 0,
    }


# ---- Tasks ----


def test_open_task_refuses_a_second_loop(store):
    token = store.open_task("spam:200")

    assert token is not None
    assert store.open_task("spam:200") is None
    assert store.is_running("spam:200")


def test_cancel_task_sets_the_token(store):
    token = store.open_task("spam:200")

    assert store.cancel_task("spam:200") is True
    assert token.cancelled
    assert store.cancel_task("spam:200") is False


def test_close_task_ignores_reused_key(store):
    old = store.open_task("spam:200")
    store.cancel_task("spam:200")
    new = store.open_task("spam:200")

    store.close_task("spam:200", old)
    assert store.is_running("spam:200")

    store.close_task("spam:200", new)
    assert not store.is_running("spam:200")


def test_cancel_all_tasks(store):
    tokens = [store.open_task(f"spam:{n}") for n in range(3)]

    assert store.cancel_all_tasks() == 3
    assert all(t.cancelled for t in tokens)


@pytest.mark.asyncio
async def test_token_sleep_wakes_on_cancel():
    token = CancellationToken("spam:1")
    asyncio.get_running_loop().call_later(0.05, token.cancel)

    assert await asyncio.wait_for(token.sleep(10), timeout=2) is True


@pytest.mark.asyncio
async def test_token_sleep_times_out():
    assert await CancellationToken("spam:1").sleep(0.01) is False


@pytest.mark.asyncio
async def test_sweeper_runs_in_background():
    clock = FakeClock()
    store = SessionStore(clock=clock)
    store.set_cooldown("ping", "100", 1)
    clock.advance(2)

    task = store.start_sweeper(interval=0.01)
    assert store.start_sweeper(interval=0.01) is task
    await asyncio.sleep(0.05)
    store.stop_sweeper()

    assert store.stats["cooldowns"] == 0

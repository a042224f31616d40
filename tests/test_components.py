"""Bundled commands driven end to end through the dispatcher."""

import asyncio
import dataclasses

import pytest
import pytest_asyncio
from conftest import ADMIN_ID, THREAD_ID, USER_ID, make_event, wait_for

from alphabot.components.admin.setpermission import parse_target
from alphabot.components.general.help import visible_commands
from alphabot.components.war.spam import task_key
from alphabot.core.context import ContextKind, MessageContext
from alphabot.core.loader import PluginLoader


@pytest_asyncio.fixture
async def loaded(app):
    PluginLoader(app.registry).load_commands()
    return app


def admin_says(body, message_id="mid.a", **extra):
    return make_event(body, sender=ADMIN_ID, message_id=message_id, **extra)


# ============================================
# General
# ============================================


@pytest.mark.asyncio
async def test_ping(loaded, dispatcher, api):
    await dispatcher.dispatch(make_event("/p"))

    assert api.bodies[0].startswith("🏓 Pong!")
    assert api.sent[0]["reply_to"] == "mid.1"


@pytest.mark.asyncio
async def test_test_echoes_arguments(loaded, dispatcher, api):
    await dispatcher.dispatch(make_event("/test hello world"))

    assert "📝 Args: hello world" in api.bodies[0]


@pytest.mark.asyncio
async def test_help_lists_only_permitted_commands(loaded, dispatcher, api):
    await dispatcher.dispatch(make_event("/help"))
    await dispatcher.dispatch(admin_says("/help"))

    user_view, admin_view = api.bodies
    assert "[GENERAL]" in user_view
    assert "ping" in user_view
    assert "[ADMIN]" not in user_view
    assert "setpermission" not in user_view
    assert "[ADMIN]" in admin_view
    assert "[WAR]" in admin_view


@pytest.mark.asyncio
async def test_help_for_one_command(loaded, dispatcher, api):
    await dispatcher.dispatch(make_event("/help p"))

    assert "📌 /ping" in api.bodies[0]
    assert "🔤 Aliases: p" in api.bodies[0]


@pytest.mark.asyncio
async def test_help_for_unknown_command(loaded, dispatcher, api):
    await dispatcher.dispatch(make_event("/help nope"))

    assert api.bodies == ["❌ An error occurred: Unknown command: nope"]


@pytest.mark.asyncio
async def test_visible_commands_hides_hidden_ones(loaded):
    commands = loaded.registry.commands()
    hidden = dataclasses.replace(loaded.registry.resolve("ping"), name="secret", hidden=True)

    names = [c.name for c in visible_commands([*commands, hidden], frozenset({"user"}))]

    assert "ping" in names
    assert "secret" not in names
    assert "ban" not in names


# ============================================
# Admin
# ============================================


@pytest.mark.asyncio
async def test_setpermission_by_id(loaded, dispatcher, api):
    await dispatcher.dispatch(admin_says("/setperm 101 mod"))

    record = await loaded.threads.get(THREAD_ID)
    assert record.permissions == {"101": ["user", "mod"]}
    assert "🎯 Permissions: user, mod" in api.bodies[0]
    assert await loaded.permissions.resolve("101", THREAD_ID) == {"user", "mod"}


@pytest.mark.asyncio
async def test_setpermission_by_mention(loaded, dispatcher):
    await dispatcher.dispatch(admin_says("/setperm @Bo Bee admin", mentions={"101": "@Bo Bee"}))

    record = await loaded.threads.get(THREAD_ID)
    assert record.permissions["101"] == ["user", "mod", "admin"]


@pytest.mark.asyncio
async def test_setpermission_rejects_unknown_level(loaded, dispatcher, api):
    await dispatcher.dispatch(admin_says("/setperm 101 king"))

    assert api.bodies[0].startswith("❌ Invalid permission level!")
    assert (await loaded.threads.get(THREAD_ID)).permissions == {}


@pytest.mark.asyncio
async def test_setpermission_needs_level_two(loaded, dispatcher, api):
    await dispatcher.dispatch(make_event("/setperm 101 admin"))

    assert api.sent == []
    assert (await loaded.threads.get(THREAD_ID)).permissions == {}


@pytest.mark.asyncio
async def test_parse_target_from_reply(loaded):
    event = make_event(
        "/setperm mod",
        type="message_reply",
        messageReply={"messageID": "m0", "senderID": "101"},
    )
    ctx = MessageContext(loaded, event, ContextKind.COMMAND, args=["mod"])

    assert parse_target(ctx) == ("101", "mod")


@pytest.mark.asyncio
async def test_setprefix_then_use_it(loaded, dispatcher, api, clock):
    await dispatcher.dispatch(admin_says("/setprefix !"))
    assert api.bodies[-1] == "✅ Prefix changed to: !"

    await dispatcher.dispatch(make_event("!ping", message_id="mid.2"))
    assert api.bodies[-1].startswith("🏓 Pong!")

    clock.advance(10)
    await dispatcher.dispatch(admin_says("!setprefix reset", message_id="mid.3"))
    assert (await loaded.threads.get(THREAD_ID)).prefix is None


@pytest.mark.asyncio
async def test_setprefix_rejects_long_prefix(loaded, dispatcher, api):
    await dispatcher.dispatch(admin_says("/setprefix toolong"))

    assert api.bodies[-1].startswith("❌ The prefix must be")


@pytest.mark.asyncio
async def test_nsfw_toggle(loaded, dispatcher, clock):
    await dispatcher.dispatch(admin_says("/nsfw on"))
    assert (await loaded.threads.get(THREAD_ID)).nsfw is True

    clock.advance(10)
    await dispatcher.dispatch(admin_says("/nsfw", message_id="mid.b"))
    assert (await loaded.threads.get(THREAD_ID)).nsfw is False


@pytest.mark.asyncio
async def test_ban_and_unban(loaded, dispatcher, api, clock):
    await dispatcher.dispatch(admin_says("/ban 101"))
    assert api.bodies[-1] == "🚫 101 can no longer use the bot in this group."

    sent = len(api.sent)
    await dispatcher.dispatch(make_event("/ping", sender="101", message_id="mid.x"))
    assert len(api.sent) == sent

    clock.advance(10)
    await dispatcher.dispatch(admin_says("/unban 101", message_id="mid.b"))
    assert api.bodies[-1] == "✅ User 101 can use the bot again."

    await dispatcher.dispatch(make_event("/ping", sender="101", message_id="mid.y"))
    assert api.bodies[-1].startswith("🏓 Pong!")


@pytest.mark.asyncio
async def test_ban_refuses_admins(loaded, dispatcher, api):
    await dispatcher.dispatch(admin_says(f"/ban {ADMIN_ID}"))

    assert api.bodies == ["⛔ This member cannot be banned."]
    assert not (await loaded.threads.get(THREAD_ID)).is_member_banned(ADMIN_ID)


@pytest.mark.asyncio
async def test_unban_member_who_is_not_banned(loaded, dispatcher, api):
    await dispatcher.dispatch(admin_says(f"/unban {USER_ID}"))

    assert api.bodies == [f"⚠️ {USER_ID} is not banned."]


# ============================================
# War
# ============================================


@pytest.mark.asyncio
async def test_spam_runs_until_stopped(loaded, dispatcher, api, clock):
    spam = loaded.registry.resolve("spam")
    loaded.registry.replace("spam", dataclasses.replace(spam, extra={"delay": 10}))

    running = asyncio.create_task(dispatcher.dispatch(admin_says("/spam hi there")))
    await wait_for(lambda: api.bodies.count("hi there") >= 2)
    assert loaded.sessions.is_running(task_key(THREAD_ID))

    clock.advance(10)
    await dispatcher.dispatch(admin_says("/spam again", message_id="mid.b"))
    assert any(b.startswith("⚠️ Spam is already running here!") for b in api.bodies)

    # no clock advance: stopping is not held back by the cooldown
    await dispatcher.dispatch(admin_says("/spv1 stop", message_id="mid.c"))
    await asyncio.wait_for(running, timeout=2)

    assert api.bodies[0] == '🔥 Spamming: "hi there"\n⚠️ Use "/spam stop" to stop.'
    assert "✅ Spam stopped!" in api.bodies
    assert not loaded.sessions.is_running(task_key(THREAD_ID))


@pytest.mark.asyncio
async def test_spam_stop_without_running_loop(loaded, dispatcher, api):
    await dispatcher.dispatch(admin_says("/spam stop"))

    assert api.bodies == ["⚠️ No spam is running in this group!"]


@pytest.mark.asyncio
async def test_spam_needs_text(loaded, dispatcher, api):
    await dispatcher.dispatch(admin_says("/spam"))

    assert api.bodies[0].startswith("❌ Please enter the text to spam!")

import pytest

from alphabot.core.exceptions import CommandNotFound, DuplicateNameError
from alphabot.core.registry import Command, PluginRegistry


def noop(ctx):
    return None


def command(name, *aliases, **kwargs):
    return Command(name=name, handler=noop, aliases=aliases, **kwargs)


@pytest.fixture
def registry():
    return PluginRegistry()


def test_resolve_by_name_and_alias(registry):
    registry.register(command("ping", "p"))

    assert registry.resolve("ping").name == "ping"
    assert registry.resolve("P").name == "ping"
    assert registry.resolve("pong") is None


@pytest.mark.parametrize(
    "second",
    [
        command("ping"),
        command("pong", "ping"),
        command("p"),
        command("pong", "p"),
    ],
)
def test_name_and_alias_collisions_are_refused(registry, second):
    registry.register(command("ping", "p"))

    with pytest.raises(DuplicateNameError) as exc:
        registry.register(second)

    assert exc.value.owner == "ping"
    assert registry.resolve("pong") is None


def test_mixed_case_names_are_stored_lower_case(registry):
    stored = registry.register(command("Ping", " P "))

    assert stored.name == "ping"
    assert stored.aliases == ("p",)
    assert registry.resolve("Ping") is registry.resolve("P") is stored
    assert registry.get_config("PING").aliases == ("p",)
    assert registry.unregister("Ping") is stored


def test_case_only_duplicates_are_refused(registry):
    registry.register(command("ping"))

    with pytest.raises(DuplicateNameError):
        registry.register(command("PING"))
    with pytest.raises(DuplicateNameError):
        registry.register(command("pong", "Pong"))


def test_blank_alias_is_refused(registry):
    with pytest.raises(ValueError):
        registry.register(command("ping", " "))


def test_alias_repeating_the_name_is_refused(registry):
    with pytest.raises(DuplicateNameError):
        registry.register(command("ping", "ping"))


def test_unregister_removes_aliases_and_notifies(registry):
    removed = []
    registry.on_remove(removed.append)
    registry.register(command("ping", "p"))

    assert registry.unregister("ping") is not None

    assert registry.resolve("p") is None
    assert removed == ["ping"]
    assert registry.unregister("ping") is None


def test_replace_restores_old_command_on_collision(registry):
    registry.register(command("ping", "p"))
    registry.register(command("help", "h"))

    with pytest.raises(DuplicateNameError):
        registry.replace("ping", command("ping", "h"))

    assert registry.resolve("p").name == "ping"
    assert registry.resolve("h").name == "help"


def test_replace_swaps_aliases(registry):
    removed = []
    registry.on_remove(removed.append)
    registry.register(command("ping", "p"))

    registry.replace("ping", command("ping", "pg"))

    assert registry.resolve("p") is None
    assert registry.resolve("pg").name == "ping"
    assert removed == ["ping"]


def test_reload_unknown_command(registry):
    with pytest.raises(CommandNotFound):
        registry.reload("nope")


def test_get_config_has_no_handler(registry):
    registry.register(command("ping", "p", cooldown=2))

    config = registry.get_config("ping")

    assert config.cooldown == 2
    assert config.aliases == ("p",)
    assert not hasattr(config, "handler")


def test_categories(registry):
    registry.register(command("ping", category="general"))
    registry.register(command("ban", category="admin"))
    registry.register(command("kick", category="admin"))

    assert registry.categories() == ["admin", "general"]
    assert [c.name for c in registry.by_category("admin")] == ["ban", "kick"]


def test_event_names_are_unique(registry):
    registry.register_event("subscribe", noop)

    with pytest.raises(DuplicateNameError):
        registry.register_event("subscribe", noop)
    assert registry.get_event("subscribe") is noop
    assert registry.stats["events"] == 1

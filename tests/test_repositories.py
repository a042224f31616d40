import json

import pytest

from alphabot.shared.models.thread import ThreadMember, ThreadRecord
from alphabot.shared.models.user import UserRecord
from alphabot.shared.repositories.documents import JsonDocumentStore
from alphabot.shared.repositories.thread import ThreadRepository, apply_thread_info
from alphabot.shared.repositories.user import UserRepository

# ============================================
# JSON document store
# ============================================


def test_missing_file_is_created(tmp_path):
    path = tmp_path / "db" / "threads.json"

    assert JsonDocumentStore(path).load() == 0
    assert json.loads(path.read_text()) == {}


def test_corrupt_file_is_reset(tmp_path):
    path = tmp_path / "threads.json"
    path.write_text("{not json")

    assert JsonDocumentStore(path).load() == 0
    assert json.loads(path.read_text()) == {}


@pytest.mark.asyncio
async def test_writes_reach_disk(tmp_path):
    path = tmp_path / "users.json"
    store = JsonDocumentStore(path, beautify=True)

    await store.put("1", {"userID": "1", "name": "An"})
    await store.update("1", {"banned": True})
    await store.set_path("2", ["data", "prefix"], "!")

    on_disk = json.loads(path.read_text(encoding="utf-8"))
    assert on_disk["1"] == {"userID": "1", "name": "An", "banned": True}
    assert on_disk["2"] == {"data": {"prefix": "!"}}
    assert not path.with_name("users.json.tmp").exists()


@pytest.mark.asyncio
async def test_returned_documents_are_copies(tmp_path):
    store = JsonDocumentStore(tmp_path / "users.json")
    await store.put("1", {"tags": ["user"]})

    doc = await store.get("1")
    doc["tags"].append("admin")

    assert (await store.get("1"))["tags"] == ["user"]


@pytest.mark.asyncio
async def test_delete(tmp_path):
    store = JsonDocumentStore(tmp_path / "users.json")
    await store.put("1", {})

    assert await store.delete("1") is True
    assert await store.delete("1") is False
    assert await store.all() == {}


# ============================================
# Records
# ============================================


def test_thread_record_normalizes_admin_ids():
    record = ThreadRecord.from_dict(
        {"threadID": "200", "info": {"adminIDs": [{"id": 1}, "2", {"id": ""}, "1"]}}
    )

    assert record.admin_ids == ["1", "2"]
    assert record.to_dict()["info"]["adminIDs"] == ["1", "2"]


def test_thread_record_keeps_unknown_keys():
    raw = {"threadID": "200", "emoji": "👍", "data": {"prefix": "!"}}

    record = ThreadRecord.from_dict(raw)

    assert record.prefix == "!"
    assert record.to_dict()["emoji"] == "👍"


def test_thread_record_keeps_unknown_info_and_data_keys():
    raw = {"threadID": "200", "info": {"emoji": "E"}, "data": {"autoSetName": True}}

    doc = ThreadRecord.from_dict(raw).to_dict()

    assert doc["info"]["emoji"] == "E"
    assert doc["data"]["autoSetName"] is True


def test_user_record_without_permissions():
    record = UserRecord.from_dict({"name": "An"}, "1")

    assert record.user_id == "1"
    assert record.permissions is None
    assert "permissions" not in record.to_dict()


def test_apply_thread_info_keeps_bans_and_names():
    record = ThreadRecord(
        "200",
        members=[ThreadMember("1", name="An", banned=True), ThreadMember("2", name="Bo")],
    )

    apply_thread_info(
        record,
        {
            "threadName": "Cats",
            "participantIDs": ["1", "3"],
            "userInfo": [{"id": "3", "name": "Cy"}],
            "nicknames": {"1": "Annie"},
            "adminIDs": [{"id": "3"}],
            "emoji": "🐱",
        },
    )

    assert record.name == "Cats"
    assert record.admin_ids == ["3"]
    assert [(m.user_id, m.name, m.nickname, m.banned) for m in record.members] == [
        ("1", "An", "Annie", True),
        ("3", "Cy", None, False),
    ]
    assert record.info_extra["emoji"] == "🐱"


# ============================================
# Repositories
# ============================================


@pytest.mark.asyncio
async def test_ensure_creates_thread_with_fetched_info(tmp_path):
    repo = ThreadRepository(JsonDocumentStore(tmp_path / "threads.json"))

    async def fetch(thread_id):
        return {"threadName": "Cats", "participantIDs": ["1"], "isGroup": True}

    record = await repo.ensure("200", fetch)

    assert record.name == "Cats"
    assert record.last_update > 0
    assert (await repo.get("200")).name == "Cats"


@pytest.mark.asyncio
async def test_ensure_survives_fetch_failure(tmp_path):
    repo = ThreadRepository(JsonDocumentStore(tmp_path / "threads.json"))

    async def fetch(thread_id):
        raise RuntimeError("client down")

    record = await repo.ensure("200", fetch)

    assert record.thread_id == "200"
    assert record.members == []


@pytest.mark.asyncio
async def test_field_updates_invalidate_cache(tmp_path):
    repo = ThreadRepository(JsonDocumentStore(tmp_path / "threads.json"))
    await repo.ensure("200")

    await repo.set_setting("200", "prefix", "!")
    await repo.set_permissions("200", "1", ["user", "mod"])
    await repo.set_banned("200", True)

    record = await repo.get("200")
    assert record.prefix == "!"
    assert record.permissions == {"1": ["user", "mod"]}
    assert record.banned is True


@pytest.mark.asyncio
async def test_document_survives_load_and_save(tmp_path):
    path = tmp_path / "threads.json"
    doc = {
        "threadID": "200",
        "info": {
            "name": "Cats",
            "isGroup": True,
            "adminIDs": [{"id": "1"}],
            "members": [{"userID": "1", "name": "An", "nickname": None, "banned": False}],
            "emoji": "E",
        },
        "data": {"prefix": "!", "nsfw": False, "language": None, "autoSetName": True},
        "permissions": {"1": ["user", "mod"]},
        "banned": False,
        "lastUpdate": 1700000000000,
        "custom": {"a": 1},
    }
    path.write_text(json.dumps({"200": doc}), encoding="utf-8")
    repo = ThreadRepository(JsonDocumentStore(path))

    await repo.save(await repo.get("200"))

    on_disk = json.loads(path.read_text(encoding="utf-8"))["200"]
    assert on_disk["info"]["adminIDs"] == ["1"]
    on_disk["info"]["adminIDs"] = doc["info"]["adminIDs"]
    assert on_disk == doc


@pytest.mark.asyncio
async def test_settings_survive_later_saves(tmp_path):
    path = tmp_path / "threads.json"
    repo = ThreadRepository(JsonDocumentStore(path))
    await repo.ensure("200")

    await repo.set_setting("200", "welcome", False)
    await repo.set_member_banned("200", "1", True)
    await repo.update_info("200", {"threadName": "Cats"})

    data = json.loads(path.read_text(encoding="utf-8"))["200"]["data"]
    assert data["welcome"] is False
    assert (await repo.get("200")).data_extra == {"welcome": False}


@pytest.mark.asyncio
async def test_member_ban_persists_across_reload(tmp_path):
    path = tmp_path / "threads.json"
    await ThreadRepository(JsonDocumentStore(path)).set_member_banned("200", "1", True)

    fresh = ThreadRepository(JsonDocumentStore(path))

    assert (await fresh.get("200")).is_member_banned("1")


@pytest.mark.asyncio
async def test_user_ensure_and_display_name(tmp_path):
    repo = UserRepository(JsonDocumentStore(tmp_path / "users.json"))

    async def fetch(user_id):
        return {"name": "An"}

    await repo.ensure("1", fetch)

    assert await repo.display_name("1") == "An"
    assert await repo.display_name("2") == "2"


@pytest.mark.asyncio
async def test_user_permissions_can_be_cleared(tmp_path):
    repo = UserRepository(JsonDocumentStore(tmp_path / "users.json"))

    await repo.set_permissions("1", ["user", "mod"])
    assert (await repo.get("1")).permissions == ["user", "mod"]

    await repo.set_permissions("1", None)
    assert (await repo.get("1")).permissions is None

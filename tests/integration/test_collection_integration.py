"""Integration tests for ReactiveCollection.

Tests cover the collection's public API end to end:
1. Insertion and id assignment
2. Queries with projection, sort, skip and limit
3. Updates and upserts
4. Removal
5. Debounced change notification
"""

from __future__ import annotations

import asyncio

import pytest
import pytest_asyncio

from reactive_db import (
    DuplicateIdError,
    InvalidArgumentError,
    ReactiveCollection,
    ReactiveConfig,
    SubscriptionError,
)
from reactive_db.components.notifier import NotifierState
from reactive_db.interfaces import Collection

DELAY_MS = 20
SETTLE = DELAY_MS / 1000.0 * 5


@pytest.fixture
def collection():
    """Create an empty collection with a short debounce window."""
    c = ReactiveCollection("test-collection", ReactiveConfig(notify_delay_ms=DELAY_MS))
    yield c
    c.close()


@pytest_asyncio.fixture
async def populated(collection):
    """Collection holding {num: 1..4} with ids "0".."3"."""
    await collection.insert_many([{"num": 1}, {"num": 2}, {"num": 3}, {"num": 4}])
    # Let the insert notifications go out before the test subscribes
    collection.flush_notifications()
    return collection


class Recorder:
    """Watcher collecting every delivered batch as change-stream dicts."""

    def __init__(self) -> None:
        self.batches: list[list[dict]] = []

    def __call__(self, changes) -> None:
        self.batches.append([change.to_dict() for change in changes])


# -- Creation --

def test_collection_name(collection):
    """Test the collection keeps its name."""
    assert collection.name == "test-collection"
    assert "test-collection" in repr(collection)


def test_satisfies_protocol(collection):
    """Test that ReactiveCollection implements the Collection protocol."""
    assert isinstance(collection, Collection)


# -- Insert --

@pytest.mark.asyncio
async def test_insert_one(populated):
    """Test inserting one document."""
    result = await populated.insert_one({"num": 5})

    assert result.inserted_ids == ["4"]
    assert await populated.count() == 5


@pytest.mark.asyncio
async def test_insert_many(populated):
    """Test that the fixture batch was inserted."""
    assert await populated.count() == 4


@pytest.mark.asyncio
async def test_insert_accepts_mapping_or_list(collection):
    """Test that insert() takes a single document or a list."""
    await collection.insert({"a": 1})
    result = await collection.insert([{"b": 2}, {"c": 3}])

    assert result.inserted_count == 2
    assert await collection.count() == 3


@pytest.mark.asyncio
async def test_insert_one_rejects_list_and_scalars(collection):
    """Test that insert_one() only accepts a mapping."""
    with pytest.raises(InvalidArgumentError):
        await collection.insert_one([{"num": 5}])
    with pytest.raises(InvalidArgumentError):
        await collection.insert_one("not an object")


@pytest.mark.asyncio
async def test_insert_many_rejects_mapping(collection):
    """Test that insert_many() only accepts a list."""
    with pytest.raises(InvalidArgumentError):
        await collection.insert_many({"num": 5})


@pytest.mark.asyncio
async def test_insert_rejects_scalar(collection):
    """Test that insert() rejects non-documents."""
    with pytest.raises(InvalidArgumentError):
        await collection.insert("not an object")
    with pytest.raises(InvalidArgumentError):
        await collection.insert([{"ok": 1}, 42])

    assert await collection.count() == 0


@pytest.mark.asyncio
async def test_insert_duplicate_id_rejected(populated):
    """Test that a colliding _id is rejected and nothing is inserted."""
    with pytest.raises(DuplicateIdError):
        await populated.insert({"_id": "0", "num": 5})
    with pytest.raises(DuplicateIdError):
        await populated.insert_many([{"num": 6}, {"_id": "1"}])

    assert await populated.count() == 4


@pytest.mark.asyncio
async def test_ids_are_successive_integers(collection):
    """Test that default ids count up from "0"."""
    for n in range(5):
        await collection.insert_one({"n": n})

    docs = await collection.find()
    assert [d["_id"] for d in docs] == ["0", "1", "2", "3", "4"]


@pytest.mark.asyncio
async def test_insert_writes_id_onto_document(collection):
    """Test that the caller's document receives its _id."""
    doc = {"foo": "bar"}
    await collection.insert_one(doc)

    assert doc == {"_id": "0", "foo": "bar"}


# -- Find --

@pytest.mark.asyncio
async def test_find_one(populated):
    """Test find_one returns the first document, not a list."""
    result = await populated.find_one({})

    assert result == {"_id": "0", "num": 1}


@pytest.mark.asyncio
async def test_find_one_no_match(populated):
    """Test find_one returns None without a match."""
    assert await populated.find_one({"num": 999}) is None


@pytest.mark.asyncio
async def test_find_one_with_projection(populated):
    """Test find_one strips _id when projected out."""
    assert await populated.find_one({}, {"_id": 0, "num": 1}) == {"num": 1}


@pytest.mark.asyncio
async def test_find_one_with_skip_and_sort(populated):
    """Test sort descending then skip one."""
    # Descending: first would be {num: 4}; skipping one leaves {num: 3}
    result = await populated.find_one({}, {"num": 1}, sort={"num": -1}, skip=1)

    assert result == {"_id": "2", "num": 3}


@pytest.mark.asyncio
async def test_find_all_in_store_order(populated):
    """Test find() with no arguments returns everything in order."""
    results = await populated.find()

    assert isinstance(results, list)
    assert [d["num"] for d in results] == [1, 2, 3, 4]


@pytest.mark.asyncio
async def test_find_with_projection(populated):
    """Test projection over many documents."""
    results = await populated.find({}, {"_id": 0, "num": 1})

    assert results == [{"num": 1}, {"num": 2}, {"num": 3}, {"num": 4}]


@pytest.mark.asyncio
async def test_projection_keeps_id_by_default(populated):
    """Test that _id is included unless excluded."""
    await populated.update({"num": 1}, {"$set": {"extra": True}})
    results = await populated.find({"num": 1}, {"extra": 1})

    assert results == [{"_id": "0", "extra": True}]


@pytest.mark.asyncio
async def test_find_with_skip_sort_and_limit(populated):
    """Test sort, then skip, then limit."""
    results = await populated.find({}, {"_id": 0, "num": 1}, sort={"num": -1}, skip=1, limit=2)

    assert results == [{"num": 3}, {"num": 2}]


@pytest.mark.asyncio
async def test_find_with_operators(populated):
    """Test a range query."""
    results = await populated.find({"num": {"$gt": 1, "$lte": 3}})

    assert [d["num"] for d in results] == [2, 3]


@pytest.mark.asyncio
async def test_find_rejects_bad_arguments(populated):
    """Test invalid query, projection, sort, skip and limit."""
    with pytest.raises(InvalidArgumentError):
        await populated.find("not a query")
    with pytest.raises(InvalidArgumentError):
        await populated.find({}, "not a projection")
    with pytest.raises(InvalidArgumentError):
        await populated.find({}, sort={"num": 0})
    with pytest.raises(InvalidArgumentError):
        await populated.find({}, skip="1")
    with pytest.raises(InvalidArgumentError):
        await populated.find({}, limit=1.5)


@pytest.mark.asyncio
async def test_find_and_count_are_idempotent(populated):
    """Test that repeated reads without writes agree."""
    assert await populated.find({"num": {"$gte": 2}}) == await populated.find({"num": {"$gte": 2}})
    assert await populated.count() == await populated.count()


@pytest.mark.asyncio
async def test_count_with_query(populated):
    """Test counting matching documents."""
    assert await populated.count({"num": {"$gte": 3}}) == 2


# -- Update --

@pytest.mark.asyncio
async def test_update_one(populated):
    """Test that update_one modifies a single match."""
    result = await populated.update_one({"num": {"$gte": 3}}, {"$set": {"updated": True}})

    assert result.matched_count == 1
    assert len(await populated.find({"updated": True})) == 1


@pytest.mark.asyncio
async def test_update_many(populated):
    """Test that update_many modifies every match."""
    result = await populated.update_many({"num": {"$gte": 3}}, {"$set": {"updated": True}})

    assert result.matched_count == 2
    assert result.modified_count == 2
    assert len(await populated.find({"updated": True})) == 2


@pytest.mark.asyncio
async def test_update_with_sort_selects_targets(populated):
    """Test that sort and limit choose which documents are patched."""
    await populated.update({}, {"$set": {"top": True}}, sort={"num": -1}, limit=1)

    assert [d["num"] for d in await populated.find({"top": True})] == [4]


@pytest.mark.asyncio
async def test_update_rejects_bad_arguments(populated):
    """Test invalid query and replacement."""
    with pytest.raises(InvalidArgumentError):
        await populated.update("not a query", {"num": 1})
    with pytest.raises(InvalidArgumentError):
        await populated.update({}, "not a replacement")


@pytest.mark.asyncio
async def test_bad_patch_changes_nothing(populated):
    """Test that a patch failing on one document leaves all untouched."""
    await populated.update({"num": 4}, {"num": "four"})

    with pytest.raises(InvalidArgumentError):
        await populated.update({}, {"$inc": {"num": 1}})

    assert [d["num"] for d in await populated.find()] == [1, 2, 3, "four"]


@pytest.mark.asyncio
async def test_update_no_match_is_noop(populated):
    """Test that an unmatched update without upsert changes nothing."""
    result = await populated.update({"num": 999}, {"num": 10})

    assert result.matched_count == 0
    assert await populated.find({"num": 10}) == []
    assert await populated.count() == 4


@pytest.mark.asyncio
async def test_upsert_if_no_match(populated):
    """Test that upsert inserts exactly one document."""
    result = await populated.update({"num": 999}, {"num": 10}, upsert=True)

    assert result.upserted_id == "4"
    assert len(await populated.find({"num": 10})) == 1
    assert await populated.count() == 5


@pytest.mark.asyncio
async def test_upsert_with_modifiers_keeps_query_fields(collection):
    """Test that an upsert starts from the query's equality fields."""
    await collection.update(
        {"firstname": "Bruce", "lastname": "BANNER", "age": {"$gt": 30}},
        {"$set": {"hasSuperPower": True}},
        upsert=True,
    )

    doc = await collection.find_one({"firstname": "Bruce"})
    assert doc == {"_id": "0", "firstname": "Bruce", "lastname": "BANNER", "hasSuperPower": True}


@pytest.mark.asyncio
async def test_update_preserves_id_and_identity(populated):
    """Test that a replacement keeps _id and mutates the stored object."""
    doc = await populated.find_one({"num": 1})

    await populated.update({"num": 1}, {"_id": "hijack", "num": 100})

    assert doc == {"_id": "0", "num": 100}
    assert await populated.find_one({"_id": "hijack"}) is None


@pytest.mark.asyncio
async def test_update_set_cannot_change_id(populated):
    """Test that $set on _id is ignored."""
    await populated.update_one({"num": 1}, {"$set": {"_id": "x", "num": 11}})

    assert await populated.find_one({"num": 11}) == {"_id": "0", "num": 11}


# -- Remove --

@pytest.mark.asyncio
async def test_remove_many(populated):
    """Test removing every match."""
    result = await populated.remove({"num": {"$gte": 3}})

    assert result.deleted_count == 2
    assert len(await populated.find()) == 2


@pytest.mark.asyncio
async def test_remove_just_one(populated):
    """Test removing a single document."""
    result = await populated.remove({}, just_one=True)

    assert result.deleted_count == 1
    assert len(await populated.find()) == 3


@pytest.mark.asyncio
async def test_remove_one_with_sort(populated):
    """Test that sort decides which document remove_one takes."""
    await populated.remove_one({}, sort={"num": -1})

    assert [d["num"] for d in await populated.find()] == [1, 2, 3]


@pytest.mark.asyncio
async def test_remove_everything(populated):
    """Test remove() without a query empties the collection."""
    await populated.remove()

    assert await populated.count() == 0


# -- Notifications --

def test_subscribe_misuse(collection):
    """Test subscription argument errors."""
    watcher = {}
    with pytest.raises(SubscriptionError):
        collection.subscribe(watcher, None)
    with pytest.raises(SubscriptionError):
        collection.subscribe(None, lambda changes: None)
    with pytest.raises(SubscriptionError):
        collection.unsubscribe(watcher)

    collection.subscribe(watcher, lambda changes: None)
    assert collection.is_subscribed(watcher)
    collection.unsubscribe(watcher)
    assert not collection.is_subscribed(watcher)


@pytest.mark.asyncio
async def test_notify_insert(collection):
    """Test a watcher is told about an insert."""
    recorder = Recorder()
    collection.subscribe(recorder, recorder)

    await collection.insert({"foo": "bar"})
    await asyncio.sleep(SETTLE)

    assert recorder.batches == [[{
        "_id": "0",
        "collection": "test-collection",
        "operationType": "insert",
        "fullDocument": {"_id": "0", "foo": "bar"},
    }]]


@pytest.mark.asyncio
async def test_notify_update_replaces_pending_insert(collection):
    """Test that an update in the same window supersedes the insert."""
    recorder = Recorder()
    await collection.insert({"foo": "bar"})
    collection.subscribe(recorder, recorder)

    await collection.update({"foo": "bar"}, {"foo": "barbar"})
    await asyncio.sleep(SETTLE)

    assert recorder.batches == [[{
        "_id": "0",
        "collection": "test-collection",
        "operationType": "update",
        "fullDocument": {"_id": "0", "foo": "barbar"},
    }]]


@pytest.mark.asyncio
async def test_notify_remove(collection):
    """Test that remove changes carry no full document."""
    recorder = Recorder()
    await collection.insert({"foo": "bar"})
    collection.subscribe(recorder, recorder)

    await collection.remove()
    await asyncio.sleep(SETTLE)

    assert recorder.batches == [[{
        "_id": "0",
        "collection": "test-collection",
        "operationType": "remove",
    }]]


@pytest.mark.asyncio
async def test_notify_once_for_many_operations(collection):
    """Test two inserts within one window produce one callback."""
    recorder = Recorder()
    collection.subscribe(recorder, recorder)

    await collection.insert({"foo": "bar"})
    await collection.insert({"bar": "foo"})
    await asyncio.sleep(SETTLE)

    assert recorder.batches == [[
        {
            "_id": "0",
            "collection": "test-collection",
            "operationType": "insert",
            "fullDocument": {"_id": "0", "foo": "bar"},
        },
        {
            "_id": "1",
            "collection": "test-collection",
            "operationType": "insert",
            "fullDocument": {"_id": "1", "bar": "foo"},
        },
    ]]


@pytest.mark.asyncio
async def test_separate_windows_notify_separately(collection):
    """Test that a quiet period splits deliveries."""
    recorder = Recorder()
    collection.subscribe(recorder, recorder)

    await collection.insert({"n": 1})
    await asyncio.sleep(SETTLE)
    await collection.insert({"n": 2})
    await asyncio.sleep(SETTLE)

    assert [len(batch) for batch in recorder.batches] == [1, 1]


@pytest.mark.asyncio
async def test_failed_operation_does_not_notify(populated):
    """Test that rejected writes produce no changes."""
    with pytest.raises(DuplicateIdError):
        await populated.insert({"_id": "0"})

    assert populated.notification_state is NotifierState.IDLE


@pytest.mark.asyncio
async def test_unmatched_remove_does_not_notify(populated):
    """Test that removing nothing leaves the notifier idle."""
    await populated.remove({"num": 999})

    assert populated.notification_state is NotifierState.IDLE


@pytest.mark.asyncio
async def test_callback_mutations_start_new_window(collection):
    """Test that writes made from a callback are delivered next window."""
    batches = []

    async def on_changes(changes):
        batches.append([c.document_id for c in changes])
        if len(batches) == 1:
            await collection.insert_one({"from": "callback"})

    collection.subscribe(object(), on_changes)
    await collection.insert_one({"n": 1})
    await asyncio.sleep(SETTLE * 2)

    assert batches == [["0"], ["1"]]


@pytest.mark.asyncio
async def test_negative_skip_and_limit_are_ignored(populated, caplog):
    """Test that negative counts act as no skip and no limit."""
    results = await populated.find({}, skip=-1, limit=-5)

    assert len(results) == 4
    assert "Ignoring negative skip=-1" in caplog.text


@pytest.mark.asyncio
async def test_same_document_twice_in_batch_rejected(collection):
    """Test that inserting one dict twice in a batch stores nothing."""
    doc = {"n": 1}
    with pytest.raises(InvalidArgumentError):
        await collection.insert_many([doc, doc])

    assert await collection.count() == 0
    assert collection.notification_state is NotifierState.IDLE


@pytest.mark.asyncio
@pytest.mark.parametrize("operation", ["remove", "update"])
async def test_unmatched_write_pushes_pending_delivery_back(operation):
    """Test that a write matching nothing restarts a pending window."""
    collection = ReactiveCollection("slow", ReactiveConfig(notify_delay_ms=100))
    recorder = Recorder()
    collection.subscribe(recorder, recorder)
    try:
        await collection.insert_one({"n": 1})
        await asyncio.sleep(0.07)

        if operation == "remove":
            await collection.remove({"n": 999})
        else:
            await collection.update({"n": 999}, {"$set": {"seen": True}})
        await asyncio.sleep(0.05)

        # 120ms after the insert but only 50ms after the last write
        assert recorder.batches == []

        await asyncio.sleep(0.15)
        assert [[c["operationType"] for c in batch] for batch in recorder.batches] == [["insert"]]
    finally:
        collection.close()

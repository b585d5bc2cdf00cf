"""Unit tests for Repository, lifecycle hooks and resource wrappers."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from bson import ObjectId

from doc_query.core.connection import StoreSettings
from doc_query.core.events import COLLECTION_EVENT, QUERY_EVENT
from doc_query.core.exceptions import MissingCollectionError
from doc_query.core.registry import EntityRegistry
from doc_query.mapping.builder import entity
from doc_query.repository.base import Repository, use_store
from doc_query.repository.hooks import LIFECYCLE_EVENTS, HookRegistry
from doc_query.repository.resource import Collection, Resource, wrap_record


@pytest.fixture
def repo(
    engines: SimpleNamespace,
    schema: SimpleNamespace,
    settings: StoreSettings,
    registry: EntityRegistry,
) -> Repository:
    return Repository(schema.post, settings, registry=registry)


@pytest.fixture
def seeded(driver) -> SimpleNamespace:
    (ann,) = driver.seed("authors", {"name": "Ann"})
    one, two = driver.seed(
        "posts",
        {"title": "One", "status": "draft", "authorId": ann["_id"]},
        {"title": "Two", "status": "draft", "authorId": ann["_id"]},
    )
    driver.seed("comments", {"body": "c1", "postId": one["_id"]})
    driver.log.clear()
    return SimpleNamespace(ann=ann, one=one, two=two)


class TestHookRegistry:
    async def test_first_result_wins(self) -> None:
        hooks = HookRegistry()
        first = AsyncMock(return_value=None)
        second = AsyncMock(return_value="second")
        third = AsyncMock(return_value="third")
        hooks.before("get", first).before("get", second).before("get", third)

        assert await hooks.run("get", "q") == "second"
        first.assert_awaited_once_with("q")
        third.assert_not_awaited()

    async def test_no_hooks(self) -> None:
        assert await HookRegistry().run("get", "q") is None

    async def test_hook_errors_propagate(self) -> None:
        hooks = HookRegistry().before("get", AsyncMock(side_effect=KeyError("boom")))
        with pytest.raises(KeyError):
            await hooks.run("get", "q")

    def test_use_store_registers_every_lifecycle_event(
        self, schema: SimpleNamespace, settings: StoreSettings, registry: EntityRegistry
    ) -> None:
        hooks = HookRegistry()
        use_store(hooks, schema.tag, settings, registry)
        assert all(len(hooks.hooks(event)) == 1 for event in LIFECYCLE_EVENTS)

    def test_use_store_validates_settings(
        self, schema: SimpleNamespace, registry: EntityRegistry
    ) -> None:
        thing = entity("thing").key().build()
        with pytest.raises(MissingCollectionError, match="must specify a collection name"):
            use_store(HookRegistry(), thing, StoreSettings(url="mongodb://db"), registry)


class TestRepositoryReads:
    async def test_get(self, repo: Repository, seeded: SimpleNamespace) -> None:
        resource = await repo.get(str(seeded.one["_id"]))

        assert isinstance(resource, Resource)
        assert resource.title == "One"
        assert resource.id == str(seeded.one["_id"])
        assert not resource.is_new()

    async def test_get_missing(self, repo: Repository, seeded: SimpleNamespace) -> None:
        assert await repo.get(str(ObjectId())) is None

    async def test_find_wraps_collection(self, repo: Repository, seeded: SimpleNamespace) -> None:
        collection = await repo.find({"where": {"status": "draft"}})

        assert isinstance(collection, Collection)
        assert [r.title for r in collection] == ["One", "Two"]
        assert (collection.from_, collection.size) == (0, 25)

    async def test_find_pagination_metadata(
        self, repo: Repository, seeded: SimpleNamespace
    ) -> None:
        collection = await repo.find({"from": 1, "size": 1, "with_count": True})

        assert [r.title for r in collection] == ["Two"]
        assert (collection.from_, collection.size, collection.count) == (1, 1, 2)

    async def test_find_wraps_related(self, repo: Repository, seeded: SimpleNamespace) -> None:
        collection = await repo.find({"include_related": ["author", "comments"]})

        first = collection[0]
        assert isinstance(first.author, Resource)
        assert first.author.name == "Ann"
        assert isinstance(first.comments, Collection)
        assert [c.body for c in first.comments] == ["c1"]
        assert collection[1].comments == []

    async def test_events_fire_once_per_read(
        self, repo: Repository, seeded: SimpleNamespace
    ) -> None:
        queries, collections = MagicMock(), MagicMock()
        repo.hooks.on(QUERY_EVENT, queries).on(COLLECTION_EVENT, collections)

        collection = await repo.find({"size": 10})
        await repo.get(str(seeded.one["_id"]))

        assert queries.call_count == 2
        collections.assert_called_once_with(collection)


class TestRepositoryWrites:
    async def test_create(self, repo: Repository, driver) -> None:
        resource = await repo.create({"title": "New"})

        assert not resource.is_new()
        assert resource.status == "draft"
        assert resource.changed() == {}
        assert str(driver.collection("posts").documents[-1]["_id"]) == resource.id

    async def test_create_resets_given_resource(self, repo: Repository, schema) -> None:
        resource = Resource(schema.post, {"title": "New"})
        returned = await repo.create(resource)
        assert returned is resource
        assert resource.id is not None

    async def test_save_new_resource_creates(self, repo: Repository, schema, driver) -> None:
        resource = Resource(schema.post, {"title": "New"})
        await repo.save(resource)

        assert resource.id is not None
        assert len(driver.calls("insert")) == 1

    async def test_save_existing_resource_replaces(
        self, repo: Repository, driver, seeded: SimpleNamespace
    ) -> None:
        resource = await repo.get(str(seeded.one["_id"]))
        assert resource is not None
        resource.title = "Saved"
        assert resource.changed() == {"title": "Saved"}

        await repo.save(resource)

        assert resource.changed() == {}
        assert seeded.one["title"] == "Saved"
        assert driver.calls("find_and_modify")
        assert driver.calls("insert") == []

    async def test_update(self, repo: Repository, seeded: SimpleNamespace) -> None:
        resource = await repo.update(str(seeded.two["_id"]), {"status": "published"})
        assert resource is not None
        assert resource.status == "published"

    async def test_update_missing(self, repo: Repository, seeded: SimpleNamespace) -> None:
        assert await repo.update(str(ObjectId()), {"status": "x"}) is None

    async def test_delete(self, repo: Repository, driver, seeded: SimpleNamespace) -> None:
        assert await repo.delete(str(seeded.one["_id"])) == 1
        assert len(driver.collection("posts").documents) == 1

    async def test_collection_operations(
        self, repo: Repository, driver, seeded: SimpleNamespace
    ) -> None:
        assert await repo.update_many({"status": "draft"}, {"status": "archived"}) == 2
        assert await repo.delete_many({"status": "archived"}) == 2
        assert driver.collection("posts").documents == []

    async def test_custom_hook_runs_first(self, schema, settings, registry, engines) -> None:
        hooks = HookRegistry()
        cached = Resource(schema.post, {"id": "cached"})
        hooks.before("get", AsyncMock(return_value=cached))
        repo = Repository(schema.post, settings, registry=registry, hooks=hooks)

        assert await repo.get("anything") is cached


class TestResource:
    def test_attribute_access(self, schema: SimpleNamespace) -> None:
        resource = Resource(schema.post, {"title": "Hi"})
        assert resource.title == "Hi"
        assert resource.status is None
        with pytest.raises(AttributeError):
            resource.nonexistent  # noqa: B018

    def test_set_and_changed(self, schema: SimpleNamespace) -> None:
        resource = Resource(schema.post, {"title": "Hi"})
        resource.title = "Changed"
        resource.set("status", "draft")
        assert resource.changed() == {"title": "Changed", "status": "draft"}

    def test_is_new(self, schema: SimpleNamespace) -> None:
        assert Resource(schema.post).is_new()
        assert not Resource(schema.post, {"id": "x"}).is_new()

    def test_wrap_record_to_dict(self, schema: SimpleNamespace) -> None:
        record = {
            "id": "p",
            "author": {"id": "a", "name": "Ann"},
            "comments": [{"id": "c", "body": "hi"}],
        }
        resource = wrap_record(schema.post, record)

        assert resource.author.entity is schema.author
        assert resource.comments[0].entity is schema.comment
        assert resource.to_dict() == record

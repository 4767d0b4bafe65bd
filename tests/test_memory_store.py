"""
Test cases for the in-memory object store.
Covers optimistic concurrency, generation tracking, cascades and watch events.
"""

from unittest.mock import Mock

import pytest

from buildsched.core.enums import ObjectKind, WatchEventType
from buildsched.core.errors import AlreadyExistsError, ConflictError, InvalidObjectError, NotFoundError
from buildsched.core.models import Build, ObjectMeta
from buildsched.store import get_object_store, InMemoryObjectStore, RedisObjectStore
from buildsched.store.base import object_from_dict
from conftest import NAMESPACE, make_build, make_image

IMAGE = ObjectKind.IMAGE.value
BUILD = ObjectKind.BUILD.value


class TestCreate:

    @pytest.mark.asyncio
    async def test_create_sets_metadata(self, store):
        created = await store.create(make_image())

        assert created.metadata.uid
        assert created.metadata.resource_version == 1
        assert created.metadata.generation == 1
        assert created.metadata.creation_timestamp
        assert (await store.get(IMAGE, NAMESPACE, "app")) == created

    @pytest.mark.asyncio
    async def test_duplicate_name(self, store):
        await store.create(make_image())
        with pytest.raises(AlreadyExistsError):
            await store.create(make_image())

    @pytest.mark.asyncio
    async def test_generate_name(self, store):
        build = Build(metadata=ObjectMeta(generate_name="app-build-1-", namespace=NAMESPACE))
        first = await store.create(build)
        second = await store.create(build)

        assert first.name.startswith("app-build-1-")
        assert len(first.name) == len("app-build-1-") + 5
        assert first.name != second.name

    @pytest.mark.asyncio
    async def test_name_required(self, store):
        with pytest.raises(InvalidObjectError):
            await store.create(Build(metadata=ObjectMeta(namespace=NAMESPACE)))

    @pytest.mark.asyncio
    async def test_name_too_long(self, store):
        with pytest.raises(InvalidObjectError):
            await store.create(make_image(name="a" * 64))

    @pytest.mark.asyncio
    async def test_returned_objects_are_copies(self, store):
        created = await store.create(make_image())
        created.spec.tag = "changed"
        assert (await store.get(IMAGE, NAMESPACE, "app")).spec.tag == "gcr.io/example/app"


class TestUpdate:

    @pytest.mark.asyncio
    async def test_spec_change_bumps_generation(self, store):
        image = await store.create(make_image())
        image.spec.tag = "gcr.io/example/other"

        updated = await store.update(image)

        assert updated.metadata.generation == 2
        assert updated.metadata.resource_version == 2

    @pytest.mark.asyncio
    async def test_metadata_change_keeps_generation(self, store):
        image = await store.create(make_image())
        image.metadata.labels["extra"] = "1"

        updated = await store.update(image)

        assert updated.metadata.generation == 1
        assert updated.metadata.labels["extra"] == "1"

    @pytest.mark.asyncio
    async def test_update_keeps_status(self, store):
        image = await store.create(make_image())
        image.status.latest_image = "ignored"
        updated = await store.update(image)
        assert updated.status.latest_image == ""

    @pytest.mark.asyncio
    async def test_stale_update_conflicts(self, store):
        image = await store.create(make_image())
        stale = await store.get(IMAGE, NAMESPACE, "app")
        image.spec.tag = "gcr.io/example/first"
        await store.update(image)

        stale.spec.tag = "gcr.io/example/second"
        with pytest.raises(ConflictError):
            await store.update(stale)
        assert store.stats['conflicts'] == 1

    @pytest.mark.asyncio
    async def test_update_missing(self, store):
        with pytest.raises(NotFoundError):
            await store.update(make_image())

    @pytest.mark.asyncio
    async def test_status_update_keeps_spec(self, store):
        image = await store.create(make_image())
        image.spec.tag = "ignored"
        image.status.latest_image = "gcr.io/example/app@sha256:" + "1" * 64

        updated = await store.update_status(image)

        assert updated.spec.tag == "gcr.io/example/app"
        assert updated.status.latest_image.endswith("1" * 64)
        assert updated.metadata.generation == 1
        assert updated.metadata.resource_version == 2

    @pytest.mark.asyncio
    async def test_stale_status_update_conflicts(self, store):
        image = await store.create(make_image())
        await store.update_status(image)
        with pytest.raises(ConflictError):
            await store.update_status(image)


class TestListAndDelete:

    @pytest.mark.asyncio
    async def test_list_by_namespace_and_labels(self, store):
        image = make_image()
        await store.create(make_build(image, 1))
        await store.create(make_build(make_image(name="web"), 1))
        await store.create(make_build(make_image(namespace="team-b"), 1))

        assert len(await store.list(BUILD)) == 3
        assert len(await store.list(BUILD, namespace=NAMESPACE)) == 2
        only_app = await store.list(BUILD, namespace=NAMESPACE, labels={"image.buildsched.io/image": "app"})
        assert [b.name for b in only_app] == ["app-build-1"]

    @pytest.mark.asyncio
    async def test_delete_cascades_to_owned_objects(self, store):
        """Test that deleting an image removes its builds"""
        image = await store.create(make_image())
        await store.create(make_build(image, 1))
        await store.create(make_build(image, 2))
        other = await store.create(make_image(name="web"))
        await store.create(make_build(other, 1))

        await store.delete(IMAGE, NAMESPACE, "app")

        remaining = await store.list(BUILD)
        assert [b.name for b in remaining] == ["web-build-1"]
        assert store.stats['deletes'] == 3

    @pytest.mark.asyncio
    async def test_delete_uid_precondition(self, store):
        await store.create(make_image())
        with pytest.raises(ConflictError):
            await store.delete(IMAGE, NAMESPACE, "app", uid="other")
        await store.get(IMAGE, NAMESPACE, "app")

    @pytest.mark.asyncio
    async def test_delete_missing(self, store):
        with pytest.raises(NotFoundError):
            await store.delete(IMAGE, NAMESPACE, "app")


class TestWatch:

    @pytest.mark.asyncio
    async def test_events_for_every_write(self, store):
        callback = Mock()
        store.watch(callback)

        image = await store.create(make_image())
        image.spec.tag = "gcr.io/example/other"
        await store.update(image)
        await store.delete(IMAGE, NAMESPACE, "app")

        types = [call.args[0].type for call in callback.call_args_list]
        assert types == [WatchEventType.ADDED, WatchEventType.MODIFIED, WatchEventType.DELETED]

    @pytest.mark.asyncio
    async def test_failing_watcher_does_not_break_writes(self, store):
        store.watch(Mock(side_effect=RuntimeError("boom")))
        healthy = Mock()
        store.watch(healthy)

        await store.create(make_image())

        healthy.assert_called_once()


class TestSerialization:

    def test_round_trip_through_dict(self):
        build = make_build(make_image(), 3, "True")
        assert object_from_dict(build.to_dict()) == build

    def test_unknown_kind(self):
        with pytest.raises(InvalidObjectError):
            object_from_dict({"kind": "Deployment"})


class TestFactory:

    def test_memory(self):
        assert isinstance(get_object_store('memory', {}), InMemoryObjectStore)

    def test_redis(self):
        store = get_object_store('redis', {'url': 'redis://cache:6379', 'key_prefix': 'ci:'})
        assert isinstance(store, RedisObjectStore)
        assert store.url == 'redis://cache:6379'
        assert store.events_channel == 'ci:events'

    def test_unknown(self):
        with pytest.raises(ValueError):
            get_object_store('etcd', {})

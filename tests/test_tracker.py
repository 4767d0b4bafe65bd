"""
Test cases for the builder -> image dependency tracker.
"""

import asyncio
from unittest.mock import Mock

import pytest

from buildsched.controller.tracker import Tracker
from conftest import make_builder, make_cluster_builder


class FakeClock:

    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class TestTracking:

    @pytest.mark.asyncio
    async def test_dependents_of_tracked_builder(self):
        tracker = Tracker(callback=Mock())
        builder = make_cluster_builder()

        tracker.track(builder.tracking_key(), "team-a/app")
        tracker.track(builder.tracking_key(), "team-b/web")
        tracker.track(builder.tracking_key(), "team-a/app")

        assert sorted(tracker.dependents(builder.tracking_key())) == ["team-a/app", "team-b/web"]
        assert tracker.dependents(make_builder().tracking_key()) == []

    @pytest.mark.asyncio
    async def test_builder_kinds_do_not_collide(self):
        tracker = Tracker(callback=Mock())
        tracker.track(make_builder(name="shared", namespace="").tracking_key(), "team-a/app")
        assert tracker.dependents(make_cluster_builder(name="shared").tracking_key()) == []

    @pytest.mark.asyncio
    async def test_lease_expires_unless_renewed(self):
        """Test that links lapse after the lease and renewal extends them"""
        clock = FakeClock()
        tracker = Tracker(callback=Mock(), lease_seconds=10, timer=clock)
        key = make_cluster_builder().tracking_key()

        tracker.track(key, "team-a/app")
        tracker.track(key, "team-a/web")
        clock.now = 8
        tracker.track(key, "team-a/app")
        clock.now = 12

        assert tracker.dependents(key) == ["team-a/app"]

        clock.now = 30
        assert tracker.dependents(key) == []


class TestNotification:

    @pytest.mark.asyncio
    async def test_changed_builder_enqueues_dependents(self):
        callback = Mock()
        tracker = Tracker(callback=callback)
        builder = make_cluster_builder()
        tracker.track(builder.tracking_key(), "team-a/app")
        tracker.start()

        tracker.on_changed(builder)
        await asyncio.wait_for(tracker._notifications.join(), timeout=1)
        await tracker.stop()

        callback.assert_called_once_with("team-a/app")
        assert tracker.stats['notified'] == 1

    @pytest.mark.asyncio
    async def test_untracked_builder_notifies_nobody(self):
        callback = Mock()
        tracker = Tracker(callback=callback)
        tracker.on_changed(make_cluster_builder())
        assert tracker.stats['notified'] == 0

    @pytest.mark.asyncio
    async def test_full_buffer_drops_notifications(self):
        tracker = Tracker(callback=Mock(), buffer_size=1)
        builder = make_cluster_builder()
        tracker.track(builder.tracking_key(), "team-a/app")
        tracker.track(builder.tracking_key(), "team-a/web")

        tracker.on_changed(builder)

        assert tracker.stats == {'notified': 1, 'dropped': 1}

"""
Test cases for the controller CLI.
"""

import asyncio
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from buildsched.cli import cli
from buildsched.core.models import BUILD_CHANGES_ANNOTATION
from buildsched.store.memory import InMemoryObjectStore
from conftest import make_build, make_image


@pytest.fixture
def runner(tmp_path, monkeypatch):
    # Keep config discovery away from any global_config.yaml in the checkout
    monkeypatch.chdir(tmp_path)
    return CliRunner()


def store_with_build(changes: str) -> InMemoryObjectStore:
    store = InMemoryObjectStore()
    build = make_build(make_image(), 1)
    build.metadata.annotations[BUILD_CHANGES_ANNOTATION] = changes
    asyncio.run(store.create(build))
    return store


class TestExplain:

    def test_explains_build(self, runner):
        store = store_with_build('[{"reason":"COMMIT","old":"c1","new":"c2"}]')
        with patch('buildsched.store.get_object_store', return_value=store):
            result = runner.invoke(cli, ['explain', 'team-a/app-build-1'])

        assert result.exit_code == 0
        assert "Build reason(s): COMMIT" in result.output
        assert "\t+ c2" in result.output

    def test_build_without_changes(self, runner):
        store = store_with_build("")
        with patch('buildsched.store.get_object_store', return_value=store):
            result = runner.invoke(cli, ['explain', 'team-a/app-build-1'])

        assert result.exit_code == 0
        assert "carries no recorded changes" in result.output

    def test_missing_build(self, runner):
        result = runner.invoke(cli, ['explain', 'team-a/nope'])
        assert result.exit_code == 1
        assert "not found" in result.output

    def test_malformed_changes(self, runner):
        store = store_with_build("{broken")
        with patch('buildsched.store.get_object_store', return_value=store):
            result = runner.invoke(cli, ['explain', 'team-a/app-build-1'])

        assert result.exit_code == 1
        assert "Cannot explain build" in result.output


class TestInfo:

    def test_info_runs(self, runner):
        result = runner.invoke(cli, ['info'])
        assert result.exit_code == 0

    def test_start_rejects_bad_log_level(self, runner):
        result = runner.invoke(cli, ['start', '--log-level', 'VERBOSE'])
        assert result.exit_code == 2

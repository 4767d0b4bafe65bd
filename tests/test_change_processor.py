"""
Test cases for the change-detection engine.
Covers each change kind, aggregation order, payload encoding and priority.
"""

import json

import pytest

from buildsched.buildchange import (
    BuildpackChange,
    ChangeProcessor,
    ChangeSummary,
    CommitChange,
    Config,
    ConfigChange,
    StackChange,
    TriggerChange,
)
from buildsched.buildchange.changes import omit_empty
from buildsched.core.enums import BuildPriority
from buildsched.core.models import BuildpackInfo, EnvVar, Git, ResourceRequirements, SourceConfig


def git_config(revision: str = "c1", **kwargs) -> Config:
    return Config(source=SourceConfig(git=Git(url="https://github.com/a/b", revision=revision)), **kwargs)


class TestChangeKinds:
    """Build-required rules of the individual change kinds"""

    def test_trigger_requires_build_when_new_is_set(self):
        assert TriggerChange(new="Mon, 01 Jan 2024 00:00:00 +0000").is_build_required()
        assert not TriggerChange(new="").is_build_required()

    def test_commit_requires_build_on_revision_change(self):
        assert CommitChange(old="c1", new="c2").is_build_required()
        assert not CommitChange(old="c1", new="c1").is_build_required()

    def test_config_ignores_revision_only_difference(self):
        """A moved revision is a COMMIT, never a CONFIG change"""
        change = ConfigChange(old=git_config("c1"), new=git_config("c2"))
        assert not change.is_build_required()

    def test_config_detects_env_change(self):
        old = git_config()
        new = git_config(env=[EnvVar(name="NODE_ENV", value="production")])
        assert ConfigChange(old=old, new=new).is_build_required()

    def test_config_detects_resources_change(self):
        old = git_config()
        new = git_config(resources=ResourceRequirements(limits={"memory": "1Gi"}))
        assert ConfigChange(old=old, new=new).is_build_required()

    def test_config_detects_source_url_change(self):
        old = git_config()
        new = Config(source=SourceConfig(git=Git(url="https://github.com/a/other", revision="c1")))
        assert ConfigChange(old=old, new=new).is_build_required()

    def test_config_equal_is_not_required(self):
        assert not ConfigChange(old=git_config(), new=git_config()).is_build_required()

    def test_buildpack_requires_build_when_old_non_empty(self):
        change = BuildpackChange(old=[BuildpackInfo(id="bp", version="1")], new=[])
        assert change.is_build_required()
        assert not BuildpackChange().is_build_required()

    def test_buildpack_lists_are_sorted_by_id(self):
        change = BuildpackChange(
            old=[BuildpackInfo(id="z", version="1"), BuildpackInfo(id="a", version="1")],
            new=[BuildpackInfo(id="z", version="2"), BuildpackInfo(id="a", version="2")],
        )
        assert [bp.id for bp in change.old] == ["a", "z"]
        assert [bp.id for bp in change.new] == ["a", "z"]

    def test_stack_compares_identifiers(self):
        assert StackChange(old="sha256:" + "1" * 64, new="sha256:" + "2" * 64).is_build_required()
        assert not StackChange(old="full-cnb", new="full-cnb").is_build_required()

    def test_priorities(self):
        assert TriggerChange.priority == BuildPriority.HIGH
        assert CommitChange.priority == BuildPriority.HIGH
        assert ConfigChange.priority == BuildPriority.HIGH
        assert BuildpackChange.priority == BuildPriority.LOW
        assert StackChange.priority == BuildPriority.LOW


class TestOmitEmpty:
    """Payload pruning"""

    def test_drops_empty_values_recursively(self):
        value = {"a": "", "b": None, "c": [], "d": {}, "e": {"f": {"g": ""}}, "h": "x"}
        assert omit_empty(value) == {"h": "x"}

    def test_keeps_list_elements(self):
        assert omit_empty([{"id": "bp", "version": ""}]) == [{"id": "bp"}]


class TestChangeProcessor:
    """Aggregation into a ChangeSummary"""

    def test_no_changes_summarizes_to_not_needed(self):
        summary = ChangeProcessor().process(None).process(CommitChange(old="c1", new="c1")).summarize()
        assert summary == ChangeSummary.not_needed()
        assert summary.reasons_str == ""
        assert summary.changes_str == ""
        assert summary.priority is None

    def test_reasons_keep_processing_order(self):
        summary = (ChangeProcessor()
                   .process(TriggerChange(new="now"))
                   .process(CommitChange(old="c1", new="c2"))
                   .process(StackChange(old="a", new="b"))
                   .summarize())
        assert summary.reasons_str == "TRIGGER,COMMIT,STACK"
        assert summary.reasons == ["TRIGGER", "COMMIT", "STACK"]

    def test_changes_str_is_compact_json(self):
        summary = ChangeProcessor().process(CommitChange(old="c1", new="c2")).summarize()
        assert summary.changes_str == '[{"reason":"COMMIT","old":"c1","new":"c2"}]'

    def test_config_payload_omits_empty_fields(self):
        change = ConfigChange(old=Config(), new=git_config())
        summary = ChangeProcessor().process(change).summarize()
        assert json.loads(summary.changes_str) == [{
            "reason": "CONFIG",
            "old": {},
            "new": {"source": {"git": {"url": "https://github.com/a/b", "revision": "c1"}}},
        }]

    def test_buildpack_payload(self):
        change = BuildpackChange(old=[BuildpackInfo(id="bp", version="1")],
                                 new=[BuildpackInfo(id="bp", version="2")])
        summary = ChangeProcessor().process(change).summarize()
        assert summary.changes_str == (
            '[{"reason":"BUILDPACK","old":[{"id":"bp","version":"1"}],"new":[{"id":"bp","version":"2"}]}]'
        )

    def test_priority_high_wins(self):
        summary = (ChangeProcessor()
                   .process(BuildpackChange(old=[BuildpackInfo(id="bp", version="1")]))
                   .process(TriggerChange(new="now"))
                   .summarize())
        assert summary.priority == BuildPriority.HIGH

    def test_priority_low_when_only_low_changes(self):
        summary = (ChangeProcessor()
                   .process(BuildpackChange(old=[BuildpackInfo(id="bp", version="1")]))
                   .process(StackChange(old="a", new="b"))
                   .summarize())
        assert summary.priority == BuildPriority.LOW

    def test_same_reason_twice_keeps_position_and_last_payload(self):
        summary = (ChangeProcessor()
                   .process(CommitChange(old="c1", new="c2"))
                   .process(StackChange(old="a", new="b"))
                   .process(CommitChange(old="c1", new="c3"))
                   .summarize())
        assert summary.reasons_str == "COMMIT,STACK"
        assert json.loads(summary.changes_str)[0]["new"] == "c3"

    def test_summarize_is_deterministic(self):
        def run():
            return (ChangeProcessor()
                    .process(TriggerChange(new="now"))
                    .process(ConfigChange(old=Config(), new=git_config()))
                    .summarize())
        assert run() == run()

    @pytest.mark.parametrize("change", [
        TriggerChange(new=""),
        CommitChange(old="c1", new="c1"),
        ConfigChange(old=git_config(), new=git_config()),
        BuildpackChange(),
        StackChange(old="a", new="a"),
    ])
    def test_unneeded_change_is_dropped(self, change):
        assert not ChangeProcessor().process(change).has_changes()

"""
Test cases for child object naming and image reference parsing.
"""

import pytest

from buildsched.core.errors import InvalidReferenceError
from buildsched.core.naming import MAX_NAME_LENGTH, child_name, object_key, split_key
from buildsched.core.reference import parse_reference


class TestChildName:

    def test_short(self):
        assert child_name("app", "-source") == "app-source"

    def test_long_parent_is_truncated_with_hash(self):
        name = child_name("p" * 70, "-cache")
        assert len(name) == MAX_NAME_LENGTH
        assert name.endswith("-cache")

    def test_long_parents_with_common_prefix_differ(self):
        assert child_name("p" * 70 + "a", "-cache") != child_name("p" * 70 + "b", "-cache")


class TestKeys:

    def test_split(self):
        assert split_key("team-a/app") == ("team-a", "app")
        assert split_key("builder") == ("", "builder")

    def test_split_invalid(self):
        with pytest.raises(ValueError):
            split_key("a/b/c")

    def test_object_key(self):
        assert object_key("team-a", "app") == "team-a/app"
        assert object_key("", "builder") == "builder"


class TestParseReference:

    @pytest.mark.parametrize("ref,registry,repository,identifier", [
        ("gcr.io/stacks/run:full-cnb", "gcr.io", "stacks/run", "full-cnb"),
        ("ubuntu", "index.docker.io", "library/ubuntu", "latest"),
        ("localhost:5000/app:v2", "localhost:5000", "app", "v2"),
        ("gcr.io/stacks/run@sha256:" + "a" * 64, "gcr.io", "stacks/run", "sha256:" + "a" * 64),
    ])
    def test_valid(self, ref, registry, repository, identifier):
        parsed = parse_reference(ref)
        assert (parsed.registry, parsed.repository, parsed.identifier()) == (registry, repository, identifier)

    @pytest.mark.parametrize("ref", ["", "UPPER/case", "gcr.io/run@sha256:short", "app:bad tag"])
    def test_invalid(self, ref):
        with pytest.raises(InvalidReferenceError):
            parse_reference(ref)

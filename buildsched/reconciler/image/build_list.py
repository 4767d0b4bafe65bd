from typing import List, Optional

from ...core.models import Build


def by_creation(build: Build):
    # Build number breaks ties between builds created in the same instant
    return build.metadata.creation_timestamp, build.build_number()


class BuildList:
    """An image's builds, oldest first, partitioned by outcome"""

    def __init__(self, builds: List[Build]):
        self.builds = sorted(builds, key=by_creation)
        self.successful_builds = [b for b in self.builds if b.is_success()]
        self.failed_builds = [b for b in self.builds if b.is_failure()]

    @property
    def last_build(self) -> Optional[Build]:
        return self.builds[-1] if self.builds else None

    def number_failed_builds(self) -> int:
        return len(self.failed_builds)

    def oldest_failure(self) -> Optional[Build]:
        return self.failed_builds[0] if self.failed_builds else None

    def number_successful_builds(self) -> int:
        return len(self.successful_builds)

    def oldest_success(self) -> Optional[Build]:
        return self.successful_builds[0] if self.successful_builds else None

    def highest_build_number(self) -> int:
        return max((b.build_number() for b in self.builds), default=0)

"""
Feeds the change-detection engine from an image, its latest build, its
source resolver and its builder.
"""
from dataclasses import dataclass
from email.utils import format_datetime
from datetime import datetime, timezone
from typing import Optional

from ...buildchange import (
    BuildpackChange,
    ChangeProcessor,
    ChangeSummary,
    CommitChange,
    Config,
    ConfigChange,
    StackChange,
    TriggerChange,
)
from ...core.builder import BuilderResource
from ...core.enums import ConditionStatus
from ...core.models import BUILD_NEEDED_ANNOTATION, Build, Image, SourceResolver
from ...core.reference import parse_reference


@dataclass
class BuildRequiredResult:
    """``status`` is True (build), False (up to date) or Unknown (cannot tell yet)"""
    status: ConditionStatus
    summary: ChangeSummary

    @classmethod
    def unknown(cls) -> 'BuildRequiredResult':
        return cls(status=ConditionStatus.UNKNOWN, summary=ChangeSummary.not_needed())

    @classmethod
    def from_summary(cls, summary: ChangeSummary) -> 'BuildRequiredResult':
        status = ConditionStatus.TRUE if summary.has_changes else ConditionStatus.FALSE
        return cls(status=status, summary=summary)


def is_build_required(image: Image,
                      last_build: Optional[Build],
                      source_resolver: SourceResolver,
                      builder: BuilderResource) -> BuildRequiredResult:
    """
    Raises:
        InvalidReferenceError: a run image reference cannot be parsed
    """
    if not source_resolver.ready() or not builder.ready():
        return BuildRequiredResult.unknown()

    summary = (ChangeProcessor()
               .process(trigger_change(last_build))
               .process(commit_change(last_build, source_resolver))
               .process(config_change(image, last_build, source_resolver))
               .process(buildpack_change(last_build, builder))
               .process(stack_change(last_build, builder))
               .summarize())
    return BuildRequiredResult.from_summary(summary)


def trigger_change(last_build: Optional[Build]) -> Optional[TriggerChange]:
    if last_build is None:
        return None

    requested = last_build.metadata.annotations.get(BUILD_NEEDED_ANNOTATION)
    if requested is None:
        return None

    return TriggerChange(new=requested or format_datetime(datetime.now(timezone.utc)))


def commit_change(last_build: Optional[Build], source_resolver: SourceResolver) -> Optional[CommitChange]:
    # Only git sources have commits
    if last_build is None or last_build.spec.source.git is None or source_resolver.status.source.git is None:
        return None

    return CommitChange(
        old=last_build.spec.source.git.revision,
        new=source_resolver.status.source.git.revision,
    )


def config_change(image: Image, last_build: Optional[Build], source_resolver: SourceResolver) -> ConfigChange:
    old = Config()
    if last_build is not None:
        old = Config(
            env=last_build.spec.env,
            resources=last_build.spec.resources,
            services=last_build.spec.services,
            source=last_build.spec.source,
        )

    new = Config(
        env=image.env(),
        resources=image.resources(),
        services=image.services(),
        source=source_resolver.source_config(),
    )
    return ConfigChange(old=old, new=new)


def buildpack_change(last_build: Optional[Build], builder: BuilderResource) -> Optional[BuildpackChange]:
    if last_build is None or not last_build.is_success():
        return None

    old = []
    new = []
    catalogue = builder.buildpack_metadata()
    for used in last_build.status.build_metadata:
        if catalogue.include(used):
            continue
        old.append(used)
        current = catalogue.find(used.id)
        if current is not None:
            new.append(current)

    return BuildpackChange(old=old, new=new)


def stack_change(last_build: Optional[Build], builder: BuilderResource) -> Optional[StackChange]:
    if last_build is None or not last_build.is_success():
        return None

    old_run_image = last_build.status.stack.run_image
    new_run_image = builder.run_image()
    # Nothing to compare until both sides report a run image
    if not old_run_image or not new_run_image:
        return None

    return StackChange(
        old=parse_reference(old_run_image).identifier(),
        new=parse_reference(new_run_image).identifier(),
    )

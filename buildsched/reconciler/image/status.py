"""Condition sets published on an image's status"""
from typing import List, Optional

from ...core.builder import BuilderResource
from ...core.enums import ConditionStatus, ConditionType
from ...core.models import Build, Condition, Image

BUILDER_NOT_FOUND = "BuilderNotFound"
BUILDER_NOT_READY = "BuilderNotReady"


def builder_not_found(image: Image) -> List[Condition]:
    ref = image.spec.builder
    message = f"Error: Unable to find {ref.kind} '{ref.name}'"
    if ref.kind != "ClusterBuilder":
        message += f" in namespace '{image.namespace}'"
    return [
        Condition(
            type=ConditionType.READY.value,
            status=ConditionStatus.FALSE.value,
            reason=BUILDER_NOT_FOUND,
            message=message + ".",
        ),
        Condition(
            type=ConditionType.BUILDER_READY.value,
            status=ConditionStatus.FALSE.value,
            reason=BUILDER_NOT_FOUND,
            message=message + ".",
        ),
    ]


def builder_condition(builder: BuilderResource) -> Condition:
    if not builder.ready():
        return Condition(
            type=ConditionType.BUILDER_READY.value,
            status=ConditionStatus.FALSE.value,
            reason=BUILDER_NOT_READY,
            message=f"Builder {builder.get_name()} is not ready",
        )
    return Condition(type=ConditionType.BUILDER_READY.value, status=ConditionStatus.TRUE.value)


def scheduled_build(build: Build) -> List[Condition]:
    return [
        Condition(
            type=ConditionType.READY.value,
            status=ConditionStatus.UNKNOWN.value,
            message=f"{build.name} is executing",
        ),
        Condition(type=ConditionType.BUILDER_READY.value, status=ConditionStatus.TRUE.value),
    ]


def no_scheduled_build(build_needed: ConditionStatus, builder: BuilderResource,
                       latest_build: Optional[Build]) -> List[Condition]:
    """Mirror the latest build's outcome, or Unknown while it cannot be judged"""
    status = ConditionStatus.UNKNOWN.value
    if build_needed != ConditionStatus.UNKNOWN and latest_build is not None:
        succeeded = latest_build.succeeded_condition()
        if succeeded is not None:
            status = succeeded.status

    return [
        Condition(type=ConditionType.READY.value, status=status),
        builder_condition(builder),
    ]

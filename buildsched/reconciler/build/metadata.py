"""
Built-image metadata handed back by the build pod.

The ``completion`` step writes gzip-compressed, base64-encoded JSON to
its termination message; the build reconciler reads it once the pod has
succeeded.
"""
import base64
import binascii
import gzip
import json
import logging
from dataclasses import asdict, dataclass, field
from typing import List

from ...core.errors import MetadataRetrievalError
from ...core.models import Build, BuildpackInfo, Pod, from_dict

COMPLETION_CONTAINER_NAME = "completion"


@dataclass
class BuildStatusMetadata:
    buildpack_metadata: List[BuildpackInfo] = field(default_factory=list)
    latest_image: str = ""
    stack_run_image: str = ""
    stack_id: str = ""


class GzipMetadataCompressor:

    def compress(self, metadata: BuildStatusMetadata) -> str:
        data = json.dumps(asdict(metadata)).encode("utf-8")
        return base64.b64encode(gzip.compress(data)).decode("ascii")

    def decompress(self, compressed: str) -> BuildStatusMetadata:
        """
        Raises:
            ValueError: payload is not base64, gzip or JSON
        """
        try:
            data = gzip.decompress(base64.b64decode(compressed, validate=True))
        except (binascii.Error, OSError) as e:
            raise ValueError(f"invalid compressed build metadata: {e}") from e
        return from_dict(BuildStatusMetadata, json.loads(data))


class PodMetadataRetriever:
    """Reads build metadata from the completion container's termination message"""

    def __init__(self, compressor: GzipMetadataCompressor = None):
        self.compressor = compressor or GzipMetadataCompressor()
        self.logger = logging.getLogger(__name__)

    async def get_built_image(self, build: Build, pod: Pod) -> BuildStatusMetadata:
        """
        Raises:
            MetadataRetrievalError: the completion step has not reported yet
                or its report is unreadable
        """
        for status in pod.status.container_statuses:
            if status.name != COMPLETION_CONTAINER_NAME:
                continue
            terminated = status.state.terminated
            if terminated is None or not terminated.message:
                raise MetadataRetrievalError(
                    f"{COMPLETION_CONTAINER_NAME} container of {pod.name} has not reported metadata"
                )
            try:
                metadata = self.compressor.decompress(terminated.message)
            except ValueError as e:
                raise MetadataRetrievalError(f"failed to read build metadata from {pod.name}: {e}") from e
            self.logger.debug(f"Read metadata for build {build.name}: {metadata.latest_image}")
            return metadata

        raise MetadataRetrievalError(f"{COMPLETION_CONTAINER_NAME} container not found in {pod.name}")

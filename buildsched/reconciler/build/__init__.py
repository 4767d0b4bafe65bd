from .build import BuildReconciler, MetadataRetriever, PodGenerator
from .metadata import BuildStatusMetadata, GzipMetadataCompressor, PodMetadataRetriever

__all__ = [
    'BuildReconciler',
    'MetadataRetriever',
    'PodGenerator',
    'BuildStatusMetadata',
    'GzipMetadataCompressor',
    'PodMetadataRetriever',
]

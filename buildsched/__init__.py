"""
Buildsched - cluster build scheduler

Decides when a container image must be rebuilt, creates a build for it,
drives that build through its execution pod and reports the produced
image back to the image.

Main modules:
- core: Data model, builders, errors
- buildchange: Change detection between the last build and desired state
- apis: Build factory and the desired dependents of an image
- store: Object store (in-memory, Redis)
- controller: Work queue, informers, dependency tracker, worker loop
- reconciler: Image and build control loops
- buildpod: Default build pod generator
- config: Global configuration loading
"""

from .buildchange import ChangeLogger, ChangeProcessor, ChangeSummary
from .config.global_config_loader import GlobalConfig, load_global_config
from .manager import ControllerManager
from .store import get_object_store

__version__ = "1.0.0"
__all__ = [
    'ChangeLogger',
    'ChangeProcessor',
    'ChangeSummary',
    'ControllerManager',
    'GlobalConfig',
    'get_object_store',
    'load_global_config',
]

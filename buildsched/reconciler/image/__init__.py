from .image import ImageReconciler
from .build_required import BuildRequiredResult, is_build_required
from .build_list import BuildList

__all__ = ['ImageReconciler', 'BuildRequiredResult', 'is_build_required', 'BuildList']

from . import image_builds

__all__ = ['image_builds']

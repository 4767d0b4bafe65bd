from .generator import BUILD_STEPS, BuildPodGenerator, BuildPodImages

__all__ = ['BUILD_STEPS', 'BuildPodGenerator', 'BuildPodImages']

from .controller_cli import cli

__all__ = ['cli']

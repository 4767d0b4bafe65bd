from .global_config_loader import GlobalConfig, get_global_config, load_global_config

__all__ = ['GlobalConfig', 'get_global_config', 'load_global_config']

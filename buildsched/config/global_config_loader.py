import yaml
from pathlib import Path
from typing import Optional, Dict, Any
from dataclasses import dataclass, asdict


@dataclass
class StoreConfig:
    """Object store configuration"""
    type: str = "memory"  # 'memory' or 'redis'
    url: str = "redis://localhost:6379"
    key_prefix: str = "buildsched:"


@dataclass
class ControllerConfig:
    """Control loop configuration"""
    image_workers: int = 2
    build_workers: int = 2
    tracker_lease_seconds: int = 1800  # builder->image links expire unless renewed
    base_backoff: float = 0.005
    max_backoff: float = 1000.0
    enable_priority_classes: bool = False
    notification_buffer: int = 1000


@dataclass
class ImageDefaultsConfig:
    """Defaults applied to images that leave these fields unset"""
    failed_build_history_limit: int = 10
    success_build_history_limit: int = 10
    service_account_name: str = "default"


@dataclass
class BuildPodConfig:
    """Images for the build pod steps that do not run in the builder"""
    build_init_image: str = "buildsched/build-init:latest"
    completion_image: str = "buildsched/completion:latest"


@dataclass
class LoggingConfig:
    """Logging configuration"""
    level: str = "INFO"


@dataclass
class GlobalConfig:
    """Global configuration for the controller manager"""
    store: StoreConfig
    controller: ControllerConfig
    image_defaults: ImageDefaultsConfig
    build_pod: BuildPodConfig
    logging: LoggingConfig

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'GlobalConfig':
        """Create GlobalConfig from dictionary"""
        return cls(
            store=StoreConfig(**data.get('store', {})),
            controller=ControllerConfig(**data.get('controller', {})),
            image_defaults=ImageDefaultsConfig(**data.get('image_defaults', {})),
            build_pod=BuildPodConfig(**data.get('build_pod', {})),
            logging=LoggingConfig(**data.get('logging', {}))
        )

    @classmethod
    def from_yaml(cls, yaml_path: str) -> 'GlobalConfig':
        """Load GlobalConfig from YAML file"""
        path = Path(yaml_path)
        if not path.exists():
            # Return default config if file doesn't exist
            return cls.default()

        with open(path, 'r') as f:
            data = yaml.safe_load(f)

        return cls.from_dict(data or {})

    @classmethod
    def default(cls) -> 'GlobalConfig':
        """Return default configuration"""
        return cls(
            store=StoreConfig(),
            controller=ControllerConfig(),
            image_defaults=ImageDefaultsConfig(),
            build_pod=BuildPodConfig(),
            logging=LoggingConfig()
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# Global instance - can be overridden
_global_config: Optional[GlobalConfig] = None


def load_global_config(config_path: Optional[str] = None) -> GlobalConfig:
    """
    Load global configuration from YAML file.
    If no path provided, looks for global_config.yaml in standard locations.
    """
    global _global_config

    if config_path:
        _global_config = GlobalConfig.from_yaml(config_path)
        return _global_config

    # Try standard locations
    search_paths = [
        Path("./global_config.yaml"),
        Path("./buildsched/config/global_config.yaml"),
        Path("/etc/buildsched/global_config.yaml"),
    ]

    for path in search_paths:
        if path.exists():
            _global_config = GlobalConfig.from_yaml(str(path))
            return _global_config

    # Return default if no config found
    _global_config = GlobalConfig.default()
    return _global_config


def get_global_config() -> GlobalConfig:
    """Get the loaded global configuration"""
    global _global_config
    if _global_config is None:
        _global_config = load_global_config()
    return _global_config

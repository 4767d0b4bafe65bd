from .base import BaseObjectStore, WatchEvent, object_from_dict, OBJECT_TYPES
from .memory import InMemoryObjectStore
from .redis import RedisObjectStore


def get_object_store(store_type: str, config: dict) -> BaseObjectStore:
    """
    Factory function to create object store instances.

    Args:
        store_type: Type of store ('memory', 'redis')
        config: Configuration dict with store-specific settings

    Example config:
        {
            'type': 'redis',
            'url': 'redis://localhost:6379',
            'key_prefix': 'buildsched:'
        }
    """
    store_type = store_type.lower()

    if store_type == 'memory':
        return InMemoryObjectStore()
    elif store_type == 'redis':
        return RedisObjectStore(
            url=config.get('url', 'redis://localhost:6379'),
            key_prefix=config.get('key_prefix', 'buildsched:')
        )
    else:
        raise ValueError(f"Unsupported store type: {store_type}. Supported: 'memory', 'redis'")


__all__ = [
    'BaseObjectStore',
    'InMemoryObjectStore',
    'RedisObjectStore',
    'WatchEvent',
    'OBJECT_TYPES',
    'object_from_dict',
    'get_object_store',
]

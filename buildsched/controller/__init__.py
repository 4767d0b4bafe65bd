from .workqueue import RateLimitingQueue
from .lister import Informer, DuckBuilderLister
from .tracker import Tracker
from .controller import Controller, Reconciler

__all__ = [
    'RateLimitingQueue',
    'Informer',
    'DuckBuilderLister',
    'Tracker',
    'Controller',
    'Reconciler',
]

from .locks import KeyedLock

__version__ = "0.1.0"

__all__ = ["KeyedLock", "__version__"]

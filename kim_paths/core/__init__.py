from kim_paths.core.adapters.BaseAdapter import BaseAdapter
from kim_paths.core.errors import KimError

__all__ = [
    "BaseAdapter",
    "KimError",
]

__version__ = "0.1.0"

from kim_paths.core import BaseAdapter, KimError

__all__ = ["BaseAdapter", "KimError"]

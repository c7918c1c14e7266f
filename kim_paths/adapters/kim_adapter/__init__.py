from kim_paths.adapters.kim_adapter.adapter import KimAdapter

__all__ = ["KimAdapter"]

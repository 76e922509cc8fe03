"""Storage infrastructure."""

from infrastructure.storage.temp_storage import ScriptStorage

__all__ = ['ScriptStorage']

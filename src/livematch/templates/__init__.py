"""Template stores (key -> raw BGR pixels)."""
from .store import DirectoryTemplateStore, MemoryTemplateStore, TemplateStore

__all__ = ["TemplateStore", "DirectoryTemplateStore", "MemoryTemplateStore"]

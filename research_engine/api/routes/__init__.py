from . import callbacks, research

__all__ = ["callbacks", "research"]

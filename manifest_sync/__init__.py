"""Static plugin source-contract resolver and manifest.json assembler."""
from .config import __version__

__all__ = ["__version__"]

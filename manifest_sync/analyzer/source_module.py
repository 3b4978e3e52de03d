"""Per-file structural extraction, cached for one extraction run.

A SourceModule is parsed once, the first time any resolver asks for it, and is
never changed afterwards. The cache belongs to a single run: it starts empty
and is dropped with the ContractExtractor that owns it, so nothing persists
between runs and edits to the tree are always picked up.
"""
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterator

from ..errors import ResolutionError
from .imports import ImportTable, JSImportTracker, ReexportTable
from .type_aliases import parse_type_aliases


@dataclass(frozen=True)
class SourceModule:
    path: Path
    text: str
    imports: ImportTable = field(default_factory=ImportTable)
    reexports: ReexportTable = field(default_factory=ReexportTable)
    type_aliases: Dict[str, str] = field(default_factory=dict)
    local_exports: Dict[str, str] = field(default_factory=dict)

    def line_of(self, offset: int) -> int:
        """1-based line number of a character offset."""
        return self.text.count('\n', 0, offset) + 1

    def location(self, offset: int) -> str:
        return f"{self.path}:{self.line_of(offset)}"


def parse_source_module(path: Path, text: str) -> SourceModule:
    tracker = JSImportTracker(text)
    return SourceModule(
        path=path,
        text=text,
        imports=tracker.analyze_imports(),
        reexports=tracker.analyze_reexports(),
        type_aliases=parse_type_aliases(text),
        local_exports=tracker.analyze_local_exports(),
    )


class ModuleCache:
    """Lazily parsed SourceModules keyed by resolved file path."""

    def __init__(self):
        self._modules: Dict[Path, SourceModule] = {}

    def get(self, file_path: Path) -> SourceModule:
        """Return the parsed module for a file, reading it on first access.

        Raises:
            ResolutionError: If the file cannot be read as UTF-8 text
        """
        path = Path(file_path).resolve()
        module = self._modules.get(path)
        if module is not None:
            return module

        try:
            text = path.read_text(encoding='utf-8')
        except (OSError, UnicodeDecodeError) as e:
            raise ResolutionError(f"Cannot read source module {path}: {e}") from e

        module = parse_source_module(path, text)
        self._modules[path] = module
        return module

    def __contains__(self, file_path) -> bool:
        return Path(file_path).resolve() in self._modules

    def __len__(self) -> int:
        return len(self._modules)

    def __iter__(self) -> Iterator[SourceModule]:
        return iter(self._modules.values())

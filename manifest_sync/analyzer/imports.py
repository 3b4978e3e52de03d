import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .lexer import IDENTIFIER, mask_non_code, skip_string_literal, split_top_level, strip_comments


@dataclass(frozen=True)
class ImportInfo:
    source_module: str
    original_name: Optional[str] = None
    is_namespace: bool = False


@dataclass(frozen=True)
class ReexportInfo:
    source_module: str
    original_name: str
    is_namespace: bool = False


@dataclass
class ImportTable:
    named: Dict[str, ImportInfo] = field(default_factory=dict)
    default: Dict[str, ImportInfo] = field(default_factory=dict)
    namespace: Dict[str, ImportInfo] = field(default_factory=dict)


@dataclass
class ReexportTable:
    named: Dict[str, ReexportInfo] = field(default_factory=dict)
    star: List[str] = field(default_factory=list)


# `import <clause> from "<specifier>"`; side-effect and dynamic imports never match
_IMPORT_RE = re.compile(r'(?<![\w$.])import\s+(?!\()([^;\'"`]*?)\s*\bfrom\s*(?=[\'"])', re.S)

# `export * from`, `export * as ns from`, `export { a, b as c } from`
_EXPORT_FROM_RE = re.compile(
    rf'(?<![\w$.])export\s+(?:type\s+)?(\*(?:\s+as\s+({IDENTIFIER}))?|\{{[^}}]*\}})\s*from\s*(?=[\'"])'
)

# `export { a, b as c }` without a `from` clause
_EXPORT_LOCAL_RE = re.compile(r'(?<![\w$.])export\s+(?:type\s+)?\{([^}]*)\}(?!\s*from\b)')

_SPECIFIER_RE = re.compile(
    rf'^(?:type\s+)?({IDENTIFIER}|"[^"]*"|\'[^\']*\')(?:\s+as\s+({IDENTIFIER}|"[^"]*"|\'[^\']*\'))?$'
)


def _unquote(name: str) -> str:
    return name.strip('"\'')


def _read_specifier(source_code: str, quote_index: int) -> str:
    end = skip_string_literal(source_code, quote_index)
    return source_code[quote_index + 1:end]


def _parse_specifier_list(body: str) -> List[Tuple[str, str]]:
    """Parse `a, b as c, type D` into (original, local) pairs."""
    pairs = []
    for part in split_top_level(strip_comments(body), ','):
        match = _SPECIFIER_RE.match(' '.join(part.split()))
        if not match:
            continue
        original = _unquote(match.group(1))
        local = _unquote(match.group(2)) if match.group(2) else original
        pairs.append((original, local))
    return pairs


class JSImportTracker:
    """Lexical import/export extraction for one TypeScript or JavaScript file.

    Works on a masked copy of the source (comments and string contents blanked)
    so that import-like text inside strings or comments is never picked up.
    Offsets in the masked copy are valid in the original, which is where
    specifiers and names are read from.
    """

    def __init__(self, source_code: str):
        self.source_code = source_code
        self.masked = mask_non_code(source_code)

    def analyze_imports(self) -> ImportTable:
        """Map local names to their import sources.

        Handles default, namespace and named imports, `import type` and the
        combined `import x, { y } from 'mod'` / `import x, * as ns` forms.
        """
        table = ImportTable()

        for match in _IMPORT_RE.finditer(self.masked):
            module_name = _read_specifier(self.source_code, match.end())
            clause = self.source_code[match.start(1):match.end(1)].strip()
            if clause.startswith('type ') or clause.startswith('type{'):
                clause = clause[4:].strip()

            for part in split_top_level(strip_comments(clause), ','):
                # import * as ns from 'mod'
                if part.startswith('*'):
                    ns_match = re.match(rf'^\*\s*as\s+({IDENTIFIER})$', part)
                    if ns_match:
                        table.namespace[ns_match.group(1)] = ImportInfo(
                            source_module=module_name,
                            original_name=None,
                            is_namespace=True
                        )

                # import { x, y as z } from 'mod'
                elif part.startswith('{'):
                    for original, local in _parse_specifier_list(part.strip('{}')):
                        info = ImportInfo(source_module=module_name, original_name=original)
                        # `import { default as x }` is a default import in disguise
                        if original == 'default':
                            table.default[local] = info
                        else:
                            table.named[local] = info

                # import x from 'mod'
                elif re.match(rf'^{IDENTIFIER}$', part):
                    table.default[part] = ImportInfo(
                        source_module=module_name,
                        original_name='default',
                        is_namespace=False
                    )

        return table

    def analyze_reexports(self) -> ReexportTable:
        """Collect `export ... from` re-exports, keyed by exported name."""
        table = ReexportTable()

        for match in _EXPORT_FROM_RE.finditer(self.masked):
            module_name = _read_specifier(self.source_code, match.end())
            head = match.group(1)

            if head.startswith('*'):
                if match.group(2):
                    table.named[match.group(2)] = ReexportInfo(
                        source_module=module_name,
                        original_name='*',
                        is_namespace=True
                    )
                elif module_name not in table.star:
                    table.star.append(module_name)
                continue

            body = self.source_code[match.start(1) + 1:match.end(1) - 1]
            for original, exported in _parse_specifier_list(body):
                table.named[exported] = ReexportInfo(source_module=module_name, original_name=original)

        return table

    def analyze_local_exports(self) -> Dict[str, str]:
        """Map public names to local names for `export { local as public }`."""
        exports: Dict[str, str] = {}
        for match in _EXPORT_LOCAL_RE.finditer(self.masked):
            body = self.source_code[match.start(1):match.end(1)]
            for local, public in _parse_specifier_list(body):
                exports[public] = local
        return exports

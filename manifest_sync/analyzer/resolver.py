import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from ..errors import CycleError, ResolutionError
from .lexer import (IDENTIFIER, depth_at, find_matching_delimiter, is_identifier, mask_non_code,
                    strip_comments, strip_wrapping_parens)
from .source_module import ModuleCache, SourceModule

# Recursion bound for alias and re-export chains; the visited set catches
# cycles, this catches pathological but acyclic barrel chains
MAX_RESOLUTION_DEPTH = 64

JS_EXTENSIONS = ['.ts', '.tsx', '.mts', '.cts', '.js', '.jsx', '.mjs', '.cjs', '.json']

# TypeScript sources are imported by their emitted name (`./schema.js`)
_EMITTED_TO_SOURCE = {
    '.js': ['.ts', '.tsx'],
    '.jsx': ['.tsx'],
    '.mjs': ['.mts'],
    '.cjs': ['.cts'],
}

_ASSERTION_RE = re.compile(r'\s(?:as|satisfies)\s')
_MEMBER_RE = re.compile(rf'^({IDENTIFIER})\s*\.\s*({IDENTIFIER})$')

# Ordered so a cycle can be reported as the path that produced it
VisitedSet = Tuple[Tuple[str, str], ...]


@dataclass(frozen=True)
class RuntimeReference:
    """A resolved (module, export) pointer; the value is not loaded yet."""
    module_path: Path
    export_name: str
    source_expression: str


@dataclass(frozen=True)
class ResolvedTypeAlias:
    name: str
    module: SourceModule
    body: str
    seen: VisitedSet


def load_tsconfig_paths(project_root: Path) -> Dict[str, List[str]]:
    """Read `compilerOptions.paths` from tsconfig.json, tolerating JSONC.

    Returns an empty dict when the file is missing or unreadable.
    """
    tsconfig_file = Path(project_root) / 'tsconfig.json'
    if not tsconfig_file.exists():
        return {}

    try:
        content = strip_comments(tsconfig_file.read_text(encoding='utf-8'))
        # JSONC allows trailing commas
        content = re.sub(r',(\s*[}\]])', r'\1', content)
        data = json.loads(content)
    except (IOError, OSError, json.JSONDecodeError):
        return {}

    paths = data.get('compilerOptions', {}).get('paths', {}) if isinstance(data, dict) else {}
    return paths if isinstance(paths, dict) else {}


def strip_type_assertions(expression: str) -> str:
    """Peel `as T`, `satisfies T`, `<T>expr`, non-null `!` and parentheses."""
    expr = expression.strip()
    while True:
        previous = expr
        expr = strip_wrapping_parens(expr)
        if expr.endswith('!'):
            expr = expr[:-1].rstrip()
        if expr.startswith('<'):
            close = find_matching_delimiter(expr, 0, '<', '>')
            if close is not None:
                expr = expr[close + 1:].strip()
        masked = mask_non_code(expr)
        for match in _ASSERTION_RE.finditer(masked):
            if depth_at(masked, match.start()) == 0:
                expr = expr[:match.start()].strip()
                break
        if expr == previous:
            return expr


class SymbolResolver:
    """Cross-file symbol resolution over a run's ModuleCache.

    Resolves module specifiers to files on disk, value expressions to
    RuntimeReferences and type-alias names to their declaring module and body.
    """

    def __init__(self, project_root: Path, cache: ModuleCache, tsconfig_paths: Dict[str, List[str]] = None):
        self.root = Path(project_root).resolve()
        self.cache = cache
        # Normalize tsconfig paths: {"@app/*": ["src/*"]} -> {"@app": "src"}
        self.ts_aliases = {}
        if tsconfig_paths:
            for alias, targets in tsconfig_paths.items():
                clean_alias = alias.replace("/*", "")
                # First target only
                if targets:
                    clean_target = targets[0].replace("/*", "")
                    self.ts_aliases[clean_alias] = clean_target

    # -------------------------------------------------------------------------
    # Module specifiers
    # -------------------------------------------------------------------------

    def resolve_source_file(self, current_file: Path, import_string: str) -> Optional[Path]:
        """Determine the file an import specifier refers to.

        Args:
            current_file: The absolute path of the file containing the import.
            import_string: The specifier used in the import (e.g. './schemas', '@app/types').

        Returns:
            Resolved path, or None for bare package specifiers and missing files
        """
        if not import_string:
            return None

        # 1. Relative Imports
        if import_string.startswith('.'):
            candidate = (Path(current_file).parent / import_string).resolve()
            return self._probe_js_path(candidate)

        # 2. Path Aliases (tsconfig)
        for alias, target in self.ts_aliases.items():
            if import_string == alias or import_string.startswith(alias + '/'):
                remainder = import_string[len(alias):].lstrip('/')
                candidate = self.root / target / remainder
                return self._probe_js_path(candidate)

        # 3. Absolute paths; anything else is a package in node_modules
        if import_string.startswith('/'):
            return self._probe_js_path(Path(import_string))

        return None

    def require_source_file(self, module: SourceModule, import_string: str) -> Path:
        """Like resolve_source_file, but unresolvable specifiers are fatal."""
        resolved = self.resolve_source_file(module.path, import_string)
        if resolved is None:
            raise ResolutionError(
                f"Cannot resolve module '{import_string}' imported from {module.path}"
            )
        return resolved

    def _probe_js_path(self, path: Path) -> Optional[Path]:
        """Probe for a file using JS resolution rules.

        1. Exact match
        2. Emitted-to-source extension swap (`./a.js` -> `./a.ts`)
        3. Appended extensions
        4. Directory index files
        """
        if path.is_file():
            return path

        for source_ext in _EMITTED_TO_SOURCE.get(path.suffix, []):
            candidate = path.with_suffix(source_ext)
            if candidate.is_file():
                return candidate

        for ext in JS_EXTENSIONS:
            candidate = path.with_name(path.name + ext)
            if candidate.is_file():
                return candidate

        if path.is_dir():
            for ext in JS_EXTENSIONS:
                index_file = path / f"index{ext}"
                if index_file.is_file():
                    return index_file

        return None

    # -------------------------------------------------------------------------
    # Runtime references
    # -------------------------------------------------------------------------

    def resolve_runtime_reference_from_identifier(self, expression: str, module: SourceModule) -> RuntimeReference:
        """Resolve a value expression to the module and export that define it.

        Raises:
            ResolutionError: For unsupported shapes or unresolvable imports
        """
        expr = strip_type_assertions(expression)

        member = _MEMBER_RE.match(expr)
        if member:
            namespace, member_name = member.group(1), member.group(2)
            info = module.imports.namespace.get(namespace)
            if info is None:
                raise ResolutionError(
                    f"'{expr}' in {module.path}: '{namespace}' is not a namespace import"
                )
            return RuntimeReference(
                module_path=self.require_source_file(module, info.source_module),
                export_name=member_name,
                source_expression=expression.strip(),
            )

        if not is_identifier(expr):
            raise ResolutionError(
                f"Unsupported reference expression '{expression.strip()}' in {module.path}; "
                "expected an identifier or a namespace member"
            )

        named = module.imports.named.get(expr)
        if named is not None:
            return RuntimeReference(
                module_path=self.require_source_file(module, named.source_module),
                export_name=named.original_name,
                source_expression=expression.strip(),
            )

        default = module.imports.default.get(expr)
        if default is not None:
            return RuntimeReference(
                module_path=self.require_source_file(module, default.source_module),
                export_name='default',
                source_expression=expression.strip(),
            )

        if expr in module.imports.namespace:
            raise ResolutionError(
                f"'{expr}' in {module.path} is a whole namespace import, not an exported value"
            )

        # Presumed local: use its public name if it is exported under an alias
        export_name = expr
        for public, local in module.local_exports.items():
            if local == expr:
                export_name = public
                break
        return RuntimeReference(
            module_path=module.path,
            export_name=export_name,
            source_expression=expression.strip(),
        )

    # -------------------------------------------------------------------------
    # Type aliases
    # -------------------------------------------------------------------------

    def resolve_type_alias(self, name: str, module: SourceModule, seen: VisitedSet = ()) -> ResolvedTypeAlias:
        """Find the declaration of a type alias visible in `module`.

        Order: local alias, named import / named re-export / local export
        rename, then each star re-export in turn (first success wins).

        Args:
            name: Alias name as visible from `module`
            module: Module to start from
            seen: (file, name) pairs already on the current resolution path

        Raises:
            CycleError: If a (file, name) pair is visited twice
            ResolutionError: If the alias cannot be found
        """
        key = (str(module.path), name)
        if key in seen:
            chain = [f"{path}#{alias}" for path, alias in seen] + [f"{module.path}#{name}"]
            raise CycleError(chain)
        if len(seen) >= MAX_RESOLUTION_DEPTH:
            raise ResolutionError(
                f"Resolution of type '{name}' exceeded {MAX_RESOLUTION_DEPTH} steps at {module.path}"
            )
        seen = seen + (key,)

        if name in module.type_aliases:
            return ResolvedTypeAlias(name=name, module=module, body=module.type_aliases[name], seen=seen)

        imported = module.imports.named.get(name)
        if imported is not None:
            target = self.cache.get(self.require_source_file(module, imported.source_module))
            return self.resolve_type_alias(imported.original_name, target, seen)

        reexported = module.reexports.named.get(name)
        if reexported is not None and not reexported.is_namespace:
            target = self.cache.get(self.require_source_file(module, reexported.source_module))
            return self.resolve_type_alias(reexported.original_name, target, seen)

        local = module.local_exports.get(name)
        if local is not None and local != name:
            return self.resolve_type_alias(local, module, seen)

        for specifier in module.reexports.star:
            target_path = self.resolve_source_file(module.path, specifier)
            if target_path is None:
                continue
            try:
                return self.resolve_type_alias(name, self.cache.get(target_path), seen)
            except CycleError:
                raise
            except ResolutionError:
                continue

        raise ResolutionError(f"Type alias '{name}' not found from {module.path}")

"""Entrypoint locator.

A plugin declares its contract through exactly one call such as::

    createPlugin<PluginSettings, Env, Command, SupportedEvents>(
      (context) => runPlugin(context),
      manifest,
      { settingsSchema: pluginSettingsSchema, envSchema }
    );

`createActionsPlugin<...>(handler, options)` is accepted as a fallback when no
`createPlugin` call exists. Only calls with an explicit generic list followed
by an argument list qualify.
"""
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from ..errors import (AmbiguousEntrypointError, EntrypointNotFoundError, IncompleteGenericsError,
                      MissingSettingsSchemaError)
from .lexer import find_matching_delimiter, mask_non_code, split_top_level
from .object_literal import ObjectLiteral, parse_object_literal
from .source_module import ModuleCache, SourceModule

PREFERRED_ENTRYPOINT = 'createPlugin'
FALLBACK_ENTRYPOINT = 'createActionsPlugin'

# Position of the options object in each call form
OPTIONS_ARGUMENT_INDEX = {
    PREFERRED_ENTRYPOINT: 2,  # createPlugin(handler, manifest, options)
    FALLBACK_ENTRYPOINT: 1,   # createActionsPlugin(handler, options)
}

# config, env, command, supported events
REQUIRED_GENERIC_COUNT = 4
SETTINGS_SCHEMA_PROPERTY = 'settingsSchema'

SOURCE_EXTENSIONS = {'.ts', '.tsx', '.mts', '.cts', '.js', '.jsx', '.mjs', '.cjs'}
EXCLUDED_DIRS = {
    'node_modules', 'dist', 'build', 'plugin', 'coverage', '.git',
    'tests', '__tests__', '__mocks__',
}
_TEST_FILE_RE = re.compile(r'\.(?:test|spec)\.[cm]?[jt]sx?$')
_DECLARATION_BEFORE_RE = re.compile(r'\bfunction\s*\*?\s*$')


@dataclass(frozen=True)
class Callsite:
    function_name: str
    file_path: Path
    generic_args: Tuple[str, ...]
    args: Tuple[str, ...]
    offset: int

    @property
    def config_type(self) -> str:
        return self.generic_args[0]

    @property
    def env_type(self) -> str:
        return self.generic_args[1]

    @property
    def command_type(self) -> str:
        return self.generic_args[2]

    @property
    def supported_events_type(self) -> str:
        return self.generic_args[3]

    @property
    def options_expression(self) -> Optional[str]:
        index = OPTIONS_ARGUMENT_INDEX[self.function_name]
        return self.args[index] if index < len(self.args) else None


def discover_source_files(project_root: Path) -> List[Path]:
    """List candidate source files in a stable order.

    Scans `<root>/src` when present, otherwise the whole root, skipping build
    output, dependencies, tests and declaration files.
    """
    project_root = Path(project_root)
    scan_root = project_root / 'src' if (project_root / 'src').is_dir() else project_root

    files = []
    for file_path in scan_root.rglob('*'):
        relative_parts = file_path.relative_to(scan_root).parts
        if any(part in EXCLUDED_DIRS for part in relative_parts[:-1]):
            continue
        if not file_path.is_file() or file_path.suffix not in SOURCE_EXTENSIONS:
            continue
        if file_path.name.endswith('.d.ts') or _TEST_FILE_RE.search(file_path.name):
            continue
        files.append(file_path.resolve())
    return sorted(files)


def find_callsites(module: SourceModule, function_name: str) -> List[Callsite]:
    """Find every `function_name<...>(...)` call in a module."""
    masked = mask_non_code(module.text)
    text = module.text
    pattern = re.compile(rf'(?<![\w$.]){re.escape(function_name)}\s*<')

    callsites = []
    for match in pattern.finditer(masked):
        if _DECLARATION_BEFORE_RE.search(masked[max(0, match.start() - 32):match.start()]):
            continue

        generic_open = match.end() - 1
        generic_close = find_matching_delimiter(text, generic_open, '<', '>')
        if generic_close is None:
            continue

        paren_open = generic_close + 1
        while paren_open < len(masked) and masked[paren_open].isspace():
            paren_open += 1
        if paren_open >= len(masked) or masked[paren_open] != '(':
            continue
        paren_close = find_matching_delimiter(text, paren_open, '(', ')')
        if paren_close is None:
            continue

        callsites.append(Callsite(
            function_name=function_name,
            file_path=module.path,
            generic_args=tuple(split_top_level(text[generic_open + 1:generic_close], ',', track_angles=True)),
            args=tuple(split_top_level(text[paren_open + 1:paren_close], ',')),
            offset=match.start(),
        ))
    return callsites


class EntrypointLocator:
    """Find and validate the single entrypoint callsite of a source tree."""

    def __init__(self, cache: ModuleCache, files: Iterable[Path]):
        self.cache = cache
        self.files = list(files)

    def _collect(self, function_name: str) -> List[Callsite]:
        callsites = []
        for file_path in self.files:
            callsites.extend(find_callsites(self.cache.get(file_path), function_name))
        return callsites

    def _location(self, callsite: Callsite) -> str:
        return self.cache.get(callsite.file_path).location(callsite.offset)

    def locate(self) -> Callsite:
        """Select the entrypoint callsite.

        The preferred name is checked first: one match wins outright and the
        fallback name is never looked at; two or more is ambiguous even if the
        fallback would be unique. Only zero preferred matches fall through.

        Raises:
            AmbiguousEntrypointError: Two or more matches for the deciding name
            EntrypointNotFoundError: No match for either name
            IncompleteGenericsError: Fewer than four generic arguments
        """
        for function_name in (PREFERRED_ENTRYPOINT, FALLBACK_ENTRYPOINT):
            callsites = self._collect(function_name)
            if not callsites:
                continue
            if len(callsites) > 1:
                raise AmbiguousEntrypointError(function_name, [self._location(c) for c in callsites])
            callsite = callsites[0]
            if len(callsite.generic_args) < REQUIRED_GENERIC_COUNT:
                raise IncompleteGenericsError(
                    f"{function_name} at {self._location(callsite)} declares "
                    f"{len(callsite.generic_args)} generic argument(s); expected "
                    f"<Config, Env, Command, SupportedEvents>"
                )
            return callsite

        raise EntrypointNotFoundError(
            f"No {PREFERRED_ENTRYPOINT}<...>(...) or {FALLBACK_ENTRYPOINT}<...>(...) call with explicit "
            f"generic arguments found in {len(self.files)} source file(s)"
        )

    def options_object(self, callsite: Callsite) -> ObjectLiteral:
        """Parse the options argument and check for a direct settingsSchema.

        Raises:
            MissingSettingsSchemaError: Options missing, not an object literal,
                or settingsSchema only reachable through a spread
        """
        location = self._location(callsite)
        expression = callsite.options_expression
        if expression is None:
            raise MissingSettingsSchemaError(
                f"{callsite.function_name} at {location} has no options argument "
                f"(expected at position {OPTIONS_ARGUMENT_INDEX[callsite.function_name] + 1})"
            )

        literal = parse_object_literal(expression)
        if literal is None:
            raise MissingSettingsSchemaError(
                f"Options of {callsite.function_name} at {location} must be an inline object literal"
            )
        if not literal.has_direct_property(SETTINGS_SCHEMA_PROPERTY):
            hint = " (spread properties are not followed)" if literal.spreads else ""
            raise MissingSettingsSchemaError(
                f"Options of {callsite.function_name} at {location} have no direct "
                f"'{SETTINGS_SCHEMA_PROPERTY}' property{hint}"
            )
        return literal

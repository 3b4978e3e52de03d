"""Source-contract extraction.

Ties the pieces together for one run: locate the entrypoint callsite, reduce
its generic arguments (supported events, command type) and options object
(settings schema) to RuntimeReferences and string literals, then load the
referenced values.

All failures here are fatal ContractErrors.
"""
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from ..errors import (CommandContractError, ModuleLoadError, SupportedEventsError,
                      UnknownExcludedEventError)
from ..loader.runtime_loader import RuntimeLoader
from .entrypoint import SETTINGS_SCHEMA_PROPERTY, Callsite, EntrypointLocator, discover_source_files
from .lexer import IDENTIFIER, extract_string_literals, is_identifier, strip_wrapping_parens
from .resolver import RuntimeReference, SymbolResolver, VisitedSet, load_tsconfig_paths
from .source_module import ModuleCache, SourceModule

# Static<typeof X>, StaticDecode<typeof X>, optionally namespace-qualified (T.Static<...>)
_STATIC_TYPEOF_RE = re.compile(
    rf'^(?:{IDENTIFIER}\s*\.\s*)?(?:Static|StaticDecode)\s*<\s*typeof\s+'
    rf'({IDENTIFIER}(?:\s*\.\s*{IDENTIFIER})?)\s*>$'
)


@dataclass
class ManifestMetadata:
    settings_schema: Any
    command_schema: Optional[Any]
    allow_missing_command_schema: bool
    supported_events: List[str]
    excluded_supported_events: List[str] = field(default_factory=list)
    entrypoint: Optional[Callsite] = None

    def to_dict(self) -> Dict[str, Any]:
        """Camel-cased form handed to the manifest writer."""
        data = {
            'settingsSchema': self.settings_schema,
            'allowMissingCommandSchema': self.allow_missing_command_schema,
            'supportedEvents': list(self.supported_events),
            'excludedSupportedEvents': list(self.excluded_supported_events),
        }
        if self.command_schema is not None:
            data['commandSchema'] = self.command_schema
        if self.entrypoint is not None:
            data['entrypoint'] = {
                'functionName': self.entrypoint.function_name,
                'filePath': str(self.entrypoint.file_path),
                'offset': self.entrypoint.offset,
            }
        return data


def parse_exclusion_list(value: Union[str, Iterable[str], None]) -> List[str]:
    """Turn `"a, b,,a"` (or an iterable) into `["a", "b"]`."""
    if value is None:
        return []
    items = value.split(',') if isinstance(value, str) else list(value)
    return list(dict.fromkeys(item.strip() for item in items if item and item.strip()))


def apply_event_exclusions(events: Sequence[str], excluded: Sequence[str]) -> List[str]:
    """Order-preserving set difference; excluding an unknown event is fatal."""
    unknown = [event for event in excluded if event not in events]
    if unknown:
        raise UnknownExcludedEventError(unknown, events)
    excluded_set = set(excluded)
    remaining = [event for event in events if event not in excluded_set]
    if not remaining:
        raise SupportedEventsError(
            f"Excluding {', '.join(excluded)} leaves no supported events"
        )
    return remaining


def resolve_supported_events(expression: str, module: SourceModule, resolver: SymbolResolver,
                             seen: VisitedSet = ()) -> List[str]:
    """Reduce a supported-events type expression to its string literals.

    Direct unions (single- or multi-line) are read as they are; a bare
    identifier is followed to its alias declaration. Anything else would need
    real type evaluation and is rejected.
    """
    expr = strip_wrapping_parens(expression)
    literals = extract_string_literals(expr)
    if literals:
        return list(dict.fromkeys(literals))

    if is_identifier(expr):
        alias = resolver.resolve_type_alias(expr, module, seen)
        return resolve_supported_events(alias.body, alias.module, resolver, alias.seen)

    raise SupportedEventsError(
        f"Cannot reduce supported events type '{expr}' in {module.path}; "
        "use a union of string literals or an alias of one"
    )


def resolve_command_reference(expression: str, module: SourceModule,
                              resolver: SymbolResolver) -> Optional[RuntimeReference]:
    """Resolve the command generic to the runtime schema it is derived from.

    Returns:
        None for the literal `null` (no command schema), else the reference to X
        in `Static<typeof X>`
    """
    expr = strip_wrapping_parens(expression)
    if expr == 'null':
        return None
    if not is_identifier(expr):
        raise CommandContractError(
            f"Command type '{expr}' in {module.path} must be null or the name of a "
            "Static<typeof schema> alias"
        )

    alias = resolver.resolve_type_alias(expr, module, ())
    match = _STATIC_TYPEOF_RE.match(' '.join(alias.body.split()))
    if not match:
        raise CommandContractError(
            f"Type '{alias.name}' in {alias.module.path} is '{alias.body}'; "
            "expected Static<typeof schema> or StaticDecode<typeof schema>"
        )
    return resolver.resolve_runtime_reference_from_identifier(match.group(1), alias.module)


class ContractExtractor:
    """One extraction run over a plugin source tree.

    Owns the run's ModuleCache; create a new extractor per run.
    """

    def __init__(self, project_root: Path, loader: Optional[RuntimeLoader] = None,
                 excluded_events: Union[str, Iterable[str], None] = None):
        self.project_root = Path(project_root).resolve()
        self.loader = loader if loader is not None else RuntimeLoader()
        self.excluded_events = parse_exclusion_list(excluded_events)
        self.cache = ModuleCache()
        self.resolver = SymbolResolver(self.project_root, self.cache, load_tsconfig_paths(self.project_root))

    def locate_entrypoint(self) -> Callsite:
        locator = EntrypointLocator(self.cache, discover_source_files(self.project_root))
        return locator.locate()

    def resolve_settings_reference(self, callsite: Callsite) -> RuntimeReference:
        locator = EntrypointLocator(self.cache, [callsite.file_path])
        options = locator.options_object(callsite)
        prop = options.get(SETTINGS_SCHEMA_PROPERTY)
        return self.resolver.resolve_runtime_reference_from_identifier(
            prop.value, self.cache.get(callsite.file_path)
        )

    def load_references(self, references: Sequence[RuntimeReference]) -> List[Any]:
        """Load each reference's value, one loader call per module."""
        by_module: Dict[Path, List[str]] = {}
        for reference in references:
            names = by_module.setdefault(reference.module_path, [])
            if reference.export_name not in names:
                names.append(reference.export_name)

        loaded: Dict[Path, Dict[str, Any]] = {}
        for module_path, names in by_module.items():
            loaded[module_path] = self.loader.load(module_path, names)

        values = []
        for reference in references:
            exports = loaded[reference.module_path]
            if reference.export_name not in exports:
                raise ModuleLoadError(
                    reference.module_path,
                    message=(
                        f"Module {reference.module_path} loaded but has no export "
                        f"'{reference.export_name}' (referenced as '{reference.source_expression}')"
                    ),
                )
            values.append(exports[reference.export_name])
        return values

    def extract(self) -> ManifestMetadata:
        """Run resolution and loading.

        Raises:
            ContractError: Any resolution, contract or load failure
        """
        callsite = self.locate_entrypoint()
        entry_module = self.cache.get(callsite.file_path)

        settings_reference = self.resolve_settings_reference(callsite)
        command_reference = resolve_command_reference(callsite.command_type, entry_module, self.resolver)
        supported_events = resolve_supported_events(callsite.supported_events_type, entry_module, self.resolver)
        remaining_events = apply_event_exclusions(supported_events, self.excluded_events)

        references = [settings_reference] + ([command_reference] if command_reference else [])
        values = self.load_references(references)

        return ManifestMetadata(
            settings_schema=values[0],
            command_schema=values[1] if command_reference else None,
            allow_missing_command_schema=command_reference is None,
            supported_events=remaining_events,
            excluded_supported_events=list(self.excluded_events),
            entrypoint=callsite,
        )


def extract_manifest_metadata(project_root: Path, excluded_events: Union[str, Iterable[str], None] = None,
                              loader: Optional[RuntimeLoader] = None) -> ManifestMetadata:
    """Convenience wrapper: one fresh ContractExtractor, one run."""
    return ContractExtractor(project_root, loader=loader, excluded_events=excluded_events).extract()

"""Tests for cross-file symbol resolution."""
import pytest

from manifest_sync.analyzer.contract import resolve_supported_events
from manifest_sync.analyzer.resolver import SymbolResolver, load_tsconfig_paths, strip_type_assertions
from manifest_sync.analyzer.source_module import ModuleCache
from manifest_sync.errors import CycleError, ResolutionError


def make_resolver(root, tsconfig_paths=None):
    cache = ModuleCache()
    return SymbolResolver(root, cache, tsconfig_paths), cache


class TestRuntimeReferences:
    """Test resolution of value expressions to (module, export) pairs."""

    def test_namespace_member(self, make_tree):
        root = make_tree({
            'src/index.ts': 'import * as Schemas from "./schemas";\n',
            'src/schemas.ts': 'export const settingsRuntimeSchema = {};\n',
        })
        resolver, cache = make_resolver(root)

        reference = resolver.resolve_runtime_reference_from_identifier(
            'Schemas.settingsRuntimeSchema', cache.get(root / 'src/index.ts')
        )

        assert reference.module_path == (root / 'src/schemas.ts').resolve()
        assert reference.export_name == 'settingsRuntimeSchema'
        assert reference.source_expression == 'Schemas.settingsRuntimeSchema'

    def test_named_import_uses_original_name(self, make_tree):
        root = make_tree({
            'src/index.ts': 'import { pluginSettingsSchema as schema } from "./types/plugin-input";\n',
            'src/types/plugin-input.ts': 'export const pluginSettingsSchema = {};\n',
        })
        resolver, cache = make_resolver(root)

        reference = resolver.resolve_runtime_reference_from_identifier('schema', cache.get(root / 'src/index.ts'))

        assert reference.module_path.name == 'plugin-input.ts'
        assert reference.export_name == 'pluginSettingsSchema'

    def test_default_import(self, make_tree):
        root = make_tree({
            'src/index.ts': 'import settings from "./settings";\n',
            'src/settings.ts': 'export default {};\n',
        })
        resolver, cache = make_resolver(root)

        reference = resolver.resolve_runtime_reference_from_identifier('settings', cache.get(root / 'src/index.ts'))

        assert reference.export_name == 'default'

    def test_local_binding_uses_public_name(self, make_tree):
        root = make_tree({
            'src/index.ts': 'const local = {};\nexport { local as settings };\n',
        })
        resolver, cache = make_resolver(root)

        reference = resolver.resolve_runtime_reference_from_identifier('local', cache.get(root / 'src/index.ts'))

        assert reference.module_path == (root / 'src/index.ts').resolve()
        assert reference.export_name == 'settings'

    def test_type_assertions_are_peeled(self, make_tree):
        root = make_tree({
            'src/index.ts': 'import { schema } from "./schema.js";\n',
            'src/schema.ts': 'export const schema = {};\n',
        })
        resolver, cache = make_resolver(root)
        module = cache.get(root / 'src/index.ts')

        for expression in ('(schema as unknown as TSchema)', 'schema satisfies TSchema', 'schema!'):
            reference = resolver.resolve_runtime_reference_from_identifier(expression, module)
            assert reference.module_path.name == 'schema.ts', f"Failed for {expression}"

    def test_call_expression_rejected(self, make_tree):
        root = make_tree({'src/index.ts': 'const x = 1;\n'})
        resolver, cache = make_resolver(root)

        with pytest.raises(ResolutionError, match='Unsupported reference expression'):
            resolver.resolve_runtime_reference_from_identifier('createSchema()', cache.get(root / 'src/index.ts'))

    def test_package_import_is_unresolvable(self, make_tree):
        root = make_tree({'src/index.ts': 'import { schema } from "@sinclair/typebox";\n'})
        resolver, cache = make_resolver(root)

        with pytest.raises(ResolutionError, match='@sinclair/typebox'):
            resolver.resolve_runtime_reference_from_identifier('schema', cache.get(root / 'src/index.ts'))


class TestModuleSpecifiers:
    """Test specifier-to-file probing."""

    def test_tsconfig_paths_with_comments(self, make_tree):
        root = make_tree({
            'tsconfig.json': '''
                {
                  // path aliases
                  "compilerOptions": {
                    "paths": { "@types/*": ["src/types/*"], },
                  },
                }
            ''',
            'src/index.ts': 'import { schema } from "@types/schema";\n',
            'src/types/schema.ts': 'export const schema = {};\n',
        })
        paths = load_tsconfig_paths(root)
        assert paths == {'@types/*': ['src/types/*']}

        resolver, cache = make_resolver(root, paths)
        reference = resolver.resolve_runtime_reference_from_identifier('schema', cache.get(root / 'src/index.ts'))
        assert reference.module_path == (root / 'src/types/schema.ts').resolve()

    def test_directory_index(self, make_tree):
        root = make_tree({'src/types/index.ts': 'export {};\n', 'src/index.ts': ''})
        resolver, _ = make_resolver(root)
        resolved = resolver.resolve_source_file((root / 'src/index.ts').resolve(), './types')
        assert resolved.name == 'index.ts'

    def test_missing_tsconfig(self, tmp_path):
        assert load_tsconfig_paths(tmp_path) == {}

    def test_strip_type_assertions(self):
        assert strip_type_assertions('(<Schema>value)') == 'value'
        assert strip_type_assertions('value as Record<string, unknown>') == 'value'


class TestTypeAliases:
    """Test type-alias resolution through imports and barrels."""

    def test_star_reexports_first_success_wins(self, make_tree):
        root = make_tree({
            'src/index.ts': 'import { SupportedEvents } from "./types";\n',
            'src/types/index.ts': 'export * from "./other";\nexport * from "./context";\n',
            'src/types/other.ts': 'export type Other = "x.y";\n',
            'src/types/context.ts': 'export type SupportedEvents = "issues.opened" | "issues.closed";\n',
        })
        resolver, cache = make_resolver(root)

        alias = resolver.resolve_type_alias('SupportedEvents', cache.get(root / 'src/index.ts'))

        assert alias.module.path.name == 'context.ts'
        assert alias.body == '"issues.opened" | "issues.closed"'

    def test_renamed_reexport(self, make_tree):
        root = make_tree({
            'src/index.ts': 'import { Outer } from "./barrel";\n',
            'src/barrel.ts': 'export { Inner as Outer } from "./inner";\n',
            'src/inner.ts': 'export type Inner = "a.b";\n',
        })
        resolver, cache = make_resolver(root)

        alias = resolver.resolve_type_alias('Outer', cache.get(root / 'src/index.ts'))

        assert alias.name == 'Inner'
        assert alias.body == '"a.b"'

    def test_alias_chain_reduces_to_literals(self, make_tree):
        root = make_tree({
            'src/index.ts': 'import { Events } from "./events";\n',
            'src/events.ts': 'type Base = "issues.opened" | "issues.edited";\nexport type Events = Base;\n',
        })
        resolver, cache = make_resolver(root)

        events = resolve_supported_events('Events', cache.get(root / 'src/index.ts'), resolver)

        assert events == ['issues.opened', 'issues.edited']

    def test_alias_cycle_detected(self, make_tree):
        root = make_tree({'src/index.ts': 'type A = B;\ntype B = A;\n'})
        resolver, cache = make_resolver(root)

        with pytest.raises(CycleError) as exc_info:
            resolve_supported_events('A', cache.get(root / 'src/index.ts'), resolver)

        assert '#A' in str(exc_info.value)
        assert '#B' in str(exc_info.value)

    def test_import_cycle_detected(self, make_tree):
        root = make_tree({
            'src/a.ts': 'import { T } from "./b";\n',
            'src/b.ts': 'import { T } from "./a";\n',
        })
        resolver, cache = make_resolver(root)

        with pytest.raises(CycleError):
            resolver.resolve_type_alias('T', cache.get(root / 'src/a.ts'))

    def test_cycle_through_star_reexport_propagates(self, make_tree):
        root = make_tree({
            'src/a.ts': 'export * from "./b";\n',
            'src/b.ts': 'export * from "./a";\n',
        })
        resolver, cache = make_resolver(root)

        with pytest.raises(CycleError):
            resolver.resolve_type_alias('Missing', cache.get(root / 'src/a.ts'))

    def test_missing_alias(self, make_tree):
        root = make_tree({'src/index.ts': 'export const x = 1;\n'})
        resolver, cache = make_resolver(root)

        with pytest.raises(ResolutionError) as exc_info:
            resolver.resolve_type_alias('Nope', cache.get(root / 'src/index.ts'))

        assert not isinstance(exc_info.value, CycleError)

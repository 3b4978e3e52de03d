"""Tests for per-file extraction: imports, re-exports, type aliases, object literals."""
import pytest

from manifest_sync.analyzer.imports import ImportInfo, JSImportTracker, ReexportInfo
from manifest_sync.analyzer.object_literal import parse_object_literal
from manifest_sync.analyzer.source_module import ModuleCache
from manifest_sync.analyzer.type_aliases import parse_type_aliases
from manifest_sync.errors import ResolutionError

MODULE_SOURCE = '''
import Default, { named, original as alias, type OnlyType } from "./a";
import * as Schemas from './schemas';
import type { Ctx } from "../types/context";
import "./side-effect";
const lazy = import("./lazy");
// import { commented } from "./nope";
const text = "import { inString } from './nope'";
export { reexported, inner as outer } from "./b";
export * from "./barrel";
export * as ns from "./ns";
export type { T1 } from "./t";
const local = 1;
export { local as publicLocal };
'''


@pytest.fixture
def tracker():
    return JSImportTracker(MODULE_SOURCE)


class TestImports:
    """Test import clause extraction."""

    def test_default_import(self, tracker):
        table = tracker.analyze_imports()
        assert table.default == {'Default': ImportInfo('./a', 'default')}

    def test_named_imports_with_aliases(self, tracker):
        table = tracker.analyze_imports()
        assert table.named['named'] == ImportInfo('./a', 'named')
        assert table.named['alias'] == ImportInfo('./a', 'original')
        assert table.named['OnlyType'] == ImportInfo('./a', 'OnlyType')
        assert table.named['Ctx'] == ImportInfo('../types/context', 'Ctx')

    def test_namespace_import(self, tracker):
        table = tracker.analyze_imports()
        assert table.namespace == {'Schemas': ImportInfo('./schemas', None, True)}

    def test_comments_strings_and_dynamic_imports_ignored(self, tracker):
        table = tracker.analyze_imports()
        all_locals = set(table.named) | set(table.default) | set(table.namespace)
        assert 'commented' not in all_locals
        assert 'inString' not in all_locals
        assert 'lazy' not in all_locals

    def test_default_as_named_is_default_import(self):
        table = JSImportTracker('import { default as schema } from "./schema";').analyze_imports()
        assert table.default == {'schema': ImportInfo('./schema', 'default')}
        assert table.named == {}


class TestReexports:
    """Test `export ... from` and local export extraction."""

    def test_named_reexports(self, tracker):
        table = tracker.analyze_reexports()
        assert table.named['reexported'] == ReexportInfo('./b', 'reexported')
        assert table.named['outer'] == ReexportInfo('./b', 'inner')
        assert table.named['T1'] == ReexportInfo('./t', 'T1')

    def test_namespace_reexport(self, tracker):
        table = tracker.analyze_reexports()
        assert table.named['ns'] == ReexportInfo('./ns', '*', True)

    def test_star_reexports_in_order(self):
        source = 'export * from "./one";\nexport * from "./two";\nexport * from "./one";\n'
        assert JSImportTracker(source).analyze_reexports().star == ['./one', './two']

    def test_local_export_renames(self, tracker):
        assert tracker.analyze_local_exports() == {'publicLocal': 'local'}


class TestTypeAliases:
    """Test type-alias body extraction and statement termination."""

    def test_semicolon_terminated(self):
        aliases = parse_type_aliases('export type A = "x" | "y";\ntype B = A;')
        assert aliases == {'A': '"x" | "y"', 'B': 'A'}

    def test_multiline_union_without_semicolons(self):
        source = (
            'export type SupportedEvents =\n'
            '  | "issue_comment.created"\n'
            '  | "issues.labeled"\n'
            'export const x = 1\n'
        )
        body = parse_type_aliases(source)['SupportedEvents']
        assert body.startswith('| "issue_comment.created"')
        assert body.endswith('"issues.labeled"')
        assert 'export' not in body

    def test_object_type_spanning_lines(self):
        source = 'type Obj = {\n  a: string;\n  b: number\n}\ntype Next = "n"'
        aliases = parse_type_aliases(source)
        assert aliases['Obj'] == '{\n  a: string;\n  b: number\n}'
        assert aliases['Next'] == '"n"'

    def test_alias_closing_a_namespace_block(self):
        aliases = parse_type_aliases('declare namespace N {\n  type Inner = "a" | "b"\n}')
        assert aliases['Inner'] == '"a" | "b"'

    def test_generic_parameters_skipped(self):
        assert parse_type_aliases('type Box<T = string> = { value: T };')['Box'] == '{ value: T }'

    def test_comments_and_strings_ignored(self):
        source = '// type Fake = "no"\nconst s = "type X = 1";\ntype Real = "yes";'
        assert parse_type_aliases(source) == {'Real': '"yes"'}

    def test_first_declaration_wins(self):
        assert parse_type_aliases('type A = "first";\ntype A = "second";') == {'A': '"first"'}


class TestObjectLiteral:
    """Test option-object parsing."""

    def test_direct_shorthand_and_spread(self):
        literal = parse_object_literal(
            '{ settingsSchema: Schemas.pluginSettingsSchema, envSchema, ...rest, "quoted-key": 1 }'
        )
        assert literal.get('settingsSchema').value == 'Schemas.pluginSettingsSchema'
        assert literal.get('envSchema').shorthand
        assert literal.get('quoted-key').value == '1'
        assert literal.spreads == ['rest']

    def test_spread_never_satisfies_direct_lookup(self):
        literal = parse_object_literal('{ ...{ settingsSchema: x } }')
        assert not literal.has_direct_property('settingsSchema')

    def test_nested_values_and_comments(self):
        literal = parse_object_literal(
            '({\n  // settingsSchema: commented,\n  logLevel: (a as B) || c,\n  nested: { settingsSchema: y },\n})'
        )
        assert literal.as_dict() == {'logLevel': '(a as B) || c', 'nested': '{ settingsSchema: y }'}

    def test_methods_and_computed_keys_ignored(self):
        literal = parse_object_literal('{ [key]: 1, run() { return 1; }, ok: true }')
        assert literal.as_dict() == {'ok': 'true'}

    def test_no_object(self):
        assert parse_object_literal('options') is None


class TestModuleCache:
    """Test lazy per-run module caching."""

    def test_parses_once(self, tmp_path):
        source = tmp_path / 'a.ts'
        source.write_text('export type A = "x";', encoding='utf-8')
        cache = ModuleCache()

        first = cache.get(source)
        source.write_text('export type A = "changed";', encoding='utf-8')
        second = cache.get(tmp_path / '.' / 'a.ts')

        assert first is second
        assert second.type_aliases == {'A': '"x"'}
        assert source in cache
        assert len(cache) == 1

    def test_missing_file_is_resolution_error(self, tmp_path):
        with pytest.raises(ResolutionError):
            ModuleCache().get(tmp_path / 'missing.ts')

    def test_location_reports_line(self, tmp_path):
        source = tmp_path / 'a.ts'
        source.write_text('a\nb\nc', encoding='utf-8')
        module = ModuleCache().get(source)
        assert module.location(module.text.index('c')) == f"{source.resolve()}:3"

"""Shared fixtures: plugin source trees on disk and a stand-in runtime loader."""
import json
import textwrap
from pathlib import Path
from typing import Any, Dict, List, Sequence, Tuple

import pytest

from manifest_sync.errors import LoaderStrategyError, ModuleLoadError


def write_tree(root: Path, files: Dict[str, Any]) -> Path:
    """Write {relative path: content} under root; dicts are dumped as JSON."""
    for relative, content in files.items():
        target = root / relative
        target.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, (dict, list)):
            target.write_text(json.dumps(content, indent=2), encoding='utf-8')
        else:
            target.write_text(textwrap.dedent(content).lstrip('\n'), encoding='utf-8')
    return root


class FakeLoader:
    """Serves export maps keyed by file name instead of running a JS runtime.

    Files missing from `exports_by_file` fail the way RuntimeLoader does when
    every strategy fails.
    """

    def __init__(self, exports_by_file: Dict[str, Dict[str, Any]]):
        self.exports_by_file = exports_by_file
        self.calls: List[Tuple[Path, List[str]]] = []

    def load(self, module_path: Path, export_names: Sequence[str]) -> Dict[str, Any]:
        self.calls.append((Path(module_path), list(export_names)))
        exports = self.exports_by_file.get(Path(module_path).name)
        if exports is None:
            raise ModuleLoadError(module_path, [LoaderStrategyError("fake", "module not available")])
        return {name: exports[name] for name in export_names if name in exports}


SETTINGS_SCHEMA = {
    "type": "object",
    "properties": {
        "greeting": {"type": "string", "default": "hi"},
        "channel": {"type": "string"},
    },
    "required": ["greeting", "channel"],
}

COMMAND_SCHEMA = {
    "anyOf": [
        {
            "type": "object",
            "properties": {
                "name": {"const": "hello", "description": "Say hello", "examples": ["/hello"]},
                "parameters": {"type": "object", "properties": {}},
            },
        }
    ]
}


PLUGIN_FILES = {
    "package.json": {"name": "hello-plugin", "description": "Greets people"},
    "src/index.ts": '''
        import { createPlugin } from "@ubiquity-os/plugin-sdk";
        import { Manifest } from "@ubiquity-os/plugin-sdk/manifest";
        import * as Schemas from "./types/plugin-input";
        import { Command } from "./types/command";
        import { Env, PluginSettings, SupportedEvents } from "./types";
        import manifest from "../manifest.json";

        // createPlugin<A, B, C, D>(x, y, { settingsSchema: nope })
        export default createPlugin<PluginSettings, Env, Command, SupportedEvents>(
          (context) => {
            return runPlugin(context);
          },
          manifest as Manifest,
          {
            envSchema: Schemas.envSchema,
            settingsSchema: Schemas.pluginSettingsSchema,
            postCommentOnError: true,
            logLevel: (process.env.LOG_LEVEL as LogLevel) || LOG_LEVEL.INFO,
          }
        );
    ''',
    "src/types/index.ts": '''
        export * from "./plugin-input";
        export * from "./context";
    ''',
    "src/types/plugin-input.ts": '''
        import { StaticDecode, Type as T } from "@sinclair/typebox";

        export const pluginSettingsSchema = T.Object(
          { greeting: T.String({ default: "hi" }), channel: T.String() },
          { default: {} }
        );
        export type PluginSettings = StaticDecode<typeof pluginSettingsSchema>;

        export const envSchema = T.Object({});
        export type Env = StaticDecode<typeof envSchema>;
    ''',
    "src/types/context.ts": '''
        export type SupportedEvents =
          | "issue_comment.created"
          | "issues.labeled"
          | "issue_comment.created";
    ''',
    "src/types/command.ts": '''
        import { Static, Type as T } from "@sinclair/typebox";

        export const commandSchema = T.Union([
          T.Object({ name: T.Literal("hello"), parameters: T.Object({}) }),
        ]);
        export type Command = Static<typeof commandSchema>;
    ''',
    "tests/main.test.ts": '''
        createPlugin<A, B, C, D>(handler, manifest, { settingsSchema: mocked });
    ''',
}


@pytest.fixture
def make_tree(tmp_path):
    """Return a writer that lays out source files under tmp_path."""
    def _make(files: Dict[str, Any]) -> Path:
        return write_tree(tmp_path, files)
    return _make


@pytest.fixture
def plugin_project(tmp_path):
    """A complete plugin repository with a createPlugin entrypoint."""
    return write_tree(tmp_path, PLUGIN_FILES)


@pytest.fixture
def fake_loader():
    """Loader serving the plugin_project schema exports."""
    return FakeLoader({
        "plugin-input.ts": {"pluginSettingsSchema": SETTINGS_SCHEMA, "envSchema": {"type": "object"}},
        "command.ts": {"commandSchema": COMMAND_SCHEMA},
    })


@pytest.fixture
def loader_factory():
    """Build a FakeLoader from an arbitrary export table."""
    return FakeLoader

"""Runtime loading of resolved plugin exports.

Static resolution yields (module, export) pointers; the concrete schema values
come from actually evaluating the module. Strategies are tried in order and
the first success wins:

1. Deno subprocess: imports the module fresh and prints one marker line.
2. Node dynamic import, with a minimal `Deno` stand-in preloaded for plugins
   that touch `Deno.env` and friends at import time.
3. Node CommonJS `require`, for plain CJS sources.

Every strategy speaks the same wire contract: a line holding
EXPORTS_MARKER immediately followed by a JSON object. stdout is scanned in
reverse and the last marker line wins, so plugin logging never interferes.

No timeout is applied to the subprocesses; a module that hangs at import time
blocks the run. stdout is read incrementally and the process is killed once
it passes the byte limit.
"""
import json
import os
import re
import subprocess
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from ..errors import LoaderStrategyError, ModuleLoadError

EXPORTS_MARKER = "__MANIFEST_SYNC_EXPORTS__"
DEFAULT_OUTPUT_LIMIT = 16 * 1024 * 1024
READ_CHUNK_SIZE = 64 * 1024

# Trailing `Node.js v20.19.5` line node prints after an uncaught error
_RUNTIME_BANNER_RE = re.compile(r'^(?:Node\.js|Deno) v?\d')
_ERROR_LINE_RE = re.compile(r'^(?:\w*(?:Error|Exception)\b|error:)')

SHIM_FLAG = "__manifestSyncDenoShim"

# Installed only when the runtime has no Deno global of its own
DENO_SHIM_SCRIPT = f"""\
if (!("Deno" in globalThis)) {{
  class NotFound extends Error {{}}
  globalThis.Deno = {{
    env: {{
      get: (key) => process.env[key],
      has: (key) => key in process.env,
      toObject: () => ({{ ...process.env }}),
    }},
    cwd: () => process.cwd(),
    build: {{ os: process.platform === "win32" ? "windows" : process.platform, arch: process.arch }},
    errors: {{ NotFound }},
  }};
  globalThis.{SHIM_FLAG} = true;
}}
"""


def parse_loader_output(stdout: str) -> Dict[str, Any]:
    """Extract the export map from a loader's stdout.

    Raises:
        ValueError: If no marker line exists or its payload is not a JSON object
    """
    for line in reversed(stdout.splitlines()):
        index = line.find(EXPORTS_MARKER)
        if index == -1:
            continue
        payload = line[index + len(EXPORTS_MARKER):]
        try:
            data = json.loads(payload)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid export payload after {EXPORTS_MARKER}: {e}") from e
        if not isinstance(data, dict):
            raise ValueError(f"Export payload must be a JSON object, got {type(data).__name__}")
        return data
    raise ValueError(f"Loader output has no {EXPORTS_MARKER} line")


def pick_exports(exports: Any, export_names: Sequence[str]) -> Dict[str, Any]:
    """Pick requested names, falling back to properties of a default export.

    Bundlers sometimes emit `export default { settingsSchema, ... }` instead of
    named exports.
    """
    if not isinstance(exports, dict):
        return {}

    default = exports.get('default')
    picked = {}
    for name in export_names:
        if name in exports:
            picked[name] = exports[name]
        elif isinstance(default, dict) and name in default:
            picked[name] = default[name]
    return picked


def _emit_script(names: Sequence[str]) -> str:
    """JS that prints the requested exports of `mod`.

    A name missing from the module is looked up on `mod.default` instead, and
    only that property is copied; the default export itself is never
    serialized unless it was asked for.
    """
    requested = json.dumps(list(dict.fromkeys(names)))
    return (
        f"const picked = {{}};\n"
        f"const scope = mod != null ? Object(mod) : {{}};\n"
        f"const fallback = scope.default != null && typeof scope.default === \"object\" ? scope.default : null;\n"
        f"for (const name of {requested}) {{\n"
        f"  if (name in scope && scope[name] !== undefined) picked[name] = scope[name];\n"
        f"  else if (fallback && name in fallback && fallback[name] !== undefined) picked[name] = fallback[name];\n"
        f"}}\n"
        f"console.log({json.dumps(EXPORTS_MARKER)} + JSON.stringify(picked));\n"
    )


def summarize_stderr(stderr: str) -> str:
    """Pick the line of a runtime's stderr that explains a crash.

    Prefers the first line starting with an error name (`TypeError: ...`,
    Deno's `error: ...`); otherwise the last few lines, with
    the runtime's version banner dropped.
    """
    lines = [line.strip() for line in (stderr or '').splitlines()]
    lines = [line for line in lines if line and not _RUNTIME_BANNER_RE.match(line)]
    if not lines:
        return 'no stderr output'
    for line in lines:
        if _ERROR_LINE_RE.match(line):
            return line
    return ' | '.join(lines[-3:])


class LoaderStrategy:
    """One way of turning a module path into an export map."""

    name = "strategy"

    def load(self, module_path: Path, export_names: Sequence[str]) -> Dict[str, Any]:
        raise NotImplementedError


class SubprocessStrategy(LoaderStrategy):
    """Run a JS runtime that prints the marker line, then parse it."""

    def __init__(self, binary: str, cwd: Optional[Path] = None, output_limit: int = DEFAULT_OUTPUT_LIMIT):
        self.binary = binary
        self.cwd = Path(cwd) if cwd else None
        self.output_limit = output_limit

    def build_command(self, module_path: Path, export_names: Sequence[str]) -> List[str]:
        raise NotImplementedError

    def _read_stdout(self, process: subprocess.Popen) -> str:
        """Read stdout in chunks, killing the process past the byte limit."""
        chunks = []
        size = 0
        while True:
            chunk = process.stdout.read(READ_CHUNK_SIZE)
            if not chunk:
                break
            size += len(chunk)
            if size > self.output_limit:
                process.kill()
                process.wait()
                raise LoaderStrategyError(self.name, f"output exceeded {self.output_limit} bytes")
            chunks.append(chunk)
        return b''.join(chunks).decode('utf-8', errors='replace')

    def run(self, command: List[str]) -> str:
        # stderr is spooled to a file; only stdout is read while the process runs
        with tempfile.TemporaryFile() as stderr_file:
            try:
                process = subprocess.Popen(
                    command,
                    stdout=subprocess.PIPE,
                    stderr=stderr_file,
                    cwd=str(self.cwd) if self.cwd else None,
                )
            except OSError as e:
                raise LoaderStrategyError(self.name, f"could not start '{self.binary}': {e}") from e

            try:
                stdout = self._read_stdout(process)
            finally:
                process.stdout.close()
            returncode = process.wait()

            if returncode != 0:
                stderr_file.seek(0)
                stderr = stderr_file.read().decode('utf-8', errors='replace')
                raise LoaderStrategyError(
                    self.name, f"exited with status {returncode}: {summarize_stderr(stderr)}"
                )
        return stdout

    def load(self, module_path: Path, export_names: Sequence[str]) -> Dict[str, Any]:
        stdout = self.run(self.build_command(Path(module_path), export_names))
        try:
            return parse_loader_output(stdout)
        except ValueError as e:
            raise LoaderStrategyError(self.name, str(e)) from e


class DenoSubprocessStrategy(SubprocessStrategy):
    name = "deno"

    def build_command(self, module_path: Path, export_names: Sequence[str]) -> List[str]:
        script = (
            f"const mod = await import({json.dumps(module_path.resolve().as_uri())});\n"
            + _emit_script(export_names)
        )
        return [self.binary, "eval", script]


class NodeImportStrategy(SubprocessStrategy):
    """Dynamic import under node with a temporary Deno stand-in.

    The stand-in lives in a preload script that is deleted on every exit
    path; inside the runtime the global is removed again in a `finally`.
    """

    name = "node-import"

    def build_command(self, module_path: Path, export_names: Sequence[str], shim_path: Path = None) -> List[str]:
        script = (
            "let mod;\n"
            "try {\n"
            f"  mod = await import({json.dumps(module_path.resolve().as_uri())});\n"
            "} finally {\n"
            f"  if (globalThis.{SHIM_FLAG}) {{ delete globalThis.Deno; delete globalThis.{SHIM_FLAG}; }}\n"
            "}\n"
            + _emit_script(export_names)
        )
        command = [self.binary, "--experimental-strip-types", "--no-warnings"]
        if shim_path is not None:
            command += ["--import", shim_path.resolve().as_uri()]
        return command + ["--input-type=module", "-e", script]

    def load(self, module_path: Path, export_names: Sequence[str]) -> Dict[str, Any]:
        handle, shim_name = tempfile.mkstemp(prefix="manifest-sync-shim-", suffix=".mjs")
        shim_path = Path(shim_name)
        try:
            with os.fdopen(handle, 'w', encoding='utf-8') as f:
                f.write(DENO_SHIM_SCRIPT)
            stdout = self.run(self.build_command(Path(module_path), export_names, shim_path))
        finally:
            shim_path.unlink(missing_ok=True)

        try:
            return parse_loader_output(stdout)
        except ValueError as e:
            raise LoaderStrategyError(self.name, str(e)) from e


class NodeRequireStrategy(SubprocessStrategy):
    name = "node-require"

    def build_command(self, module_path: Path, export_names: Sequence[str]) -> List[str]:
        script = (
            f"const mod = require({json.dumps(str(module_path.resolve()))});\n"
            + _emit_script(export_names)
        )
        return [self.binary, "-e", script]


def default_strategies(deno_binary: str = "deno", node_binary: str = "node", cwd: Optional[Path] = None,
                       output_limit: int = DEFAULT_OUTPUT_LIMIT) -> List[LoaderStrategy]:
    return [
        DenoSubprocessStrategy(deno_binary, cwd=cwd, output_limit=output_limit),
        NodeImportStrategy(node_binary, cwd=cwd, output_limit=output_limit),
        NodeRequireStrategy(node_binary, cwd=cwd, output_limit=output_limit),
    ]


class RuntimeLoader:
    """Try each strategy in order; aggregate failures into one error."""

    def __init__(self, strategies: Optional[Sequence[LoaderStrategy]] = None):
        self.strategies = list(strategies) if strategies is not None else default_strategies()

    def load(self, module_path: Path, export_names: Sequence[str]) -> Dict[str, Any]:
        """Load the requested exports of a module.

        Returns:
            Export map restricted to `export_names` (missing names are absent)

        Raises:
            ModuleLoadError: If every strategy failed
        """
        failures: List[LoaderStrategyError] = []
        for strategy in self.strategies:
            try:
                exports = strategy.load(Path(module_path), export_names)
            except LoaderStrategyError as e:
                failures.append(e)
                continue
            return pick_exports(exports, export_names)

        raise ModuleLoadError(module_path, failures)

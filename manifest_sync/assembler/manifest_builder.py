"""Manifest assembly.

build_manifest merges freshly resolved plugin values into an existing
manifest. It never raises for a bad field: each problem becomes a warning and
the field is omitted or keeps its previous value, so the write still goes
ahead.
"""
import copy
import re
from typing import Any, Dict, List, Optional, Tuple

from .command_converter import convert_command_union, is_tagged_union, validate_commands

LISTENERS_KEY = "ubiquity:listeners"

FIELD_ORDER = [
    "name",
    "short_name",
    "description",
    "commands",
    LISTENERS_KEY,
    "skipBotEvents",
    "configuration",
    "homepage_url",
]

_EVENT_RE = re.compile(r'^[\w-]+\.[\w-]+$')
_TRUE_STRINGS = {"true", "1", "yes", "on"}
_FALSE_STRINGS = {"false", "0", "no", "off"}


def revive_schema(value: Any) -> Any:
    """Deep-copy a JSON schema, dropping defaulted properties from `required`.

    Applied recursively; a `required` array that ends up empty is removed.
    """
    if isinstance(value, list):
        return [revive_schema(item) for item in value]
    if not isinstance(value, dict):
        return copy.deepcopy(value)

    revived = {key: revive_schema(item) for key, item in value.items()}
    properties = revived.get("properties")
    if isinstance(properties, dict) and isinstance(revived.get("required"), list):
        required = [
            field_name for field_name in dict.fromkeys(revived["required"])
            if not (isinstance(properties.get(field_name), dict) and "default" in properties[field_name])
        ]
        if required:
            revived["required"] = required
        else:
            del revived["required"]
    return revived


def validate_listeners(listeners: Any) -> Optional[str]:
    """Check that listeners is a non-empty array of "event.action" strings.

    Returns:
        Error message, or None if valid
    """
    if not isinstance(listeners, list):
        return "pluginListeners must be an array of webhook event strings"
    if not listeners:
        return "the supported events array is empty"
    for listener in listeners:
        if not isinstance(listener, str) or not _EVENT_RE.match(listener):
            return (
                f'Listener "{listener}" does not look like a valid webhook event '
                '(expected format: "event.action")'
            )
    return None


def normalize_skip_bot_events(value: Any) -> Tuple[bool, Optional[str]]:
    """Coerce the skip-bot-events flag to a bool, defaulting to True.

    Returns:
        (value, warning or None)
    """
    if isinstance(value, bool):
        return value, None
    if value is None:
        return True, None
    if isinstance(value, str):
        lowered = value.strip().lower()
        if not lowered:
            return True, None
        if lowered in _TRUE_STRINGS:
            return True, None
        if lowered in _FALSE_STRINGS:
            return False, None
        return True, (
            f'manifest.skipBotEvents: unrecognized value "{value}" (expected boolean). '
            "Using default true."
        )
    return True, (
        f'manifest.skipBotEvents: invalid type "{type(value).__name__}" (expected boolean). '
        "Using default true."
    )


def order_manifest_fields(manifest: Dict[str, Any]) -> Dict[str, Any]:
    """Known fields in canonical order, then unknown fields as they came."""
    ordered = {key: manifest[key] for key in FIELD_ORDER if key in manifest}
    for key, value in manifest.items():
        if key not in ordered:
            ordered[key] = value
    return ordered


def _package_string(package_json: Optional[Dict[str, Any]], key: str) -> Optional[str]:
    if not isinstance(package_json, dict):
        return None
    value = package_json.get(key)
    if isinstance(value, str) and value.strip():
        return value
    return None


def _merge_package_field(manifest: Dict[str, Any], package_json: Optional[Dict[str, Any]], key: str,
                         warnings: List[str]) -> None:
    value = _package_string(package_json, key)
    if value is not None:
        manifest[key] = value
    elif manifest.get(key):
        warnings.append(
            f'manifest.{key}: no "{key}" found in package.json. '
            f"Keeping existing manifest value: {manifest[key]}"
        )
    else:
        manifest.pop(key, None)
        warnings.append(
            f'manifest.{key}: no "{key}" found in package.json and no existing value in '
            "manifest.json. Field will be absent."
        )


def _merge_commands(manifest: Dict[str, Any], command_schema: Any, allow_missing: bool,
                    warnings: List[str]) -> None:
    if command_schema is None:
        if not allow_missing:
            warnings.append(
                'manifest.commands: no "commandSchema" export found in schema module. '
                "Field will not be auto-generated."
            )
        return

    error = validate_commands(command_schema)
    if error is None:
        manifest["commands"] = copy.deepcopy(command_schema)
        return

    if is_tagged_union(command_schema):
        commands, conversion_error = convert_command_union(command_schema, manifest.get("commands"))
        if commands is not None:
            manifest["commands"] = commands
            return
        warnings.append(f"manifest.commands: commandSchema could not be converted: {conversion_error}. Skipping.")
    else:
        warnings.append(f"manifest.commands: {error}. Skipping.")


def build_manifest(existing_manifest: Dict[str, Any], plugin_values: Dict[str, Any],
                   package_json: Optional[Dict[str, Any]], repo_info: Dict[str, str],
                   options: Optional[Dict[str, Any]] = None) -> Tuple[Dict[str, Any], List[str]]:
    """Merge resolved plugin values into the existing manifest.

    Args:
        existing_manifest: Current manifest.json contents
        plugin_values: Resolved values: `settingsSchema`, `commandSchema`
        package_json: The plugin's package.json, or None if unreadable
        repo_info: `repository` and `ref_name` of the plugin repository
        options: `supportedEvents`, `skipBotEvents`, `allowMissingCommandSchema`

    Returns:
        (ordered manifest, warnings)
    """
    options = options or {}
    manifest = copy.deepcopy(existing_manifest) if isinstance(existing_manifest, dict) else {}
    warnings: List[str] = []

    _merge_package_field(manifest, package_json, "name", warnings)

    manifest["short_name"] = f"{repo_info['repository']}@{repo_info['ref_name']}"

    _merge_package_field(manifest, package_json, "description", warnings)

    _merge_commands(
        manifest,
        plugin_values.get("commandSchema"),
        bool(options.get("allowMissingCommandSchema", False)),
        warnings,
    )

    supported_events = options.get("supportedEvents")
    if supported_events is None:
        warnings.append(
            f'manifest["{LISTENERS_KEY}"]: no SupportedEvents type found. Field will not be auto-generated.'
        )
    else:
        error = validate_listeners(supported_events)
        if error:
            warnings.append(f'manifest["{LISTENERS_KEY}"]: SupportedEvents type found but invalid: {error}. Skipping.')
        else:
            manifest[LISTENERS_KEY] = list(supported_events)

    skip_bot_events, warning = normalize_skip_bot_events(options.get("skipBotEvents"))
    manifest["skipBotEvents"] = skip_bot_events
    if warning:
        warnings.append(warning)

    settings_schema = plugin_values.get("settingsSchema")
    if settings_schema is not None:
        manifest["configuration"] = revive_schema(settings_schema)
    else:
        warnings.append(
            'manifest.configuration: no "pluginSettingsSchema" export found in schema module. '
            "Configuration will not be auto-generated."
        )

    # homepage_url is never touched
    return order_manifest_fields(manifest), warnings

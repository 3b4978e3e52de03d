"""Command schema validation and tagged-union conversion.

A plugin may describe its commands either as a direct map::

    {"start": {"description": "...", "ubiquity:example": "/start"}}

or as a TypeBox-style union over a literal `name` field::

    {"anyOf": [{"properties": {"name": {"const": "start", "examples": ["/start"]}}}]}

The union form is flattened into the direct map.
"""
from typing import Any, Dict, Optional, Tuple

EXAMPLE_KEY = "ubiquity:example"


def validate_commands(commands: Any) -> Optional[str]:
    """Check that commands is a well-formed direct command map.

    Returns:
        Error message, or None if valid
    """
    if not isinstance(commands, dict):
        return "pluginCommands must be a plain object (Record<string, CommandSchema>)"
    for key, cmd in commands.items():
        if not isinstance(cmd, dict):
            return f'Command "{key}" must be an object'
        if not cmd.get("description") or not isinstance(cmd["description"], str):
            return f'Command "{key}" is missing a "description" string'
        if not cmd.get(EXAMPLE_KEY) or not isinstance(cmd[EXAMPLE_KEY], str):
            return f'Command "{key}" is missing a "{EXAMPLE_KEY}" string'
    return None


def is_tagged_union(schema: Any) -> bool:
    return isinstance(schema, dict) and isinstance(schema.get("anyOf", schema.get("oneOf")), list)


def _literal_name(name_schema: Any) -> Optional[str]:
    if not isinstance(name_schema, dict):
        return None
    const = name_schema.get("const")
    if isinstance(const, str) and const:
        return const
    enum = name_schema.get("enum")
    if isinstance(enum, list) and len(enum) == 1 and isinstance(enum[0], str) and enum[0]:
        return enum[0]
    return None


def _first_string(*candidates: Any) -> Optional[str]:
    for candidate in candidates:
        if isinstance(candidate, str) and candidate:
            return candidate
    return None


def convert_command_union(schema: Any, existing_commands: Any = None) -> Tuple[Optional[Dict[str, Any]], Optional[str]]:
    """Flatten an `anyOf`/`oneOf` command union into a command map.

    Metadata missing from the schema is taken from the existing manifest's
    entry for the same command, then synthesized.

    Returns:
        (commands, None) on success, (None, error) otherwise
    """
    variants = schema.get("anyOf", schema.get("oneOf")) if isinstance(schema, dict) else None
    if not isinstance(variants, list) or not variants:
        return None, "commandSchema must be a union with a non-empty anyOf/oneOf array"

    existing = existing_commands if isinstance(existing_commands, dict) else {}
    commands: Dict[str, Any] = {}

    for index, variant in enumerate(variants):
        properties = variant.get("properties") if isinstance(variant, dict) else None
        if not isinstance(properties, dict):
            return None, f"union variant {index} has no properties"

        name_schema = properties.get("name")
        name = _literal_name(name_schema)
        if name is None:
            return None, f'union variant {index} has no literal "name" (const or single-value enum)'

        previous = existing.get(name) if isinstance(existing.get(name), dict) else {}
        examples = name_schema.get("examples")
        first_example = examples[0] if isinstance(examples, list) and examples else None

        command = {
            "description": _first_string(
                name_schema.get("description"),
                variant.get("description"),
                previous.get("description"),
            ) or name,
            EXAMPLE_KEY: _first_string(
                name_schema.get(EXAMPLE_KEY),
                name_schema.get("example"),
                first_example,
                previous.get(EXAMPLE_KEY),
            ) or f"/{name}",
        }

        parameters = properties.get("parameters")
        if parameters is None:
            parameters = previous.get("parameters")
        if parameters is not None:
            command["parameters"] = parameters

        commands[name] = command

    error = validate_commands(commands)
    if error:
        return None, error
    return commands, None

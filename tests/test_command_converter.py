"""Tests for command validation and tagged-union conversion."""
import pytest

from manifest_sync.assembler.command_converter import convert_command_union, is_tagged_union, validate_commands


def union(*variants, key="anyOf"):
    return {key: list(variants)}


def variant(name_schema, **properties):
    return {"type": "object", "properties": {"name": name_schema, **properties}}


class TestValidateCommands:
    """Test direct command-map validation."""

    def test_valid(self):
        assert validate_commands({"start": {"description": "Start", "ubiquity:example": "/start"}}) is None

    @pytest.mark.parametrize('commands', [[], None, "start"])
    def test_rejects_non_mapping(self, commands):
        assert 'plain object' in validate_commands(commands)

    def test_rejects_non_object_command(self):
        assert 'must be an object' in validate_commands({"start": "nope"})

    def test_rejects_missing_description(self):
        assert 'description' in validate_commands({"start": {"ubiquity:example": "/start"}})

    def test_rejects_missing_example(self):
        assert 'ubiquity:example' in validate_commands({"start": {"description": "Start"}})


class TestConvertCommandUnion:
    """Test flattening of anyOf/oneOf unions."""

    def test_minimal_union(self):
        schema = union(variant({"const": "start", "examples": ["/start"]}))

        commands, error = convert_command_union(schema)

        assert error is None
        assert commands == {"start": {"description": "start", "ubiquity:example": "/start"}}

    def test_full_metadata_and_parameters(self):
        parameters = {"type": "object", "properties": {"user": {"type": "string"}}}
        schema = union(
            variant({"const": "wallet", "description": "Set wallet", "ubiquity:example": "/wallet 0x1"},
                    parameters=parameters),
            variant({"enum": ["help"]}),
            key="oneOf",
        )

        commands, error = convert_command_union(schema)

        assert error is None
        assert list(commands) == ["wallet", "help"]
        assert commands["wallet"] == {
            "description": "Set wallet",
            "ubiquity:example": "/wallet 0x1",
            "parameters": parameters,
        }
        assert commands["help"] == {"description": "help", "ubiquity:example": "/help"}

    def test_existing_metadata_fills_gaps(self):
        existing = {"start": {"description": "Old description", "ubiquity:example": "/start now",
                              "parameters": {"type": "object"}}}

        commands, error = convert_command_union(union(variant({"const": "start"})), existing)

        assert error is None
        assert commands["start"] == existing["start"]

    def test_schema_metadata_beats_existing(self):
        existing = {"start": {"description": "Old", "ubiquity:example": "/old"}}
        schema = union(variant({"const": "start", "description": "New", "example": "/new"}))

        commands, _ = convert_command_union(schema, existing)

        assert commands["start"] == {"description": "New", "ubiquity:example": "/new"}

    def test_missing_variants(self):
        commands, error = convert_command_union({"anyOf": []})
        assert commands is None
        assert 'anyOf/oneOf' in error

    @pytest.mark.parametrize('name_schema', [{"type": "string"}, {"enum": ["a", "b"]}, {"const": ""}])
    def test_non_literal_name(self, name_schema):
        commands, error = convert_command_union(union(variant(name_schema)))
        assert commands is None
        assert 'literal "name"' in error

    def test_variant_without_properties(self):
        _, error = convert_command_union(union({"type": "object"}))
        assert 'variant 0 has no properties' in error

    def test_is_tagged_union(self):
        assert is_tagged_union({"anyOf": []})
        assert is_tagged_union({"oneOf": [{}]})
        assert not is_tagged_union({"start": {}})

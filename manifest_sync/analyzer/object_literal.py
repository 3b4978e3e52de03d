"""Object-literal parsing for entrypoint option objects."""
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .lexer import (depth_at, find_matching_delimiter, is_identifier, mask_non_code, split_top_level,
                    strip_comments, strip_wrapping_parens)

_NUMERIC_KEY_RE = re.compile(r'^\d+(?:\.\d+)?$')


@dataclass(frozen=True)
class ObjectProperty:
    key: str
    value: str
    shorthand: bool = False


@dataclass
class ObjectLiteral:
    """Direct properties and spreads of an object literal, in source order.

    Spreads are kept apart: they never satisfy a direct-property lookup, so
    contract properties stay textually locatable.
    """
    properties: List[ObjectProperty] = field(default_factory=list)
    spreads: List[str] = field(default_factory=list)

    def has_direct_property(self, key: str) -> bool:
        return any(prop.key == key for prop in self.properties)

    def get(self, key: str) -> Optional[ObjectProperty]:
        for prop in self.properties:
            if prop.key == key:
                return prop
        return None

    def as_dict(self) -> Dict[str, str]:
        return {prop.key: prop.value for prop in self.properties}


def _normalize_key(key: str) -> Optional[str]:
    key = key.strip()
    if len(key) >= 2 and key[0] in '"\'' and key[-1] == key[0]:
        return key[1:-1]
    if is_identifier(key) or _NUMERIC_KEY_RE.match(key):
        return key
    # computed keys, methods and accessors
    return None


def _top_level_colon(entry: str) -> Optional[int]:
    masked = mask_non_code(entry)
    index = masked.find(':')
    while index != -1:
        if depth_at(masked, index) == 0:
            return index
        index = masked.find(':', index + 1)
    return None


def parse_object_literal(expression: str) -> Optional[ObjectLiteral]:
    """Parse the first top-level `{...}` of an expression.

    Returns:
        ObjectLiteral, or None when the expression holds no object literal
    """
    expr = strip_wrapping_parens(expression)
    masked = mask_non_code(expr)

    open_index = None
    depth = 0
    for index, ch in enumerate(masked):
        if ch == '{' and depth == 0:
            open_index = index
            break
        if ch in '([':
            depth += 1
        elif ch in ')]':
            depth -= 1
    if open_index is None:
        return None

    close_index = find_matching_delimiter(expr, open_index, '{', '}')
    body = strip_comments(expr[open_index + 1:close_index if close_index is not None else len(expr)])

    literal = ObjectLiteral()
    for entry in split_top_level(body, ','):
        if not entry:
            continue
        if entry.startswith('...'):
            literal.spreads.append(entry[3:].strip())
            continue

        colon = _top_level_colon(entry)
        if colon is None:
            if is_identifier(entry):
                literal.properties.append(ObjectProperty(key=entry, value=entry, shorthand=True))
            continue

        key = _normalize_key(entry[:colon])
        if key is not None:
            literal.properties.append(ObjectProperty(key=key, value=entry[colon + 1:].strip()))

    return literal

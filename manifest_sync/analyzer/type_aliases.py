"""Type-alias extraction.

Statement terminators are optional in TypeScript, so an alias body ends at the
first of:

1. a `;` at the depth the body started at,
2. a closing bracket one level below that depth (an alias that is the last
   member of a `namespace {}` or `declare module {}` block),
3. a newline followed only by whitespace/comments and then a `}` or the
   keyword of a new top-level declaration,

or at the end of the file. Multi-line unions therefore survive as long as the
continuation lines start with `|`, `&` or another non-keyword token.
"""
import re
from typing import Dict, Optional

from .lexer import IDENTIFIER, find_matching_delimiter, mask_non_code

_ALIAS_RE = re.compile(rf'(?<![\w$.])(?:export\s+)?(?:declare\s+)?type\s+({IDENTIFIER})(?![\w$])')

_DECLARATION_RE = re.compile(
    r'(?:export|import|type|interface|const|let|var|function|class|enum|'
    r'declare|namespace|module|abstract|async)(?![\w$])'
)


def _skip_whitespace(text: str, index: int) -> int:
    while index < len(text) and text[index].isspace():
        index += 1
    return index


def _declaration_follows(masked: str, index: int) -> bool:
    index = _skip_whitespace(masked, index)
    if index >= len(masked):
        return False
    if masked[index] == '}':
        return True
    return bool(_DECLARATION_RE.match(masked, index))


def _find_alias_end(masked: str, start: int) -> int:
    depth = 0
    for i in range(start, len(masked)):
        ch = masked[i]
        if ch in '([{':
            depth += 1
        elif ch in ')]}':
            depth -= 1
            if depth < 0:
                return i
        elif depth == 0 and ch == ';':
            return i
        elif depth == 0 and ch == '\n' and i > start and _declaration_follows(masked, i + 1):
            return i
    return len(masked)


def _find_equals(masked: str, index: int) -> Optional[int]:
    """Locate the `=` that opens the alias body, past any generic parameters."""
    index = _skip_whitespace(masked, index)
    if index < len(masked) and masked[index] == '<':
        close = find_matching_delimiter(masked, index, '<', '>')
        if close is None:
            return None
        index = _skip_whitespace(masked, close + 1)
    if index < len(masked) and masked[index] == '=' and masked[index + 1:index + 2] not in ('=', '>'):
        return index
    return None


def parse_type_aliases(source_code: str) -> Dict[str, str]:
    """Map every `type Name = ...` declaration to its body text.

    The first declaration of a name wins.
    """
    masked = mask_non_code(source_code)
    aliases: Dict[str, str] = {}

    for match in _ALIAS_RE.finditer(masked):
        name = match.group(1)
        equals = _find_equals(masked, match.end())
        if equals is None or name in aliases:
            continue
        end = _find_alias_end(masked, equals + 1)
        aliases[name] = source_code[equals + 1:end].strip()

    return aliases

"""Quote, comment and delimiter aware scanning for TypeScript/JavaScript source.

Every structural parser in the analyzer is built on these primitives. None of
them raise on malformed input: an unterminated string, comment or bracket
simply extends to the end of the text.

A `/` starts a comment when followed by `/` or `*`. Otherwise it starts a
regular-expression literal when the previous significant token cannot end an
operand (an operator, an opening bracket, `,`, `;`, a keyword such as
`return`, or the start of input) and the literal closes on the same line.
"""
import re
from typing import Iterator, List, Optional, Tuple

QUOTES = {'"', "'", '`'}
BRACKETS = {'(': ')', '[': ']', '{': '}'}

IDENTIFIER = r'[A-Za-z_$][\w$]*'
IDENTIFIER_RE = re.compile(rf'^{IDENTIFIER}$')


def is_identifier(text: str) -> bool:
    """Check whether text is a single bare identifier."""
    return bool(IDENTIFIER_RE.match(text.strip()))


def skip_string_literal(text: str, start: int) -> int:
    """Return the index of the quote closing the literal opened at `start`.

    Escapes are honoured. For template literals, `${...}` interpolations are
    skipped as balanced code, so quotes and braces inside them never close the
    template. An unterminated literal returns len(text).
    """
    quote = text[start]
    n = len(text)
    i = start + 1
    while i < n:
        ch = text[i]
        if ch == '\\':
            i += 2
            continue
        if ch == quote:
            return i
        if quote == '`' and ch == '$' and i + 1 < n and text[i + 1] == '{':
            close = find_matching_delimiter(text, i + 1, '{', '}')
            if close is None:
                return n
            i = close + 1
            continue
        i += 1
    return n


def skip_comment(text: str, start: int) -> Optional[int]:
    """Return the index of the last character of the comment at `start`.

    Line comments stop before their newline. Returns None when no comment
    starts at `start`.
    """
    if text.startswith('//', start):
        end = text.find('\n', start)
        return len(text) - 1 if end == -1 else end - 1
    if text.startswith('/*', start):
        end = text.find('*/', start + 2)
        return len(text) - 1 if end == -1 else end + 1
    return None


REGEX_PRECEDERS = set('(,=:[!&|?{};+-*%>~^')
_REGEX_KEYWORD_RE = re.compile(
    r'(?<![\w$])(?:return|typeof|instanceof|void|throw|case|delete|in|of|new|yield|await|else|do)$'
)


def _regex_allowed(text: str, start: int) -> bool:
    j = start - 1
    while j >= 0 and text[j].isspace():
        j -= 1
    if j < 0 or text[j] in REGEX_PRECEDERS:
        return True
    return bool(_REGEX_KEYWORD_RE.search(text, max(0, j - 16), j + 1))


def skip_regex_literal(text: str, start: int) -> Optional[int]:
    """Return the index of the `/` closing a regex literal opened at `start`.

    Returns None when `/` is in operand-end position (division) or the
    literal does not close before the end of the line.
    """
    if not _regex_allowed(text, start):
        return None
    in_class = False
    i = start + 1
    while i < len(text):
        ch = text[i]
        if ch == '\n':
            return None
        if ch == "\\":
            i += 2
            continue
        if in_class:
            if ch == ']':
                in_class = False
        elif ch == '[':
            in_class = True
        elif ch == '/':
            return i
        i += 1
    return None


def iter_code(text: str, start: int = 0) -> Iterator[Tuple[int, str]]:
    """Yield (index, char) for every character outside strings and comments.

    A string or regex literal yields only its opening character.
    """
    n = len(text)
    i = start
    while i < n:
        ch = text[i]
        if ch in QUOTES:
            yield i, ch
            i = skip_string_literal(text, i) + 1
            continue
        if ch == '/':
            end = skip_comment(text, i)
            if end is not None:
                i = end + 1
                continue
            end = skip_regex_literal(text, i)
            if end is not None:
                yield i, ch
                i = end + 1
                continue
        yield i, ch
        i += 1


def _closes_angle(text: str, index: int) -> bool:
    # `=>` is an arrow, never the end of a generic argument list
    return not (index > 0 and text[index - 1] == '=')


def find_matching_delimiter(text: str, start: int, open_char: str, close_char: str) -> Optional[int]:
    """Find the delimiter that structurally closes the one at `start`.

    Brackets of every kind are tracked on an explicit stack, so a closer only
    counts when it matches the innermost open delimiter. Angle brackets are
    tracked only when `open_char` is `<`.

    Returns:
        Index of the matching closer, or None if the input ends first
    """
    if start >= len(text) or text[start] != open_char:
        return None

    pairs = dict(BRACKETS)
    pairs[open_char] = close_char
    stack: List[str] = []

    for i, ch in iter_code(text, start):
        if ch in pairs:
            stack.append(pairs[ch])
        elif stack and ch == stack[-1]:
            if ch == '>' and not _closes_angle(text, i):
                continue
            stack.pop()
            if not stack:
                return i
    return None


def split_top_level(text: str, delimiter: str = ',', track_angles: bool = False) -> List[str]:
    """Split text on `delimiter` where no bracket is open.

    Angle-bracket tracking is opt-in because `<` and `>` are comparison
    operators outside generic-argument position. Parts are stripped and a
    trailing empty part (trailing comma) is dropped.
    """
    pairs = dict(BRACKETS)
    if track_angles:
        pairs['<'] = '>'

    parts: List[str] = []
    stack: List[str] = []
    last = 0
    for i, ch in iter_code(text):
        if ch in pairs:
            stack.append(pairs[ch])
        elif stack and ch == stack[-1]:
            if ch == '>' and not _closes_angle(text, i):
                continue
            stack.pop()
        elif not stack and text.startswith(delimiter, i):
            parts.append(text[last:i].strip())
            last = i + len(delimiter)

    tail = text[last:].strip()
    if tail:
        parts.append(tail)
    return parts


def depth_at(masked: str, index: int) -> int:
    """Bracket nesting depth just before `index` in already-masked text."""
    depth = 0
    for ch in masked[:index]:
        if ch in '([{':
            depth += 1
        elif ch in ')]}':
            depth -= 1
    return depth


def _blank(chars: List[str], start: int, stop: int) -> None:
    for j in range(start, min(stop, len(chars))):
        if chars[j] != '\n':
            chars[j] = ' '


def mask_non_code(text: str) -> str:
    """Blank out comments and string-literal contents, keeping offsets.

    Quotes stay in place and newlines survive, so regex searches over the
    masked text report indices that are valid in the original.
    """
    chars = list(text)
    n = len(text)
    i = 0
    while i < n:
        ch = text[i]
        if ch in QUOTES:
            end = skip_string_literal(text, i)
            _blank(chars, i + 1, end)
            i = end + 1
            continue
        if ch == '/':
            end = skip_comment(text, i)
            if end is not None:
                _blank(chars, i, end + 1)
                i = end + 1
                continue
            end = skip_regex_literal(text, i)
            if end is not None:
                _blank(chars, i + 1, end)
                i = end + 1
                continue
        i += 1
    return ''.join(chars)


def strip_comments(text: str) -> str:
    """Blank out comments only; string literals are kept verbatim."""
    chars = list(text)
    for start, end in _comment_spans(text):
        _blank(chars, start, end + 1)
    return ''.join(chars)


def _comment_spans(text: str) -> Iterator[Tuple[int, int]]:
    n = len(text)
    i = 0
    while i < n:
        ch = text[i]
        if ch in QUOTES:
            i = skip_string_literal(text, i) + 1
            continue
        if ch == '/':
            end = skip_comment(text, i)
            if end is not None:
                yield i, end
                i = end + 1
                continue
            end = skip_regex_literal(text, i)
            if end is not None:
                i = end + 1
                continue
        i += 1


def strip_wrapping_parens(expression: str) -> str:
    """Remove parentheses that wrap the whole expression, however many."""
    expr = expression.strip()
    while expr.startswith('(') and find_matching_delimiter(expr, 0, '(', ')') == len(expr) - 1:
        expr = expr[1:-1].strip()
    return expr


_ESCAPES = {'n': '\n', 't': '\t', 'r': '\r', '0': '\0'}


def _unescape(body: str) -> str:
    out = []
    i = 0
    while i < len(body):
        ch = body[i]
        if ch == '\\' and i + 1 < len(body):
            nxt = body[i + 1]
            out.append(_ESCAPES.get(nxt, nxt))
            i += 2
            continue
        out.append(ch)
        i += 1
    return ''.join(out)


def extract_string_literals(text: str) -> List[str]:
    """Return the values of every single- or double-quoted literal in order.

    Template literals are skipped; literals inside comments are ignored.
    """
    values = []
    for i, ch in iter_code(text):
        if ch in ('"', "'"):
            end = skip_string_literal(text, i)
            if end < len(text):
                values.append(_unescape(text[i + 1:end]))
    return values

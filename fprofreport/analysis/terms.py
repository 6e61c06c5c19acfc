# Copyright (c) Meta Platforms, Inc. and affiliates.

"""
Reader for Erlang-style serialized terms.

fprof writes its analysis as a sequence of terms, each closed by a ``.``
terminator and interleaved with ``%`` comments. This module turns such a
buffer into Python values, one term at a time:

- atoms        -> Atom
- integers     -> int (including ``$c`` character literals)
- floats       -> float
- strings      -> str
- binaries     -> bytes
- tuples       -> tuple
- lists        -> list

The whole buffer is supplied up front, so a term that is cut off by the end
of the input is reported as an error rather than a request for more data.
"""

import re
from dataclasses import dataclass
from typing import Iterator, NamedTuple, Optional, Union

from fprofreport.errors import IncompleteTermError, TermSyntaxError


@dataclass(frozen=True)
class Atom:
    """An Erlang atom such as ``undefined`` or ``'Elixir.Mod'``."""

    name: str

    def __str__(self) -> str:
        return self.name


Term = Union[Atom, int, float, str, bytes, tuple, list]

UNDEFINED = Atom("undefined")

_TOKEN_PATTERN = re.compile(
    r"""
    (?P<ws>\s+)
  | (?P<comment>%[^\n]*)
  | (?P<float>\d(?:_?\d)*\.\d(?:_?\d)*(?:[eE][+-]?\d+)?)
  | (?P<based>\d+\#[0-9a-zA-Z]+)
  | (?P<int>\d(?:_?\d)*)
  | (?P<atom>[a-z][A-Za-z0-9_@]*)
  | (?P<var>[A-Z_][A-Za-z0-9_@]*)
  | (?P<dot>\.(?=[\s%]|\Z))
  | (?P<punct><<|>>|[{}\[\],|+\-])
    """,
    re.VERBOSE,
)

_SIMPLE_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "s": " ",
    "e": "\x1b",
    "b": "\b",
    "f": "\f",
    "v": "\v",
    "d": "\x7f",
    "\\": "\\",
    '"': '"',
    "'": "'",
}

_OCTAL_ESCAPE = re.compile(r"[0-7]{1,3}")
_HEX_PAIR = re.compile(r"[0-9a-fA-F]{2}")
_HEX_BRACED = re.compile(r"\{([0-9a-fA-F]+)\}")

_OPENERS = {"{": "}", "[": "]"}
_LITERAL_KINDS = ("atom", "int", "float", "string", "char")

# Parser states
_VALUE = 0
_VALUE_OR_CLOSE = 1
_SEP_OR_CLOSE = 2
_DONE = 3


class _Token(NamedTuple):
    kind: str
    value: object
    pos: int

    def describe(self) -> str:
        if self.kind == "punct":
            return f"'{self.value}'"
        return f"{self.kind} {format_term(self.value)}"


def _line_of(text: str, pos: int) -> int:
    return text.count("\n", 0, pos) + 1


def _syntax_error(text: str, pos: int, reason: str) -> TermSyntaxError:
    return TermSyntaxError(reason, pos, _line_of(text, pos))


def _incomplete(text: str, pos: int, reason: str) -> IncompleteTermError:
    return IncompleteTermError(reason, pos, _line_of(text, pos))


def _read_quoted(text: str, start: int) -> tuple[str, int]:
    """
    Read a quoted atom or string starting at the opening quote.

    Returns:
        Tuple of (decoded text, offset just past the closing quote)

    Raises:
        IncompleteTermError: If the input ends before the closing quote
        TermSyntaxError: If an escape sequence is malformed
    """
    quote = text[start]
    end = len(text)
    chars: list[str] = []
    i = start + 1
    while i < end:
        c = text[i]
        if c == quote:
            return "".join(chars), i + 1
        if c != "\\":
            chars.append(c)
            i += 1
            continue

        i += 1
        if i >= end:
            break
        c = text[i]
        if c in _SIMPLE_ESCAPES:
            chars.append(_SIMPLE_ESCAPES[c])
            i += 1
        elif c in "01234567":
            match = _OCTAL_ESCAPE.match(text, i)
            chars.append(chr(int(match.group(), 8)))
            i = match.end()
        elif c == "x":
            braced = _HEX_BRACED.match(text, i + 1)
            pair = _HEX_PAIR.match(text, i + 1)
            if braced:
                chars.append(chr(int(braced.group(1), 16)))
                i = braced.end()
            elif pair:
                chars.append(chr(int(pair.group(), 16)))
                i = pair.end()
            else:
                raise _syntax_error(text, i - 1, "invalid \\x escape")
        elif c == "^":
            if i + 1 >= end:
                break
            chars.append(chr(ord(text[i + 1]) & 31))
            i += 2
        else:
            chars.append(c)
            i += 1

    kind = "quoted atom" if quote == "'" else "string"
    raise _incomplete(text, start, f"unterminated {kind}")


def _read_char(text: str, start: int) -> tuple[int, int]:
    """Read a ``$c`` character literal starting at the ``$``."""
    i = start + 1
    if i >= len(text):
        raise _incomplete(text, start, "unterminated character literal")
    if text[i] != "\\":
        return ord(text[i]), i + 1
    return _read_char_escape(text, i)


def _read_char_escape(text: str, i: int) -> tuple[int, int]:
    end = len(text)
    if i + 1 >= end:
        raise _incomplete(text, i, "unterminated character literal")
    c = text[i + 1]
    if c in _SIMPLE_ESCAPES:
        return ord(_SIMPLE_ESCAPES[c]), i + 2
    if c in "01234567":
        match = _OCTAL_ESCAPE.match(text, i + 1)
        return int(match.group(), 8), match.end()
    if c == "x":
        braced = _HEX_BRACED.match(text, i + 2)
        if braced:
            return int(braced.group(1), 16), braced.end()
        pair = _HEX_PAIR.match(text, i + 2)
        if pair:
            return int(pair.group(), 16), pair.end()
        raise _syntax_error(text, i, "invalid \\x escape")
    if c == "^":
        if i + 2 >= end:
            raise _incomplete(text, i, "unterminated character literal")
        return ord(text[i + 2]) & 31, i + 3
    return ord(c), i + 2


def _parse_based(literal: str, text: str, pos: int) -> int:
    base_text, digits = literal.split("#", 1)
    base = int(base_text)
    if not 2 <= base <= 36:
        raise _syntax_error(text, pos, f"invalid integer base {base}")
    try:
        return int(digits, base)
    except ValueError:
        raise _syntax_error(text, pos, f"invalid base-{base} integer '{digits}'")


class TermReader:
    """
    Lazy reader over a buffer of back-to-back serialized terms.

    The reader keeps only its offset into the buffer. Each call to
    next_term() consumes exactly one term including its terminator.
    Iteration is finite and not restartable.

    Example:
        >>> reader = TermReader("{totals, 3, 1.5, 0.5}. [a, b].")
        >>> reader.next_term()
        (Atom(name='totals'), 3, 1.5, 0.5)
        >>> reader.remaining
        ' [a, b].'
    """

    def __init__(self, text: str) -> None:
        self.text = text
        self.position = 0

    @property
    def remaining(self) -> str:
        """The part of the buffer not consumed yet."""
        return self.text[self.position :]

    def __iter__(self) -> Iterator[Term]:
        while True:
            term = self.next_term()
            if term is None:
                return
            yield term

    def next_term(self) -> Optional[Term]:
        """
        Read the next term from the buffer.

        Returns:
            The next term, or None if only whitespace and comments remain

        Raises:
            IncompleteTermError: If a term is started but never terminated
            TermSyntaxError: If the term text is malformed
        """
        tokens, end = self._scan_term()
        if tokens is None:
            self.position = end
            return None
        term = _build_term(tokens, self.text, end)
        self.position = end
        return term

    def _scan_term(self) -> tuple[Optional[list[_Token]], int]:
        tokens: list[_Token] = []
        pos = self.position
        while True:
            token, pos = self._next_token(pos)
            if token is None:
                if tokens:
                    raise _incomplete(
                        self.text, pos, "input ended before the term terminator '.'"
                    )
                return None, pos
            if token.kind == "dot":
                if not tokens:
                    raise _syntax_error(self.text, token.pos, "empty term before '.'")
                return tokens, pos
            tokens.append(token)

    def _next_token(self, pos: int) -> tuple[Optional[_Token], int]:
        text = self.text
        end = len(text)
        while pos < end:
            c = text[pos]
            if c == '"':
                value, new_pos = _read_quoted(text, pos)
                return _Token("string", value, pos), new_pos
            if c == "'":
                value, new_pos = _read_quoted(text, pos)
                return _Token("atom", Atom(value), pos), new_pos
            if c == "$":
                value, new_pos = _read_char(text, pos)
                return _Token("char", value, pos), new_pos

            match = _TOKEN_PATTERN.match(text, pos)
            if match is None:
                raise _syntax_error(text, pos, f"unexpected character {c!r}")
            kind = match.lastgroup
            literal = match.group()
            if kind in ("ws", "comment"):
                pos = match.end()
                continue
            if kind == "var":
                raise _syntax_error(
                    text, pos, f"variable '{literal}' is not allowed in a term"
                )
            if kind == "atom":
                value: object = Atom(literal)
            elif kind == "int":
                value = int(literal.replace("_", ""))
            elif kind == "based":
                kind = "int"
                value = _parse_based(literal, text, pos)
            elif kind == "float":
                value = float(literal.replace("_", ""))
            else:
                value = literal
            return _Token(kind, value, pos), match.end()
        return None, pos


def _read_binary(tokens: list[_Token], index: int, text: str, end_pos: int) -> tuple[bytes, int]:
    """Collect ``<<...>>`` segments starting just after the opening ``<<``."""
    data = bytearray()
    need_segment = False
    after_segment = False
    while index < len(tokens):
        token = tokens[index]
        index += 1
        if token.kind == "punct" and token.value == ">>" and not need_segment:
            return bytes(data), index
        if token.kind == "punct" and token.value == "," and after_segment:
            need_segment = True
            after_segment = False
            continue
        if after_segment:
            raise _syntax_error(text, token.pos, f"expected ',' or '>>', got {token.describe()}")
        if token.kind in ("int", "char"):
            if not 0 <= token.value <= 255:
                raise _syntax_error(text, token.pos, f"binary segment {token.value} out of range")
            data.append(token.value)
        elif token.kind == "string":
            data.extend(token.value.encode("utf-8"))
        else:
            raise _syntax_error(text, token.pos, f"unexpected {token.describe()} in binary")
        need_segment = False
        after_segment = True
    raise _syntax_error(text, end_pos, "unterminated binary")


def _build_term(tokens: list[_Token], text: str, end_pos: int) -> Term:
    """
    Build one term from the tokens between its start and its terminator.

    Uses an explicit stack so nesting depth is not bounded by recursion.
    """
    stack: list[tuple[str, list]] = []
    state = _VALUE
    result = None
    index = 0
    count = len(tokens)

    while index < count:
        token = tokens[index]
        index += 1
        kind, literal = token.kind, token.value

        if state == _DONE:
            raise _syntax_error(text, token.pos, f"unexpected {token.describe()} after complete term")

        if state == _SEP_OR_CLOSE:
            if kind == "punct" and literal == ",":
                state = _VALUE
                continue
            if kind == "punct" and literal == stack[-1][0]:
                closer, items = stack.pop()
                value = tuple(items) if closer == "}" else items
            elif kind == "punct" and literal == "|":
                raise _syntax_error(text, token.pos, "improper lists are not supported")
            else:
                raise _syntax_error(
                    text, token.pos, f"expected ',' or '{stack[-1][0]}', got {token.describe()}"
                )
        elif state == _VALUE_OR_CLOSE and kind == "punct" and literal == stack[-1][0]:
            closer, items = stack.pop()
            value = tuple(items) if closer == "}" else items
        elif kind == "punct" and literal in _OPENERS:
            stack.append((_OPENERS[literal], []))
            state = _VALUE_OR_CLOSE
            continue
        elif kind == "punct" and literal == "<<":
            value, index = _read_binary(tokens, index, text, end_pos)
        elif kind == "punct" and literal in ("-", "+"):
            number = tokens[index] if index < count else None
            if number is None or number.kind not in ("int", "float", "char"):
                raise _syntax_error(text, token.pos, f"expected a number after '{literal}'")
            index += 1
            value = -number.value if literal == "-" else number.value
        elif kind in _LITERAL_KINDS:
            value = literal
            if kind == "string":
                # Adjacent string literals concatenate
                while index < count and tokens[index].kind == "string":
                    value += tokens[index].value
                    index += 1
        else:
            raise _syntax_error(text, token.pos, f"unexpected {token.describe()}")

        if stack:
            stack[-1][1].append(value)
            state = _SEP_OR_CLOSE
        else:
            result = value
            state = _DONE

    if stack:
        container = "tuple" if stack[-1][0] == "}" else "list"
        raise _syntax_error(text, end_pos, f"unterminated {container} before '.'")
    if state != _DONE:
        raise _syntax_error(text, end_pos, "unexpected end of term")
    return result


def next_term(buffer: str) -> Optional[tuple[Term, str]]:
    """
    Read one term from the start of a buffer.

    Args:
        buffer: Text holding zero or more serialized terms

    Returns:
        Tuple of (term, remaining buffer), or None at end of input
    """
    reader = TermReader(buffer)
    term = reader.next_term()
    if term is None:
        return None
    return term, reader.remaining


def iter_terms(buffer: str) -> Iterator[Term]:
    """Lazily yield every term in a buffer."""
    return iter(TermReader(buffer))


def parse_term(text: str) -> Term:
    """
    Parse a single term; the terminating ``.`` is optional.

    Raises:
        TermSyntaxError: If the text is not exactly one well-formed term
    """
    if not text.rstrip().endswith("."):
        text = text + "\n."
    reader = TermReader(text)
    term = reader.next_term()
    if term is None:
        raise TermSyntaxError("no term found", 0, 1)
    if reader.next_term() is not None:
        raise _syntax_error(text, reader.position, "more than one term")
    return term


_UNQUOTED_ATOM = re.compile(r"[a-z][A-Za-z0-9_@]*\Z")
_STRING_ESCAPES = {"\\": "\\\\", '"': '\\"', "\n": "\\n", "\t": "\\t", "\r": "\\r"}


def _escape(text: str, quote: str) -> str:
    out = []
    for c in text:
        if c == quote or c == "\\":
            out.append("\\" + c)
        elif c in _STRING_ESCAPES:
            out.append(_STRING_ESCAPES[c])
        elif ord(c) < 32 or ord(c) == 127:
            out.append(f"\\x{{{ord(c):X}}}")
        else:
            out.append(c)
    return "".join(out)


def _format_float(value: float) -> str:
    text = repr(value)
    if "e" in text:
        mantissa, exponent = text.split("e")
        if "." not in mantissa:
            mantissa += ".0"
        return f"{mantissa}e{exponent}"
    return text


def format_term(term: Term) -> str:
    """
    Render a term as human-readable Erlang term syntax.

    Examples:
        >>> format_term((Atom("erlang"), Atom("apply"), ["#Fun<foo.0>", []]))
        '{erlang,apply,["#Fun<foo.0>",[]]}'
        >>> format_term(Atom("Elixir.Mod"))
        "'Elixir.Mod'"
    """
    if isinstance(term, Atom):
        if _UNQUOTED_ATOM.match(term.name):
            return term.name
        return "'" + _escape(term.name, "'") + "'"
    if isinstance(term, str):
        return '"' + _escape(term, '"') + '"'
    if isinstance(term, bytes):
        if term and all(32 <= b < 127 for b in term):
            return '<<"' + _escape(term.decode("ascii"), '"') + '">>'
        return "<<" + ",".join(str(b) for b in term) + ">>"
    if isinstance(term, float):
        return _format_float(term)
    if isinstance(term, tuple):
        return "{" + ",".join(format_term(t) for t in term) + "}"
    if isinstance(term, list):
        return "[" + ",".join(format_term(t) for t in term) + "]"
    return str(term)

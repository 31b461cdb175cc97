"""
Program loader: Intcode text to Program Image.

Program text is a single comma-separated list of signed decimal integers.
Whitespace is trimmed from the ends of the whole input only; there are no
comments or other separators.
"""

from __future__ import annotations

from pathlib import Path

from lark import Lark, Transformer
from lark.exceptions import UnexpectedInput, VisitError

from .chips import WORD_MAX, WORD_MIN
from .errors import ParseError

ProgramImage = tuple[int, ...]

GRAMMAR = r"""
    start: WORD ("," WORD)*

    WORD: /[+-]?[0-9]+/
"""


class _ToImage(Transformer):
    def start(self, tokens):
        words = []
        for token in tokens:
            value = int(token)
            if not WORD_MIN <= value <= WORD_MAX:
                raise ParseError(f"integer {token} does not fit in 64 bits",
                                 token.line, token.column)
            words.append(value)
        return tuple(words)


_PARSER = Lark(GRAMMAR, parser="lalr", transformer=_ToImage())


def parse_program(text: str) -> ProgramImage:
    """Parse Intcode program text into an immutable tuple of words.

    An empty (or all-whitespace) input yields an empty image; it loads
    fine but faults on the first fetch.
    """
    text = text.strip()
    if not text:
        return ()
    try:
        return _PARSER.parse(text)
    except UnexpectedInput as e:
        raise ParseError("malformed program text", e.line, e.column) from e
    except VisitError as e:
        if isinstance(e.orig_exc, ParseError):
            raise e.orig_exc from None
        raise


def load_program_file(path: str | Path) -> ProgramImage:
    """Read and parse a program file."""
    return parse_program(Path(path).read_text(encoding="ascii"))

from dataclasses import dataclass
from typing import List

from .errors import ConfigSyntaxError

WHITESPACE = " \t\r"


@dataclass(frozen=True)
class Token:
    """A single word of configuration text and where it came from."""
    text: str
    filename: str
    line: int
    column: int
    quoted: bool = False

    def is_open_brace(self) -> bool:
        return not self.quoted and self.text == "{"

    def is_close_brace(self) -> bool:
        return not self.quoted and self.text == "}"


def tokenize(text: str, filename: str = "Caddyfile") -> List[Token]:
    """
    Split configuration text into tokens.

    Words are separated by whitespace. Double-quoted words understand the
    escapes \\" and \\\\, backquoted words are taken literally, and a word
    starting with # comments out the rest of the line. Braces are plain
    words; the dispenser gives them meaning.

    Raises:
        ConfigSyntaxError: a quoted word is never closed
    """
    tokens: List[Token] = []
    i = 0
    line = 1
    col = 1
    n = len(text)

    while i < n:
        ch = text[i]

        if ch == "\n":
            i += 1
            line += 1
            col = 1
            continue

        if ch in WHITESPACE:
            i += 1
            col += 1
            continue

        if ch == "#":
            while i < n and text[i] != "\n":
                i += 1
            continue

        start_line, start_col = line, col

        if ch in ('"', '`'):
            closing = ch
            i += 1
            col += 1
            value = []
            while True:
                if i >= n:
                    raise ConfigSyntaxError("unterminated quoted string",
                                            filename, start_line, start_col)
                c = text[i]
                if closing == '"' and c == "\\" and i + 1 < n and text[i + 1] in ('"', "\\"):
                    value.append(text[i + 1])
                    i += 2
                    col += 2
                    continue
                if c == closing:
                    i += 1
                    col += 1
                    break
                value.append(c)
                i += 1
                if c == "\n":
                    line += 1
                    col = 1
                else:
                    col += 1
            tokens.append(Token("".join(value), filename, start_line, start_col, quoted=True))
            continue

        j = i
        while j < n and text[j] not in WHITESPACE and text[j] != "\n":
            j += 1
        tokens.append(Token(text[i:j], filename, start_line, start_col))
        col += j - i
        i = j

    return tokens

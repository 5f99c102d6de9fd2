from typing import List, Optional, Type

from .errors import ConfigError, ConfigSyntaxError, ConfigValidationError
from .lexer import Token


class Dispenser:
    """
    Cursor over configuration tokens.

    The cursor starts before the first token; ``next`` moves onto it. Block
    helpers track brace nesting so a parser can walk the entries of a block
    without knowing how deeply it is nested.
    """

    def __init__(self, tokens: List[Token], filename: str = "Caddyfile"):
        self._tokens = tokens
        self._filename = filename
        self._cursor = -1
        self._nesting = 0

    @property
    def nesting(self) -> int:
        return self._nesting

    @property
    def token(self) -> Optional[Token]:
        if 0 <= self._cursor < len(self._tokens):
            return self._tokens[self._cursor]
        return None

    @property
    def val(self) -> str:
        token = self.token
        return token.text if token else ""

    def next(self) -> bool:
        """Move to the next token, wherever it is."""
        if self._cursor < len(self._tokens) - 1:
            self._cursor += 1
            return True
        return False

    def _peek(self) -> Optional[Token]:
        if self._cursor + 1 < len(self._tokens):
            return self._tokens[self._cursor + 1]
        return None

    def _next_on_same_line(self) -> bool:
        upcoming = self._peek()
        if upcoming is None:
            return False
        current = self.token
        if current is None:
            return True
        return upcoming.filename == current.filename and upcoming.line == current.line

    def next_arg(self) -> bool:
        """Move to the next token only if it is on the current line and is not a brace."""
        if not self._next_on_same_line():
            return False
        upcoming = self._peek()
        if upcoming.is_open_brace() or upcoming.is_close_brace():
            return False
        self._cursor += 1
        return True

    def remaining_args(self) -> List[str]:
        """Consume and return the rest of the line, stopping before a brace."""
        args = []
        while self.next_arg():
            args.append(self.val)
        return args

    def next_block(self, initial_nesting: int) -> bool:
        """
        Advance to the next entry of the block opened at ``initial_nesting``.

        On the first call this opens the block, which must start on the
        current line. Returns False once the block is closed, or if there is
        no block or it is empty.

        Raises:
            ConfigSyntaxError: the block is never closed
        """
        if self._nesting > initial_nesting:
            if not self.next():
                raise self.syntax_err("unexpected end of input, expecting '}'")
            if self.token.is_close_brace():
                self._nesting -= 1
            return self._nesting > initial_nesting

        upcoming = self._peek()
        if not self._next_on_same_line() or not upcoming.is_open_brace():
            return False
        self.next()
        if not self.next():
            raise self.syntax_err("unexpected end of input, expecting '}'")
        if self.token.is_close_brace():
            return False
        self._nesting += 1
        return True

    def _err(self, cls: Type[ConfigError], message: str) -> ConfigError:
        token = self.token
        if token is None and self._tokens:
            token = self._tokens[-1]
        if token is None:
            return cls(message, self._filename, 1, 1)
        return cls(message, token.filename, token.line, token.column)

    def syntax_err(self, message: str) -> ConfigError:
        """Build a ConfigSyntaxError positioned at the current token."""
        return self._err(ConfigSyntaxError, message)

    def validation_err(self, message: str) -> ConfigError:
        """Build a ConfigValidationError positioned at the current token."""
        return self._err(ConfigValidationError, message)

    def arg_err(self, after: Optional[str] = None) -> ConfigError:
        """Build the error for a directive or key given the wrong number of values."""
        name = self.val if after is None else after
        return self.syntax_err(f"wrong argument count or unexpected line ending after '{name}'")

"""
Parsing of the local_metrics_proxy directive.

The directive takes no arguments and one backend block:

    local_metrics_proxy {
        uds {
            path "/path/to/unix/socket"
        }
    }
"""

from typing import List, Optional
import json
import logging
import os

from .dispenser import Dispenser
from .errors import ConfigSyntaxError
from .lexer import tokenize
from .models import MODULE_NAME, UNIX_BACKEND_KIND, Config, UnixSocket

logger = logging.getLogger(__name__)


def _format_args(args: List[str]) -> str:
    return "[" + " ".join(args) + "]"


def parse_config(text: str, filename: str = "Caddyfile",
                 directive: str = MODULE_NAME) -> Config:
    """
    Parse configuration text into a validated Config.

    Args:
        text: Configuration text containing one or more ``directive`` entries
        filename: Source name used in error positions
        directive: Name the configuration entries must start with

    Raises:
        ConfigSyntaxError: unexpected or extra tokens
        ConfigValidationError: unknown, duplicate or missing settings
    """
    return parse_directive(Dispenser(tokenize(text, filename), filename), directive)


def parse_directive(d: Dispenser, directive: str = MODULE_NAME) -> Config:
    """Parse every ``directive`` entry left in the dispenser."""
    backend: Optional[UnixSocket] = None

    while d.next():
        if d.val != directive or d.token.quoted:
            raise d.syntax_err(f"unexpected token '{d.val}', expecting directive '{directive}'")

        args = d.remaining_args()
        if args:
            raise d.syntax_err(f"extra unrecognized arguments: {_format_args(args)}")

        nesting = d.nesting
        while d.next_block(nesting):
            kind = d.val
            if kind == UNIX_BACKEND_KIND:
                if backend is not None:
                    raise d.validation_err("multiple uds blocks")
                backend = parse_uds_block(d)
            else:
                raise d.validation_err(f"unrecognized backend kind: {kind}")

    if backend is None:
        raise d.validation_err("missing kind")

    return Config(backend=backend)


def parse_uds_block(d: Dispenser) -> UnixSocket:
    """Parse a ``uds`` block; the dispenser must be positioned on the kind token."""
    path = ""

    args = d.remaining_args()
    if args:
        raise d.syntax_err(f"extra unrecognized uds arguments: {_format_args(args)}")

    nesting = d.nesting
    while d.next_block(nesting):
        key = d.val
        if key == "path":
            if path:
                raise d.validation_err("multiple path arguments")
            if not d.next_arg():
                raise d.arg_err()
            path = d.val
            if d.remaining_args():
                raise d.arg_err("path")
            if not os.path.isabs(path):
                raise d.validation_err("path value must be an absolute filepath")
        else:
            raise d.validation_err(f"unrecognized uds argument: {key}")

    if not path:
        raise d.validation_err("missing path for uds kind")

    logger.debug(f"Parsed uds backend with path {path}")
    return UnixSocket(path=path)


def load_config(config_path: str) -> Config:
    """
    Load configuration from a file.

    ``*.json`` files hold the serialized shape read by ``Config.from_dict``;
    any other file is parsed as directive text.

    Args:
        config_path: Path to the configuration file

    Returns:
        Parsed configuration
    """
    with open(config_path, 'r') as f:
        content = f.read()

    if config_path.endswith('.json'):
        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise ConfigSyntaxError(e.msg, config_path, e.lineno, e.colno) from e
        return Config.from_dict(data)

    return parse_config(content, filename=config_path)

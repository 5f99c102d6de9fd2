"""
HTTP handler that relays the output of a local unix-socket backend.
"""

from .backend import Backend, UnixSocketBackend
from .config import load_config, parse_config
from .errors import (ConfigError, ConfigSyntaxError, ConfigValidationError,
                     ProvisionError, ProxyError, RuntimeDialError, RuntimeIOError)
from .handler import HandlerChain
from .models import Config, UnixSocket
from .proxy import LocalMetricsProxy, register
from .registry import ModuleRegistry
from .server import ProxyServer

__all__ = [
    'Backend', 'UnixSocketBackend', 'load_config', 'parse_config',
    'ConfigError', 'ConfigSyntaxError', 'ConfigValidationError', 'ProvisionError',
    'ProxyError', 'RuntimeDialError', 'RuntimeIOError', 'HandlerChain',
    'Config', 'UnixSocket', 'LocalMetricsProxy', 'register', 'ModuleRegistry',
    'ProxyServer',
]

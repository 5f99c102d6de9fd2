import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict

from .models import Config

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModuleInfo:
    """How the host builds a handler module and reads its directive."""
    id: str
    directive: str
    new: Callable[[Config], Any]
    parse: Callable[..., Config]


class ModuleRegistry:
    """
    Handler modules known to a host application.

    The host owns the registry and registers modules into it explicitly at
    startup.
    """

    def __init__(self):
        self._modules: Dict[str, ModuleInfo] = {}
        self._directives: Dict[str, str] = {}

    def register(self, info: ModuleInfo) -> None:
        if info.id in self._modules:
            raise ValueError(f"module already registered: {info.id}")
        if info.directive in self._directives:
            raise ValueError(f"directive already registered: {info.directive}")
        self._modules[info.id] = info
        self._directives[info.directive] = info.id
        logger.debug(f"Registered module {info.id} for directive {info.directive}")

    def get(self, module_id: str) -> ModuleInfo:
        try:
            return self._modules[module_id]
        except KeyError:
            raise KeyError(f"unknown module: {module_id}") from None

    def lookup_directive(self, directive: str) -> ModuleInfo:
        try:
            return self._modules[self._directives[directive]]
        except KeyError:
            raise KeyError(f"unknown directive: {directive}") from None

    def __contains__(self, module_id: str) -> bool:
        return module_id in self._modules

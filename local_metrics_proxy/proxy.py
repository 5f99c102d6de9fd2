import logging
from typing import Optional

from .backend import Backend, Stream, new_backend
from .config import parse_config
from .errors import ProvisionError, RuntimeIOError
from .handler import Handler
from .models import MODULE_NAME, MODULE_NAMESPACE, Config, HTTPRequest, ResponseWriter
from .registry import ModuleInfo, ModuleRegistry

logger = logging.getLogger(__name__)

BUFFER_SIZE = 4096


def module_id() -> str:
    return f"{MODULE_NAMESPACE}.{MODULE_NAME}"


class LocalMetricsProxy:
    """
    Relays whatever a local backend sends into the response, then hands the
    request to the next handler.

    The request itself is never sent to the backend. A new connection is
    opened for every request and closed before the next handler runs. Dial
    and relay have no timeout, and a client that goes away does not stop the
    relay.
    """

    def __init__(self, config: Config):
        self._config = config
        self._backend: Optional[Backend] = None
        self._logger = logger

    @property
    def config(self) -> Config:
        return self._config

    def _check_configured(self) -> None:
        backend = self._config.backend
        if backend is None or not backend.path:
            raise ProvisionError("proxy backend not configured")

    def provision(self, log: Optional[logging.Logger] = None) -> None:
        """
        Set up the handler before it serves requests.

        Raises:
            ProvisionError: no backend is configured
        """
        self._check_configured()
        self._logger = log or logger
        self._backend = new_backend(self._config.backend)
        self._logger.info(f"Provisioned {module_id()} with backend {self._backend!r}")

    def serve_http(self, request: HTTPRequest, writer: ResponseWriter,
                   next_handler: Handler) -> None:
        """
        Relay the backend's output into ``writer`` and continue the chain.

        Raises:
            ProvisionError: no backend is configured
            RuntimeDialError: the backend could not be reached
            RuntimeIOError: copying from or closing the backend failed
        """
        self._check_configured()
        backend = self._backend or new_backend(self._config.backend)

        stream = backend.open()
        try:
            copied = self._relay(stream, writer)
        finally:
            self._close(stream)

        self._logger.debug(f"Relayed {copied} bytes for {request.method} {request.path}")
        return next_handler.serve_http(request, writer)

    def _relay(self, stream: Stream, writer: ResponseWriter) -> int:
        copied = 0
        while True:
            try:
                chunk = stream.recv(BUFFER_SIZE)
            except OSError as e:
                raise RuntimeIOError(f"reading from backend: {e}") from e
            if not chunk:
                return copied
            try:
                writer.write(chunk)
            except OSError as e:
                raise RuntimeIOError(f"writing response: {e}") from e
            copied += len(chunk)

    def _close(self, stream: Stream) -> None:
        try:
            stream.close()
        except OSError as e:
            raise RuntimeIOError(f"closing backend connection: {e}") from e


def new_module(config: Config) -> LocalMetricsProxy:
    return LocalMetricsProxy(config)


def register(registry: ModuleRegistry) -> None:
    """Register the handler and its directive with ``registry``."""
    registry.register(ModuleInfo(
        id=module_id(),
        directive=MODULE_NAME,
        new=new_module,
        parse=parse_config,
    ))

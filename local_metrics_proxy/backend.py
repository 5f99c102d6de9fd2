import abc
import socket
import logging
from typing import Callable, Dict, Protocol

from .errors import RuntimeDialError
from .models import UNIX_BACKEND_KIND, BackendSpec, UnixSocket

logger = logging.getLogger(__name__)


class Stream(Protocol):
    """Readable byte stream returned by a backend."""

    def recv(self, bufsize: int) -> bytes:
        ...

    def close(self) -> None:
        ...


class Backend(abc.ABC):
    """Something the proxy can open a byte stream to."""

    @abc.abstractmethod
    def open(self) -> Stream:
        """
        Open a new stream to the backend.

        Raises:
            RuntimeDialError: the backend could not be reached
        """


class UnixSocketBackend(Backend):
    """Backend listening on a unix-domain stream socket."""

    def __init__(self, path: str):
        self._path = path

    @property
    def path(self) -> str:
        return self._path

    def open(self) -> socket.socket:
        # No timeout: a backend that never accepts stalls the caller.
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        try:
            sock.connect(self._path)
        except OSError as e:
            sock.close()
            reason = e.strerror or str(e)
            raise RuntimeDialError(f"dial unix {self._path}: {reason}") from e
        logger.debug(f"Connected to backend at {self._path}")
        return sock

    def __repr__(self) -> str:
        return f"UnixSocketBackend(path={self._path!r})"


def _new_unix_socket_backend(spec: UnixSocket) -> Backend:
    return UnixSocketBackend(spec.path)


# Constructors for each backend kind, keyed by the kind name used in configuration.
BACKEND_KINDS: Dict[str, Callable[[BackendSpec], Backend]] = {
    UNIX_BACKEND_KIND: _new_unix_socket_backend,
}


def new_backend(spec: BackendSpec) -> Backend:
    """Build the backend described by ``spec``."""
    try:
        factory = BACKEND_KINDS[spec.kind]
    except KeyError:
        raise ValueError(f"unsupported backend kind: {spec.kind}") from None
    return factory(spec)

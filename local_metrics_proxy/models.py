import os
from typing import Any, Dict, Optional, Union
from dataclasses import dataclass, field

from .errors import ConfigValidationError

MODULE_NAME = "local_metrics_proxy"
MODULE_NAMESPACE = "http.handlers"

# Configuration kind of the unix-socket backend
UNIX_BACKEND_KIND = "uds"


@dataclass(frozen=True)
class UnixSocket:
    """Backend reached through a unix-domain stream socket."""
    path: str

    @property
    def kind(self) -> str:
        return UNIX_BACKEND_KIND

    def to_dict(self) -> Dict[str, Any]:
        return {"path": self.path}


# Union of every backend variant; only the unix socket exists today.
BackendSpec = UnixSocket


@dataclass(frozen=True)
class Config:
    """Validated configuration of one proxy handler instance."""
    backend: Optional[BackendSpec] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to ``{"uds": {"path": ...}}``, omitting an unset backend."""
        if self.backend is None:
            return {}
        return {self.backend.kind: self.backend.to_dict()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Config':
        """
        Build a Config from its serialized shape.

        An empty or missing path is accepted here and left for provisioning
        to reject, the same way a JSON-configured handler behaves.

        Raises:
            ConfigValidationError: the data does not have the expected shape
        """
        if not isinstance(data, dict):
            raise ConfigValidationError(f"config must be an object, got {type(data).__name__}")

        unknown = sorted(set(data) - {UNIX_BACKEND_KIND})
        if unknown:
            raise ConfigValidationError(f"unrecognized config fields: {unknown}")

        uds = data.get(UNIX_BACKEND_KIND)
        if uds is None:
            return cls()
        if not isinstance(uds, dict):
            raise ConfigValidationError(f"{UNIX_BACKEND_KIND} must be an object")

        unknown = sorted(set(uds) - {"path"})
        if unknown:
            raise ConfigValidationError(f"unrecognized {UNIX_BACKEND_KIND} fields: {unknown}")

        path = uds.get("path", "")
        if not isinstance(path, str):
            raise ConfigValidationError("path value must be a string")
        if path and not os.path.isabs(path):
            raise ConfigValidationError("path value must be an absolute filepath")

        return cls(backend=UnixSocket(path=path))

    def to_text(self, directive: str = MODULE_NAME) -> str:
        """Render the configuration in the block syntax read by ``parse_config``."""
        lines = [f"{directive} {{"]
        if self.backend is not None:
            lines.append(f"\t{self.backend.kind} {{")
            lines.append(f"\t\tpath {quote(self.backend.path)}")
            lines.append("\t}")
        lines.append("}")
        return "\n".join(lines) + "\n"


def quote(value: str) -> str:
    """Quote a value so the lexer reads it back as a single token."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


@dataclass
class HTTPRequest:
    """Model representing an HTTP request."""
    method: str
    path: str
    protocol: str
    headers: Dict[str, str]
    raw: str
    body: Optional[bytes] = None

    @classmethod
    def from_raw_data(cls, request_data: str) -> Optional['HTTPRequest']:
        """Create HTTPRequest instance from raw request data."""
        try:
            head, _, body = request_data.partition('\r\n\r\n')
            lines = head.split('\n')

            method, path, protocol = lines[0].strip().split()

            headers = {}
            for line in lines[1:]:
                line = line.strip()
                if not line:
                    break
                key, value = line.split(':', 1)
                headers[key.strip()] = value.strip()

            return cls(
                method=method,
                path=path,
                protocol=protocol,
                headers=headers,
                raw=request_data,
                body=body.encode('utf-8') if body else None
            )
        except ValueError:
            return None


@dataclass
class HTTPResponse:
    """Model representing an HTTP response."""
    status_code: int
    status_message: str
    headers: Dict[str, str]
    body: Union[str, bytes]

    def to_bytes(self) -> bytes:
        """Serialize the response for the wire."""
        body = self.body.encode('utf-8') if isinstance(self.body, str) else self.body
        headers = dict(self.headers)
        headers['Content-Length'] = str(len(body))
        # One request per connection
        headers.setdefault('Connection', 'close')

        headers_str = ''.join(f"{k}: {v}\r\n" for k, v in headers.items())
        head = (
            f"HTTP/1.1 {self.status_code} {self.status_message}\r\n"
            f"{headers_str}"
            f"\r\n"
        )
        return head.encode('utf-8') + body

    @classmethod
    def create_error(cls, status_code: int, message: str) -> 'HTTPResponse':
        """Create an error response."""
        return cls(
            status_code=status_code,
            status_message=message,
            headers={'Content-Type': 'text/plain'},
            body=message
        )


@dataclass
class ResponseWriter:
    """Response being built by a handler chain; the body is buffered until the chain returns."""
    status_code: int = 200
    status_message: str = "OK"
    headers: Dict[str, str] = field(default_factory=dict)
    _body: bytearray = field(default_factory=bytearray, repr=False)

    def write(self, data: bytes) -> int:
        self._body.extend(data)
        return len(data)

    @property
    def body(self) -> bytes:
        return bytes(self._body)

    def to_response(self) -> HTTPResponse:
        headers = dict(self.headers)
        headers.setdefault('Content-Type', 'application/octet-stream')
        return HTTPResponse(
            status_code=self.status_code,
            status_message=self.status_message,
            headers=headers,
            body=self.body
        )

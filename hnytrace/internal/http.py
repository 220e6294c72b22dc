import abc
import http.client as httplib
import json
import os
import ssl
import sys
import threading
from typing import Dict
from typing import Optional
from typing import TextIO
from typing import Type
from typing import Union
from urllib.parse import urlparse

from hnytrace.constants import DEFAULT_TIMEOUT

from .logger import get_logger


log = get_logger(__name__)

ConnectionType = Union[httplib.HTTPConnection, httplib.HTTPSConnection]


class Response(object):
    """
    Custom API Response object to represent a response from the ingestion API.

    We do this to ensure we know expected properties will exist, and so we
    can call `resp.read()` and load the body once into an instance before we
    close the HTTPConnection used for the request.
    """

    __slots__ = ["status", "body", "reason", "msg"]

    def __init__(self, status=None, body=None, reason=None, msg=None):
        self.status = status
        self.body = body
        self.reason = reason
        self.msg = msg

    @classmethod
    def from_http_response(cls, resp):
        """
        Build a ``Response`` from the provided ``HTTPResponse`` object.

        This function will call `.read()` to consume the body of the ``HTTPResponse`` object.

        :param resp: ``HTTPResponse`` object to build the ``Response`` from
        :type resp: ``HTTPResponse``
        :rtype: ``Response``
        :returns: A new ``Response``
        """
        return cls(
            status=resp.status,
            body=resp.read(),
            reason=getattr(resp, "reason", None),
            msg=getattr(resp, "msg", None),
        )

    def __repr__(self):
        return "{0}(status={1!r}, body={2!r}, reason={3!r}, msg={4!r})".format(
            self.__class__.__name__,
            self.status,
            self.body,
            self.reason,
            self.msg,
        )


class HTTPClient(metaclass=abc.ABCMeta):
    """Capability used to deliver batches. Implementations own their connections."""

    @abc.abstractmethod
    def request(self, method: str, url: str, headers: Dict[str, str], body: bytes) -> Response:
        ...

    def close(self) -> None:
        return


class ProxiedHTTPSConnection(httplib.HTTPSConnection):
    """
    The built-in http.client in Python doesn't respect HTTPS_PROXY (even tho other clients like requests and curl do).

    This implementation simply extends the client with support for basic proxies.
    """

    def __init__(
        self, host: str, port: Optional[int] = None, context: Optional[ssl.SSLContext] = None, **kwargs
    ) -> None:
        if "HTTPS_PROXY" in os.environ:
            tunnel_port = port or 443
            proxy = urlparse(os.environ["HTTPS_PROXY"])
            proxy_host = proxy.hostname or ""
            # Default to 3128 (Squid's default port, de facto standard for HTTP proxies)
            proxy_port = proxy.port or 3128
            super().__init__(proxy_host, proxy_port, context=context, **kwargs)
            self.set_tunnel(host, tunnel_port)
        else:
            super().__init__(host, port, context=context, **kwargs)


def get_connection(url: str, timeout: float = DEFAULT_TIMEOUT) -> ConnectionType:
    """Return an HTTP connection to the host of the given URL."""
    parsed = urlparse(url)
    hostname = parsed.hostname or ""

    if parsed.scheme == "https":
        return ProxiedHTTPSConnection(hostname, parsed.port, timeout=timeout)
    elif parsed.scheme == "http":
        return httplib.HTTPConnection(hostname, parsed.port, timeout=timeout)

    raise ValueError("Unsupported protocol '%s'" % parsed.scheme)


class ConnectionHTTPClient(HTTPClient):
    """``http.client`` back end keeping one connection open between requests."""

    def __init__(self, timeout: float = DEFAULT_TIMEOUT, reuse_connections: bool = True) -> None:
        self._timeout = timeout
        self._reuse_connections = reuse_connections
        self._conn: Optional[ConnectionType] = None
        self._conn_origin: Optional[str] = None
        # The connection has to be locked since an export cycle and a shutdown
        # can happen on different threads.
        self._conn_lck = threading.RLock()

    def _reset_connection(self) -> None:
        with self._conn_lck:
            if self._conn:
                self._conn.close()
                self._conn = None
                self._conn_origin = None

    def request(self, method: str, url: str, headers: Dict[str, str], body: bytes) -> Response:
        parsed = urlparse(url)
        origin = "%s://%s" % (parsed.scheme, parsed.netloc)
        path = parsed.path or "/"
        if parsed.query:
            path += "?" + parsed.query

        with self._conn_lck:
            if self._conn is not None and self._conn_origin != origin:
                self._reset_connection()
            if self._conn is None:
                log.debug("creating new intake connection to %s with timeout %d", origin, self._timeout)
                self._conn = get_connection(url, self._timeout)
                self._conn_origin = origin
            try:
                self._conn.request(method, path, body, headers)
                resp = self._conn.getresponse()
                return Response.from_http_response(resp)
            except Exception:
                # Always reset the connection when an exception occurs
                self._reset_connection()
                raise
            finally:
                if not self._reuse_connections:
                    self._reset_connection()

    def close(self) -> None:
        self._reset_connection()


class WriteKeyMissingHTTPClient(HTTPClient):
    """No-op back end, installed instead of the configured one when no write key is set."""

    def request(self, method: str, url: str, headers: Dict[str, str], body: bytes) -> Response:
        return Response(status=204, body=b"", reason="No Content")


class ConsoleHTTPClient(HTTPClient):
    """Prints what would be sent, without sending it."""

    def __init__(self, out: TextIO = sys.stdout) -> None:
        self.out = out

    def request(self, method: str, url: str, headers: Dict[str, str], body: bytes) -> Response:
        parsed = urlparse(url)
        lines = ["%s %s HTTP/1.1" % (method, parsed.path or "/"), "Host: %s" % parsed.netloc]
        lines.extend("%s: %s" % (key, value) for key, value in headers.items())
        lines.append("")
        lines.append(self._pretty(body))
        self.out.write("\n".join(lines) + "\n")
        self.out.flush()
        return Response(status=204, body=b"", reason="No Content")

    @staticmethod
    def _pretty(body: bytes) -> str:
        text = body.decode("utf-8", errors="backslashreplace")
        try:
            return json.dumps(json.loads(text), indent=2, sort_keys=True)
        except ValueError:
            return text


HTTP_CLIENTS: Dict[str, Type[HTTPClient]] = {
    "console": ConsoleHTTPClient,
    "http": ConnectionHTTPClient,
    "write_key_missing": WriteKeyMissingHTTPClient,
}


def create_http_client(name: str, timeout: float = DEFAULT_TIMEOUT) -> HTTPClient:
    try:
        client_class = HTTP_CLIENTS[name]
    except KeyError:
        raise ValueError(
            "Unsupported HTTP client: '%s'. The supported clients are: %s" % (name, ", ".join(sorted(HTTP_CLIENTS)))
        )
    if client_class is ConnectionHTTPClient:
        return ConnectionHTTPClient(timeout=timeout)
    return client_class()

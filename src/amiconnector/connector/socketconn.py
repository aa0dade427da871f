import logging
import socket

from amiconnector.conduit.base import Conduit
from amiconnector.conduit.socket_conduit import SocketConduit
from amiconnector.connector.base import AbstractConnector, ConnectorError

logger = logging.getLogger(__name__)


class TCPServerEndpoint:
    """
    Describes a TCP server endpoint.
    """
    def __init__(self, host, port):
        self.host = host
        self.port = port

    def address(self):
        return self.host, self.port

    def key(self):
        """
        >>> TCPServerEndpoint('pbx.local', 5038).key()
        'pbx.local:5038'
        """
        return str(self.host) + ':' + str(self.port)

    def __str__(self):
        return self.key()


class SocketConnector(AbstractConnector):
    """
    A connector that communicates data via a TCP socket
    """
    def __init__(self, endpoint: TCPServerEndpoint, timeout=5, sock_args=(socket.AF_INET, socket.SOCK_STREAM),
                 report_errors=True):
        """
        Creates a new socket connector.
        :param endpoint The server to connect to.
        :param timeout seconds to wait for the connection to be established.
        :param sock_args arguments for the socket.socket() call
        """
        super().__init__()
        self._endpoint = endpoint
        self._timeout = timeout
        self._sock_args = sock_args
        self._report_errors = report_errors

    @property
    def endpoint(self):
        return self._endpoint

    def _connect(self) -> Conduit:
        sock = socket.socket(*self._sock_args)
        try:
            sock.settimeout(self._timeout)
            sock.connect(self._endpoint.address())
            sock.settimeout(None)
            logger.info("opened socket to %s" % self._endpoint)
            return SocketConduit(sock)
        except socket.error as e:
            sock.close()
            method = logger.warning if self._report_errors else logger.debug
            method("error opening socket to %s: %s" % (self._endpoint, e))
            raise ConnectorError("unable to connect to %s" % self._endpoint) from e

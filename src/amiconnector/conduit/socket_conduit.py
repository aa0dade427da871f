import logging
import select
import socket

from amiconnector.conduit import base

logger = logging.getLogger(__name__)


class SocketConduit(base.Conduit):
    """
    A conduit that provides communication via a socket.
    :param sock The open, connected socket
    """
    def __init__(self, sock: socket.socket):
        """
        :param sock: the client socket that represents the connection
        :type sock: socket
        """
        self.sock = sock
        # unbuffered, so read(size) returns as soon as any bytes arrive
        self.read = sock.makefile('rb', buffering=0)
        self.write = sock.makefile('wb')

    @property
    def open(self) -> bool:
        return self.sock.fileno() > 0

    @property
    def target(self):
        return self.sock

    @property
    def output(self):
        return self.write

    @property
    def input(self):
        return self.read

    def poll(self, timeout=None) -> bool:
        readable, _, _ = select.select([self.sock], [], [], timeout)
        return bool(readable)

    def close(self):
        self.read.close()
        try:
            self.write.close()
        except socket.error as e:
            logger.debug("unsent data discarded on close: %s" % e)
        try:
            self.sock.shutdown(socket.SHUT_RDWR)
        except socket.error:
            pass    # the peer may have closed the socket
        finally:
            self.sock.close()

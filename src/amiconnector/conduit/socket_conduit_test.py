import socket
import threading
import unittest
from unittest.mock import Mock, call, patch

import timeout_decorator
from hamcrest import assert_that, is_

from amiconnector.conduit.socket_conduit import SocketConduit


def start_server(handler):
    """ listens on an ephemeral local port and runs handler(client) for the first connection on a thread.
    :return: the (host, port) address and the server thread
    """
    server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    server.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    server.bind(('127.0.0.1', 0))
    server.listen(1)

    def serve():
        try:
            client, address = server.accept()
            try:
                handler(client)
            finally:
                client.close()
        finally:
            server.close()

    thread = threading.Thread(target=serve, daemon=True)
    thread.start()
    return server.getsockname(), thread


def echo(client):
    data = client.recv(1024)
    if data:
        client.sendall(data)
    client.shutdown(socket.SHUT_RDWR)


def hello(client):
    client.sendall(b"hello")
    client.shutdown(socket.SHUT_WR)
    client.recv(1024)


class ClientSocketTestCase(unittest.TestCase):
    """ functional test for the socket conduit. Verifies that data sent from one end is received by the other,
        and that closing the socket from either end is gracefully handled.
    """

    @timeout_decorator.timeout(5)
    def test_write_conduit(self):
        address, thread = start_server(echo)
        sock = socket.create_connection(address)
        conduit = SocketConduit(sock)
        try:
            data = b'abcde'
            conduit.output.write(data)
            conduit.output.flush()
            assert_that(conduit.poll(2), is_(True))
            result = conduit.input.read(1024)
            assert_that(result, is_(data))
        finally:
            conduit.close()
            thread.join()

    @timeout_decorator.timeout(5)
    def test_read_conduit(self):
        address, thread = start_server(hello)
        sock = socket.create_connection(address)
        conduit = SocketConduit(sock)
        try:
            result = conduit.input.read()
            conduit.output.write(b'bye')
            conduit.output.flush()
            assert_that(result, is_(b'hello'))
        finally:
            conduit.close()
            thread.join()


class SocketConduitTest(unittest.TestCase):
    def test(self):
        sock = Mock()
        input = Mock()
        output = Mock()

        def makefile(mode, **kwargs):
            if mode == "rb":
                return input
            if mode == "wb":
                return output

        sock.makefile.side_effect = makefile

        sut = SocketConduit(sock)
        sock.makefile.assert_has_calls(
            [call("rb", buffering=0), call("wb")]
        )
        sock.fileno.return_value = 1
        assert_that(sut.open, is_(True))
        sock.fileno.return_value = -1
        assert_that(sut.open, is_(False))

        assert_that(sut.target, is_(sock))
        assert_that(sut.input, is_(input))
        assert_that(sut.output, is_(output))

        input.close.assert_not_called()
        output.close.assert_not_called()

        def shutdown_error(arg):
            raise OSError("summat bad happened")

        sock.shutdown.side_effect = shutdown_error
        sut.close()

        input.close.assert_called_once()
        output.close.assert_called_once()
        sock.shutdown.assert_called_once_with(socket.SHUT_RDWR)
        sock.close.assert_called_once()

    def test_close_with_unsendable_data(self):
        sock = Mock()
        sut = SocketConduit(sock)
        sut.write = Mock()
        sut.write.close.side_effect = BrokenPipeError("peer went away")
        sut.close()
        sock.close.assert_called_once()

    @patch('amiconnector.conduit.socket_conduit.select.select')
    def test_poll(self, select):
        sock = Mock()
        sut = SocketConduit(sock)
        select.return_value = ([sock], [], [])
        assert_that(sut.poll(0.5), is_(True))
        select.assert_called_once_with([sock], [], [], 0.5)
        select.return_value = ([], [], [])
        assert_that(sut.poll(0.5), is_(False))


if __name__ == '__main__':  # pragma: no cover
    unittest.main()

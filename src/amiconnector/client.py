"""
The manager client. Opens a connection through a connector, checks the greeting, logs in and then
pumps the traffic from the connection through the framer into the correlation engine.

Changes in the state of the connection are published as events on `lifecycle_events`::

    client = ManagerClient(SocketConnector(TCPServerEndpoint('pbx', 5038)), 'admin', 'secret')
    client.lifecycle_events += on_lifecycle
    client.named_events['PeerStatus'] += on_peer_status
    client.open()
    response = client.async_request(client.create_action('Ping')).response(5)
"""
import logging
import time

from amiconnector.connector.base import Connector, ConnectorConnectedEvent, ConnectorDisconnectedEvent, \
    ConnectorError
from amiconnector.connector.socketconn import SocketConnector, TCPServerEndpoint
from amiconnector.protocol.actions import ActionFactory
from amiconnector.protocol.asynchronous import AsyncLoop, FutureResponse, ManagerError, UnknownProtocolError
from amiconnector.protocol.correlation import CorrelationEngine
from amiconnector.protocol.framer import MessageFramer, MessageTooLargeError
from amiconnector.protocol.io import GREETING, GreetingReader, check_greeting
from amiconnector.protocol.message import Action, Response
from amiconnector.support.events import EventSource
from amiconnector.support.mixins import AttributeEqualityMixin, AttributeStringMixin

logger = logging.getLogger(__name__)


class ManagerEvent(AttributeEqualityMixin, AttributeStringMixin):
    """ base class for the lifecycle events of a client. """
    def __init__(self, client):
        self.client = client


class ConnectedEvent(ManagerEvent):
    """ The login was accepted. """
    def __init__(self, client, response):
        super().__init__(client)
        self.response = response


class LoginIncorrectEvent(ManagerEvent):
    """ The login was rejected. The connection stays open. """
    def __init__(self, client, response):
        super().__init__(client)
        self.response = response


class InvalidPeerEvent(ManagerEvent):
    """ The peer did not greet as a manager. No login is attempted. """
    def __init__(self, client, banner):
        super().__init__(client)
        self.banner = banner


class ConnectionConnectEvent(ManagerEvent):
    """ The transport connection was established. """


class ConnectionErrorEvent(ManagerEvent):
    def __init__(self, client, error):
        super().__init__(client)
        self.error = error


class ConnectionCloseEvent(ManagerEvent):
    """ The transport connection was closed. """


class ConnectionTimeoutEvent(ManagerEvent):
    """ Nothing was received for longer than the idle timeout. Fired once per idle period. """


class ConnectionEndEvent(ManagerEvent):
    """ The peer closed its end of the connection. """


class ManagerClient:
    """
    A client for the manager interface.

    Incoming data is processed on a single background thread started by `open()`. Actions can be sent
    from any thread. Handlers registered on `events`, `named_events` and `lifecycle_events`, and the
    callbacks given to `send`, are called on the background thread.

    :param connector: provides the conduit to the manager.
    :param username: the login user
    :param secret: the login secret
    :param greeting: a regular expression the first line from the manager must match.
    :param poll_interval: seconds the background thread waits for data before checking timeouts.
    :param request_timeout: default seconds to wait for the response to an action, or None to wait forever.
    :param idle_timeout: seconds without data before ConnectionTimeoutEvent is fired, or None.
    :param max_message_size: the largest incomplete message in bytes, or None for no limit.
    :param greeting_timeout: seconds to wait for the rest of a greeting line once part of it has arrived,
        or None to wait indefinitely.
    """

    def __init__(self, connector: Connector, username, secret, greeting=GREETING, poll_interval=0.5,
                 request_timeout=None, idle_timeout=None, max_message_size=None, chunk_size=4096,
                 greeting_timeout=10, action_factory: ActionFactory=None, clock=time.monotonic, log=logger):
        self.connector = connector
        connector.events.add(self._connector_events)
        self.username = username
        self.secret = secret
        self.greeting_pattern = greeting
        self.poll_interval = poll_interval
        self.request_timeout = request_timeout
        self.idle_timeout = idle_timeout
        self.chunk_size = chunk_size
        self.actions = action_factory or ActionFactory()
        self.clock = clock
        self.logger = log
        self.lifecycle_events = EventSource()
        self.engine = CorrelationEngine(clock=clock, log=log)
        # every event not claimed by a pending action, and the same events by name
        self.events = self.engine.events
        self.named_events = self.engine.named_events
        self.framer = MessageFramer(max_message_size, log=log)
        self.greeting = GreetingReader()
        self.greeting_timeout = greeting_timeout
        self.valid_peer = None
        self.authenticated = False
        self._loop = None
        self._last_received = None
        self._idle = False

    @classmethod
    def from_config(cls, config, connector: Connector=None, **kwargs):
        """
        Creates a client from the [manager] section of a validated configuration.
        :param connector: the connector to use. By default a socket connector to the configured host and port.
        """
        manager = config['manager']
        if connector is None:
            endpoint = TCPServerEndpoint(manager['host'], manager['port'])
            connector = SocketConnector(endpoint, timeout=manager['connect_timeout'])
        return cls(connector, manager['username'], manager['secret'],
                   greeting=manager['greeting'],
                   poll_interval=manager['poll_interval'],
                   request_timeout=manager['request_timeout'],
                   idle_timeout=manager['idle_timeout'],
                   max_message_size=manager['max_message_size'],
                   greeting_timeout=manager['greeting_timeout'],
                   **kwargs)

    @property
    def connected(self):
        return self.connector.connected

    def open(self, background=True):
        """
        Connects to the manager. The greeting and login follow once data arrives.
        A client that is already open is closed first.
        :param background: start the thread that reads from the connection. When False, the
            caller passes the received data to `data_received()`.
        :raises ConnectorError: when the connection cannot be established.
        """
        if self.connected or self._loop is not None:
            self.logger.debug("already open, closing the connection to %s" % self.connector.endpoint)
            self.close()
        self._reset()
        try:
            self.connector.connect()
        except ConnectorError as e:
            self._notify(ConnectionErrorEvent(self, e))
            raise
        self.engine.output = self.connector.conduit.output
        if background:
            self._loop = AsyncLoop(self.pump, log=self.logger)
            self._loop.start()

    def close(self):
        """
        Logs off and closes the connection. Actions still waiting for a response fail with a
        ConnectionClosedError. Registered handlers are kept, so the client can be opened again.
        """
        if self.connected:
            try:
                self.engine.send(self.actions.create('Logoff'), self._logged_out)
            except (OSError, ConnectorError) as e:
                self.logger.debug("unable to send logoff: %s" % e)
        self._shutdown()

    def reopen(self):
        background = self._loop is not None
        self.close()
        self.open(background)

    def create_action(self, name, *args, **fields) -> Action:
        return self.actions.create(name, *args, **fields)

    def send(self, action: Action, callback, timeout=None):
        """ Sends an action. The callback receives the response, or an error when it does not arrive. """
        return self.engine.send(action, callback, self._timeout(timeout))

    def async_request(self, action: Action, timeout=None) -> FutureResponse:
        return self.engine.async_request(action, self._timeout(timeout))

    def _timeout(self, timeout):
        return self.request_timeout if timeout is None else timeout

    def login(self):
        self.logger.debug("logging in as %s" % self.username)
        login = self.actions.create('Login', self.username, self.secret)
        self.send(login, self._login_response)

    def _login_response(self, response):
        if isinstance(response, ManagerError):
            self.logger.warning("no response to login: %s" % response)
        elif response.success:
            self.authenticated = True
            self.logger.info("logged in to %s as %s" % (self.connector.endpoint, self.username))
            self._notify(ConnectedEvent(self, response))
        else:
            self.logger.warning("login incorrect: %s" % response.message)
            self._notify(LoginIncorrectEvent(self, response))

    def _logged_out(self, response):
        if isinstance(response, Response):
            self.logger.info("Logged out")

    def data_received(self, data: bytes):
        """
        Processes data received from the manager. The first line is the greeting; everything
        after it is framed into messages and dispatched.
        """
        self._last_received = self.clock()
        self._idle = False
        self.logger.debug("Received data: %r" % data)
        if not self.greeting.complete:
            try:
                data = self.greeting.feed(data)
            except UnknownProtocolError as e:
                self._invalid_peer(e)
                return
            if data is None:
                return
            if not self._check_greeting():
                return
            self.login()
        if not self.valid_peer:
            return
        try:
            blocks = self.framer.feed(data)
        except MessageTooLargeError as e:
            self.logger.error(str(e))
            blocks = e.blocks
        for block in blocks:
            try:
                self.engine.process_block(block)
            except Exception as e:
                self.logger.exception(e)

    def _check_greeting(self):
        banner = self.greeting.banner
        try:
            check_greeting(banner, self.greeting_pattern)
            self.valid_peer = True
            self.logger.debug("greeted by %s" % banner)
        except UnknownProtocolError as e:
            self._invalid_peer(e)
        return self.valid_peer

    def _invalid_peer(self, error):
        self.valid_peer = False
        self.logger.warning("invalid peer: %s" % error)
        self._notify(InvalidPeerEvent(self, self.greeting.banner))

    def pump(self):
        """
        Waits up to poll_interval for data from the connection and processes it. Request timeouts
        and the idle timeout are checked on each call.
        """
        if not self.connector.connected:
            self._stop_loop()
            return
        conduit = self.connector.conduit
        try:
            if conduit.poll(self.poll_interval):
                data = conduit.input.read(self.chunk_size)
                if not data:
                    self._ended()
                    return
                self.data_received(data)
            else:
                self._check_greeting_timeout()
                self._check_idle()
        except OSError as e:
            self._failed(e)
            return
        self.engine.expire()

    def _check_greeting_timeout(self):
        if self.greeting_timeout is None or not self.greeting.waiting:
            return
        if self.clock() - self._last_received >= self.greeting_timeout:
            banner = self.greeting.abandon()
            self._invalid_peer(UnknownProtocolError("no end of line after greeting '%s'" % banner))

    def _check_idle(self):
        if self.idle_timeout is None or self._idle:
            return
        if self.clock() - self._last_received >= self.idle_timeout:
            self._idle = True
            self.logger.debug("nothing received for %s seconds" % self.idle_timeout)
            self._notify(ConnectionTimeoutEvent(self))

    def _ended(self):
        self.logger.info("connection ended by %s" % self.connector.endpoint)
        self._notify(ConnectionEndEvent(self))
        self._shutdown()

    def _failed(self, error):
        self.logger.warning("connection error: %s" % error)
        self._notify(ConnectionErrorEvent(self, error))
        self._shutdown()

    def _shutdown(self):
        self._stop_loop()
        self.connector.disconnect()
        self.authenticated = False
        self.engine.cancel_all()
        self.engine.output = None

    def _stop_loop(self):
        loop = self._loop
        self._loop = None
        if loop is not None:
            loop.stop()

    def _reset(self):
        self.framer.reset()
        self.greeting.reset()
        self.valid_peer = None
        self.authenticated = False
        self._last_received = self.clock()
        self._idle = False

    def _notify(self, event):
        self.logger.debug("%s" % event)
        self.lifecycle_events.fire(event)

    def _connector_events(self, event):
        if isinstance(event, ConnectorConnectedEvent):
            self._notify(ConnectionConnectEvent(self))
        elif isinstance(event, ConnectorDisconnectedEvent):
            self._notify(ConnectionCloseEvent(self))

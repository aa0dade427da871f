"""
Connectors open the conduit that carries the traffic to and from a manager.
"""
import logging
from abc import abstractmethod

from amiconnector.conduit.base import Conduit
from amiconnector.support.events import EventSource
from amiconnector.support.mixins import AttributeEqualityMixin

logger = logging.getLogger(__name__)


class ConnectorError(Exception):
    """ The connection to the manager could not be established or has failed. """


class ConnectionNotConnectedError(ConnectorError):
    """ A conduit was needed but the connector is disconnected. """


class ConnectorEvent(AttributeEqualityMixin):
    def __init__(self, connector):
        self.connector = connector


class ConnectorConnectedEvent(ConnectorEvent):
    """ A conduit was opened. """


class ConnectorDisconnectedEvent(ConnectorEvent):
    """ The conduit was closed. """


class Connector:
    """ Opens and closes a conduit to one endpoint. Changes are published on `events`. """

    def __init__(self):
        self.events = EventSource()

    @property
    @abstractmethod
    def endpoint(self):
        raise NotImplementedError

    @property
    @abstractmethod
    def connected(self) -> bool:
        raise NotImplementedError

    @property
    @abstractmethod
    def conduit(self) -> Conduit:
        """ the open conduit.
        :raises ConnectionNotConnectedError: when disconnected
        """
        raise NotImplementedError

    @abstractmethod
    def connect(self):
        """
        Opens the conduit. Does nothing when already connected.
        :raises ConnectorError: when the conduit cannot be opened.
        """
        raise NotImplementedError

    @abstractmethod
    def disconnect(self):
        """ Closes the conduit. Does nothing when already disconnected. """
        raise NotImplementedError


class AbstractConnector(Connector):
    """ Holds the conduit and fires the connected and disconnected events.
        Subclasses open the conduit in `_connect()`. """

    def __init__(self):
        super().__init__()
        self._conduit = None

    @property
    def connected(self):
        return self._conduit is not None and self._conduit.open

    @property
    def conduit(self) -> Conduit:
        if not self.connected:
            raise ConnectionNotConnectedError("not connected to %s" % self.endpoint)
        return self._conduit

    def connect(self):
        if self.connected:
            return
        # a conduit the peer has already closed is released before opening another
        self.disconnect()
        self._conduit = self._connect()
        self.events.fire(ConnectorConnectedEvent(self))

    def disconnect(self):
        conduit = self._conduit
        if conduit is None:
            return
        self._conduit = None
        conduit.close()
        logger.debug("closed conduit to %s" % self.endpoint)
        self.events.fire(ConnectorDisconnectedEvent(self))

    @abstractmethod
    def _connect(self) -> Conduit:
        """ Opens a conduit to the endpoint.
        :raises ConnectorError: when that is not possible
        """
        raise NotImplementedError

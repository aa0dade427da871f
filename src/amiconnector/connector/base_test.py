import unittest
from unittest.mock import Mock

from hamcrest import assert_that, is_, raises, calling, instance_of

from amiconnector.connector.base import ConnectorEvent, ConnectorConnectedEvent, ConnectorDisconnectedEvent, \
    Connector, AbstractConnector, ConnectorError, ConnectionNotConnectedError
from amiconnector.support.events import EventSource


class ConnectorEventsTest(unittest.TestCase):

    def test_connector_event(self):
        self.assert_event(ConnectorEvent)
        self.assert_event(ConnectorConnectedEvent)
        self.assert_event(ConnectorDisconnectedEvent)

    def assert_event(self, event_class):
        source = Mock()
        event = event_class(source)
        assert_that(event.connector, is_(source))
        assert_that(event, is_(event_class(source)))
        source.assert_not_called()


class ConnectorTest(unittest.TestCase):
    def test_abstract_methods(self):
        sut = Connector()
        assert_that(sut.events, is_(instance_of(EventSource)))
        assert_that(calling(sut.disconnect), raises(NotImplementedError))
        assert_that(calling(sut.connect), raises(NotImplementedError))
        # property access has to be deferred or it will raise outside the scope of the assert
        assert_that(calling(getattr).with_args(sut, 'endpoint'), raises(NotImplementedError))
        assert_that(calling(getattr).with_args(sut, 'connected'), raises(NotImplementedError))
        assert_that(calling(getattr).with_args(sut, 'conduit'), raises(NotImplementedError))


class PbxConnector(AbstractConnector):
    endpoint = 'pbx:5038'

    def __init__(self):
        super().__init__()
        self._connect = Mock(side_effect=self.open_conduit)
        self.handler = Mock()
        self.events += self.handler

    @staticmethod
    def open_conduit():
        conduit = Mock()
        conduit.open = True
        return conduit


class AbstractConnectorTest(unittest.TestCase):
    def setUp(self):
        self.sut = PbxConnector()
        self.handler = self.sut.handler

    def test_constructor(self):
        sut = AbstractConnector()
        assert_that(sut.events, is_(instance_of(EventSource)))
        assert_that(sut.connected, is_(False))
        assert_that(calling(sut._connect), raises(NotImplementedError))

    def test_conduit_when_not_connected(self):
        assert_that(calling(getattr).with_args(self.sut, 'conduit'),
                    raises(ConnectionNotConnectedError, 'not connected to pbx:5038'))

    def test_connect(self):
        self.sut.connect()
        assert_that(self.sut.connected, is_(True))
        assert_that(self.sut.conduit, is_(self.sut._conduit))
        self.handler.assert_called_once_with(ConnectorConnectedEvent(self.sut))

    def test_connect_already_connected(self):
        self.sut.connect()
        self.sut.connect()
        self.sut._connect.assert_called_once()
        self.handler.assert_called_once()

    def test_connect_after_peer_closed(self):
        self.sut.connect()
        stale = self.sut._conduit
        stale.open = False
        assert_that(self.sut.connected, is_(False))
        self.sut.connect()
        stale.close.assert_called_once()
        assert_that(self.sut.conduit, is_(self.sut._conduit))
        assert_that([c[0][0] for c in self.handler.call_args_list],
                    is_([ConnectorConnectedEvent(self.sut), ConnectorDisconnectedEvent(self.sut),
                         ConnectorConnectedEvent(self.sut)]))

    def test_connect_exception(self):
        self.sut._connect.side_effect = ConnectorError()
        assert_that(calling(self.sut.connect), raises(ConnectorError))
        assert_that(self.sut.connected, is_(False))
        self.handler.assert_not_called()

    def test_disconnect(self):
        self.sut.connect()
        conduit = self.sut._conduit
        self.handler.reset_mock()
        self.sut.disconnect()
        conduit.close.assert_called_once()
        assert_that(self.sut._conduit, is_(None))
        self.handler.assert_called_once_with(ConnectorDisconnectedEvent(self.sut))

    def test_disconnect_already_disconnected(self):
        self.sut.disconnect()
        self.handler.assert_not_called()

"""
Pairs the messages arriving from the manager with the actions that caused them.

Every action sent is registered under its ActionID together with a completion callback. A plain response
completes the action straight away. A response announcing that events will follow is held, and the events
carrying the same ActionID are collected on it until the event marking the end of the list arrives.
Events that belong to no pending action are published to listeners.
"""
import logging
import threading
import time

from amiconnector.connector.base import ConnectionNotConnectedError
from amiconnector.protocol.asynchronous import FutureResponse, ManagerError
from amiconnector.protocol.message import Action, Event, Response, classify
from amiconnector.support.events import EventChannels, EventSource

logger = logging.getLogger(__name__)


class RequestTimeoutError(ManagerError):
    """ No response arrived for an action within its timeout. """


class ConnectionClosedError(ManagerError):
    """ The connection was closed while an action was still waiting for its response. """


def is_list_complete(event: Event):
    """ determines if an event ends the list of events sent in reply to an action. """
    return ('Complete' in event.get('event', '') or
            'Complete' in event.get('eventlist', '') or
            'DBGetResponse' in event.get('event', ''))


class CorrelationEngine:
    """
    Tracks pending actions and routes incoming responses and events.

    All incoming messages are expected to be processed on one thread, in the order they arrived.
    Actions may be sent from any thread. Callbacks are invoked without holding the lock on the pending
    table, so a callback may send further actions.

    To receive unsolicited events, add a handler to `events`, or to `named_events[name]` for the
    events with the given name. `request_handlers` are notified of every action sent and
    `response_handlers` of every message received.
    """

    def __init__(self, output=None, clock=time.monotonic, log=logger):
        """
        :param output: the binary stream actions are written to.
        :param clock: returns the current time in seconds, used for request timeouts.
        """
        self.output = output
        self.clock = clock
        self.logger = log
        self.events = EventSource()
        self.named_events = EventChannels()
        self.request_handlers = EventSource()
        self.response_handlers = EventSource()
        self._callbacks = {}
        self._responses = {}
        self._deadlines = {}
        self._lock = threading.RLock()
        self._write_lock = threading.Lock()

    def send(self, action: Action, callback, timeout=None) -> Action:
        """
        Registers the callback for the action and writes the action to the output.
        :param callback: called exactly once with the response, or with an error when the action times out
            or the connection closes.
        :param timeout: seconds to wait for the response, or None to wait indefinitely.
        :raises ConnectionNotConnectedError: when there is no output to write to.
        """
        action_id = action.action_id
        if self.output is None:
            raise ConnectionNotConnectedError("no connection to send action %s on" % action_id)
        with self._lock:
            if action_id in self._callbacks:
                self.logger.warning("action %s is already pending, replacing its callback" % action_id)
            self._callbacks[action_id] = callback
            self._responses.pop(action_id, None)
            if timeout is None:
                self._deadlines.pop(action_id, None)
            else:
                self._deadlines[action_id] = self.clock() + timeout
        try:
            self._write(action)
        except Exception:
            self._remove(action_id)
            raise
        self.request_handlers.fire(action)
        return action

    def async_request(self, action: Action, timeout=None) -> FutureResponse:
        """ Sends an action.
        :return: A FutureResponse that holds the response when it arrives.
        """
        future = FutureResponse(action)
        self.send(action, future.set_result_or_exception, timeout)
        return future

    def _write(self, action):
        self.logger.debug("Sending: %s" % action.marshall())
        with self._write_lock:
            action.to_stream(self.output)
            self.output.flush()

    def process_block(self, block: str):
        """ classifies a block of text and dispatches the resulting message. Blocks that are neither
            events nor responses are discarded. """
        message = classify(block, self.logger)
        if message is not None:
            self.process(message)
        return message

    def process(self, message):
        self.logger.debug("Received: %r" % message)
        if isinstance(message, Response):
            self._process_response(message)
        elif isinstance(message, Event):
            self._process_event(message)
        self.response_handlers.fire(message)

    def _process_response(self, response: Response):
        action_id = response.action_id
        with self._lock:
            callback = self._callbacks.get(action_id)
            if callback is None:
                self.logger.debug("no pending action for response %s" % action_id)
                return
            if response.follows:
                self._responses[action_id] = response
                return
            self._remove(action_id)
        self._invoke(callback, response)

    def _process_event(self, event: Event):
        action_id = event.action_id
        with self._lock:
            response = self._responses.get(action_id)
            callback = self._callbacks.get(action_id)
            correlated = response is not None and callback is not None
            if correlated:
                response.events.append(event)
                if is_list_complete(event):
                    self._remove(action_id)
                else:
                    callback = None
        if correlated:
            if callback is not None:
                self._invoke(callback, response)
            return
        self.events.fire(event)
        self.named_events.fire(event.name, event)

    def expire(self, current_time=None):
        """
        Fails the actions whose timeout has passed with a RequestTimeoutError.
        :param current_time: the time to compare deadlines with, by default the current clock time.
        :return: the number of actions that expired.
        """
        now = self.clock() if current_time is None else current_time
        with self._lock:
            expired = [action_id for action_id, deadline in self._deadlines.items() if deadline <= now]
            callbacks = [(action_id, self._remove(action_id)) for action_id in expired]
        for action_id, callback in callbacks:
            self.logger.warning("action %s timed out" % action_id)
            self._invoke(callback, RequestTimeoutError("no response to action %s" % action_id))
        return len(callbacks)

    def cancel_all(self, error=None):
        """ Fails every pending action, by default with a ConnectionClosedError, and empties the table. """
        with self._lock:
            callbacks = list(self._callbacks.items())
            self._callbacks.clear()
            self._responses.clear()
            self._deadlines.clear()
        for action_id, callback in callbacks:
            self._invoke(callback, error or ConnectionClosedError("connection closed before action %s completed" %
                                                                  action_id))
        return len(callbacks)

    def pending(self, action_id) -> bool:
        with self._lock:
            return str(action_id) in self._callbacks

    def pending_count(self) -> int:
        with self._lock:
            return len(self._callbacks)

    def collecting(self, action_id) -> bool:
        """ determines if events are being collected for the given action. """
        with self._lock:
            return str(action_id) in self._responses

    def _remove(self, action_id):
        with self._lock:
            self._responses.pop(action_id, None)
            self._deadlines.pop(action_id, None)
            return self._callbacks.pop(action_id, None)

    def _invoke(self, callback, value):
        try:
            callback(value)
        except Exception as e:
            self.logger.exception(e)

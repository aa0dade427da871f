"""
Provides building blocks for the asynchronous side of the manager protocol: futures for responses that
have not yet arrived, and a loop that pumps a function on a background thread.
"""
import logging
import threading
import time
from collections.abc import Callable
from concurrent.futures import Future

logger = logging.getLogger(__name__)


class UnknownProtocolError(IOError):
    """
    Error raised when the peer does not greet with the expected protocol banner.
    """


class ManagerError(Exception):
    """ base class for errors reported by the manager protocol. """


class FutureValue(Future):
    """ describes a value that may have not yet been computed. Callers can check if the value has arrived, or chose to
        wait until the value has arrived.
        If an exception is encountered computing the value, it is set."""

    def set_result_or_exception(self, value):
        """sets the result, or the exception when value is an exception instance"""
        if isinstance(value, BaseException):
            self.set_exception(value)
        else:
            self.set_result(value)


class FutureResponse(FutureValue):
    """ Relates an action and its future response."""

    def __init__(self, action):
        """
        :param action: The action this response is for.
        """
        super().__init__()
        self._action = action

    @property
    def action(self):
        return self._action

    def response(self, timeout=None):
        """ blocking fetch of the response. The response carries any events that completed it. """
        return self.result(timeout)


class AsyncLoop:
    """ Continually runs a given function on a background thread.
        Exceptions are logged and posted to a given handler
        The background thread is registered as a daemon.
    """

    def __init__(self, fn: Callable = None, args=(), log=logger):
        """
        :param fn the function to run
        :param args arguments to pass to fn
        """
        self.fn = fn
        self.args = args
        self.stop_event = threading.Event()
        self.background_thread = None
        self.logger = log

    def start(self):
        """
        Starts the background thread, unless it is already running.
        """
        if self.background_thread is None:
            t = threading.Thread(target=self._run, daemon=True)
            self.background_thread = t
            t.start()

    def exception_handler(self, e):
        self.logger.exception(e)

    def _run(self):
        """ The processing loop for the background thread.
             Invokes the callable for as long as the stop signal is not received.
        """
        self._do(self.startup)
        while self.running():
            self._do(self.loop)
        self._do(self.shutdown)
        self.logger.info("background thread exiting")

    def _do(self, callme):
        """ runs a function and captures any exceptions """
        try:
            time.sleep(0)
            callme()
        except Exception as e:
            time.sleep(0)
            self.exception_handler(e)

    def startup(self):
        """ template method called when the thread starts"""
        pass

    def loop(self):
        self.fn(*self.args)

    def shutdown(self):
        """ template method called when the thread exits """
        pass

    def running(self):
        return not self.stop_event.is_set()

    def stop(self):
        self.stop_event.set()
        thread = self.background_thread
        self.background_thread = None
        if thread and thread is not threading.current_thread():
            thread.join()

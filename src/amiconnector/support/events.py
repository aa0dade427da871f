

class EventSource(object):

    def __init__(self):
        self._handlers = []

    def __iadd__(self, handler):
        return self.add(handler)

    def __isub__(self, handler):
        return self.remove(handler)

    def add(self, handler):
        self._handlers.append(handler)
        return self

    def remove(self, handler):
        if handler in self._handlers:
            self._handlers.remove(handler)
        return self

    def handlers(self):
        return tuple(self._handlers)

    def clear(self):
        self._handlers = []

    def fire(self, *args, **kwargs):
        self._fire(*args, **kwargs)

    def _fire(self, *args, **kwargs):
        # a handler may remove itself while being notified
        for handler in self.handlers():
            handler(*args, **kwargs)


class EventChannels(object):
    """
    A set of event sources keyed by name. A channel is created the first time it is
    looked up, so handlers can be registered for names that have not been fired yet.

    >>> channels = EventChannels()
    >>> 'PeerStatus' in channels
    False
    >>> channels['PeerStatus'] += print
    >>> channels.names()
    ('PeerStatus',)
    """

    def __init__(self):
        self._channels = {}

    def __getitem__(self, name) -> EventSource:
        channel = self._channels.get(name)
        if channel is None:
            channel = self._channels[name] = EventSource()
        return channel

    def __setitem__(self, name, channel: EventSource):
        # supports `channels[name] += handler`
        self._channels[name] = channel

    def __contains__(self, name):
        return name in self._channels

    def names(self):
        return tuple(self._channels)

    def fire(self, name, *args, **kwargs):
        """ notifies the handlers of the named channel. Firing a name with no handlers is a no-op. """
        channel = self._channels.get(name)
        if channel is not None:
            channel.fire(*args, **kwargs)

    def clear(self):
        self._channels = {}

"""
Manager protocol messages and their wire encoding.

A message is a block of CRLF terminated `Key: value` lines, ended by an empty line. Variables travel as
repeated `Variable: name=value` lines and are kept apart from the ordinary fields. Blocks sent by the
server start with either `Event:` or `Response:`; blocks sent by the client are actions.
"""
import logging
from collections import OrderedDict
from collections.abc import Mapping, MutableMapping

logger = logging.getLogger(__name__)

EOL = '\r\n'
EOM = EOL + EOL     # end of message


def normalize_key(key):
    """ Folds a wire key to the form used for lookups.

    >>> normalize_key('Caller-ID-Num')
    'caller_id_num'
    """
    return key.replace('-', '_').lower()


class FieldDict(MutableMapping):
    """ An ordered mapping with case-insensitive string keys.

    Iteration yields the keys with the case they were last set with, in insertion order, so that
    the fields of an action are written out just as they were added::

        fields = FieldDict()
        fields['ActionID'] = '1'
        fields['actionid'] == '1'    # True
        list(fields) == ['ActionID']   # True
    """

    def __init__(self, data=None, **kwargs):
        self._store = OrderedDict()
        self.update(data or {}, **kwargs)

    def __setitem__(self, key, value):
        # an existing key keeps its position and takes the new case
        self._store[key.lower()] = (key, value)

    def __getitem__(self, key):
        kv = self._store.get(key.lower())
        if kv is None:
            raise KeyError(key)
        return kv[1]

    def __delitem__(self, key):
        del self._store[key.lower()]

    def __iter__(self):
        for casedkey, _ in self._store.values():
            yield casedkey

    def __len__(self):
        return len(self._store)

    def folded_items(self):
        for folded_key, keyval in self._store.items():
            yield folded_key, keyval[1]

    def __eq__(self, other):
        if not isinstance(other, Mapping):
            return NotImplemented
        other = FieldDict(other)
        return dict(self.folded_items()) == dict(other.folded_items())

    def copy(self):
        return FieldDict(self._store.values())

    def __repr__(self):
        return 'FieldDict({%s})' % ', '.join('%r: %r' % kv for kv in self._store.values())


class Message:
    """
    A set of named fields plus a map of variables.
    Fields are looked up case-insensitively and written out in the order they were first set.
    A name is held either as a field or as a variable, never as both.
    """

    def __init__(self, fields=None, variables=None):
        self.fields = FieldDict()
        self.variables = {}
        for name, value in (fields or {}).items():
            self.set(name, value)
        for name, value in (variables or {}).items():
            self.set_variable(name, value)

    def set(self, name, value):
        folded = name.lower()
        for variable in [key for key in self.variables if key.lower() == folded]:
            del self.variables[variable]
        self.fields[name] = value

    def get(self, name, default=None):
        return self.fields.get(name, default)

    def set_variable(self, name, value):
        self.fields.pop(name, None)
        self.variables[name] = value

    def __getitem__(self, name):
        return self.fields[name]

    def __contains__(self, name):
        return name in self.fields

    @property
    def action_id(self):
        """ the correlation id as a string, or None when the message carries none. """
        action_id = self.get('ActionID')
        return None if action_id is None else str(action_id)

    def marshall(self) -> str:
        """ Encodes this message as wire text, including the terminating empty line. """
        lines = ['%s: %s' % (key, value) for key, value in self.fields.items()]
        lines.extend('Variable: %s=%s' % (key, value) for key, value in self.variables.items())
        return ''.join(line + EOL for line in lines) + EOL

    def to_stream(self, file):
        file.write(self.marshall().encode('utf-8'))

    def unmarshall(self, data: str):
        """ Decodes the fields and variables from a block of wire text. The end of message marker
            must have already been removed.
        """
        for line in data.split(EOL):
            if not line:
                continue
            key, _, value = line.partition(':')
            key = normalize_key(key)
            value = value.strip()
            if 'variable' in key and '=' in value:
                name, _, var_value = value.partition('=')
                self.set_variable(name.strip(), var_value.strip())
            else:
                self.set(key, value)
        return self

    def __repr__(self):
        cls = type(self)
        return '%s(fields=%r, variables=%r)' % (cls.__name__, dict(self.fields.items()), self.variables)


class Action(Message):
    """ A request sent by the client. Every action carries a unique ActionID, used to pair it with
        the response and events it causes. """

    def __init__(self, name, action_id, fields=None, variables=None):
        super().__init__()
        self.set('ActionID', action_id)
        self.set('Action', name)
        for key, value in (fields or {}).items():
            self.set(key, value)
        for key, value in (variables or {}).items():
            self.set_variable(key, value)

    @property
    def name(self):
        return self.get('Action')


class Event(Message):
    """ A notification from the server, either unsolicited or part of the result of an action. """

    def __init__(self, data=''):
        super().__init__()
        self.unmarshall(data)

    @property
    def name(self):
        return self.get('event', '')


class Response(Message):
    """ The server's reply to an action.

    When the reply announces that events will follow, the events received for the action are
    collected in `events`, in the order they arrived.
    """

    def __init__(self, data=''):
        super().__init__()
        self.unmarshall(data)
        self.events = []

    @property
    def response(self):
        return self.get('response')

    @property
    def message(self):
        return self.get('message')

    @property
    def follows(self):
        return 'follow' in (self.message or '')

    @property
    def success(self):
        return self.response == 'Success'

    def __repr__(self):
        return '%s, events=%r)' % (super().__repr__()[:-1], self.events)


def classify(block: str, log=logger):
    """
    Builds the message for a block of wire text.
    :return: an Event or Response, or None when the block is neither. Such blocks are logged and dropped.
    """
    if block.startswith('Event: '):
        return Event(block)
    if block.startswith('Response: '):
        return Response(block)
    log.warning("Discarded: |%s|" % block)
    return None

"""
The catalog of manager actions and a factory that builds them.

Each action kind is described by data: its name, the ordered fields taken from positional arguments,
and any fixed fields always sent with it. The factory owns the ActionID sequence.
"""
import itertools
import threading
from collections import namedtuple

from amiconnector.protocol.message import Action

ActionDefinition = namedtuple('ActionDefinition', ['name', 'params', 'extra'])


def define(name, params=(), extra=None):
    return ActionDefinition(name, tuple(params), dict(extra or {}))


ACTIONS = (
    define('Login', ('Username', 'Secret')),
    define('CoreShowChannels'),
    define('Ping'),
    define('Hangup'),
    define('CoreStatus'),
    define('Status'),
    define('DahdiShowChannels'),
    define('CoreSettings'),
    define('ListCommands'),
    define('Logoff'),
    define('AbsoluteTimeout'),
    define('SIPShowPeer'),
    define('ExtensionStateList'),
    define('SIPShowRegistry'),
    define('SIPQualifyPeer'),
    define('SIPPeers'),
    define('AgentLogoff'),
    define('Agents'),
    define('AttendedTransfer', ('Channel', 'Exten', 'Context', 'Priority')),
    define('ChangeMonitor', ('Channel', 'File')),
    define('Command', ('Command',)),
    define('CreateConfig', ('Filename',)),
    define('DahdiDialOffHook', ('DAHDIChannel', 'Number')),
    define('DahdiDndOff', ('DAHDIChannel',)),
    define('DahdiDndOn', ('DAHDIChannel',)),
    define('DahdiHangup', ('DAHDIChannel',)),
    define('DahdiRestart'),
    define('DbDel', ('Family', 'Key')),
    define('DbDeltree', ('Family', 'Key')),
    define('DbGet', ('Family', 'Key')),
    define('DbPut', ('Family', 'Key', 'Value')),
    define('ExtensionState', ('Exten', 'Context')),
    define('GetConfig', ('Filename', 'Category')),
    define('GetConfigJson', ('Filename',)),
    define('GetVar', ('Variable', 'Channel')),
    define('JabberSend', ('Jabber', 'JID', 'Message')),
    define('ListCategories', ('Filename',)),
    define('PauseMonitor', ('Channel',)),
    define('UnpauseMonitor', ('Channel',)),
    define('StopMonitor', ('Channel',)),
    define('LocalOptimizeAway', ('Channel',)),
    define('SetVar', ('Variable', 'Value', 'Channel')),
    define('Reload', ('Module',)),
    define('PlayDtmf', ('Channel', 'Digit')),
    define('Park', ('Channel', 'Channel2', 'Timeout', 'Parkinglot')),
    define('ParkedCalls', ('ParkingLot',)),
    define('Parkinglots'),
    define('Monitor', ('Channel', 'Filename'), {'format': 'wav', 'mix': 'true'}),
    define('ModuleCheck', ('Module',)),
    define('ModuleLoad', ('Module',), {'LoadType': 'load'}),
    define('ModuleUnload', ('Module',), {'LoadType': 'unload'}),
    define('ModuleReload', ('Module',), {'LoadType': 'reload'}),
    define('MailboxCount', ('Mailbox',)),
    define('MailboxStatus', ('Mailbox',)),
    define('VoicemailUsersList'),
    define('Originate', ('Channel', 'Exten', 'Priority', 'Application', 'Data', 'Timeout', 'CallerID', 'Account',
                         'Async', 'Codecs')),
    define('Redirect', ('Channel', 'Exten', 'Context', 'Priority', 'ExtraChannel', 'ExtraExten', 'ExtraContext',
                        'ExtraPriority')),
    define('Bridge', ('Channel1', 'Channel2', 'Tone')),
    define('ShowDialPlan', ('Context', 'Extension')),
    define('SendText', ('Channel', 'Message')),
    define('Queues'),
    define('QueueReload', ('queue', 'members', 'rules', 'parameters')),
    define('QueueUnpause', ('Interface', 'Queue', 'Reason'), {'paused': 'false'}),
    define('QueuePause', ('Interface', 'Queue', 'Reason'), {'paused': 'true'}),
    define('QueueSummary', ('Queue',)),
    define('QueueRule', ('Rule',)),
    define('QueueStatus', ('Queue', 'Member')),
    define('QueueReset', ('Queue',)),
    define('QueueRemove', ('Interface', 'Queue')),
    define('QueueAdd', ('Interface', 'Queue', 'Paused', 'MemberName', 'Penalty')),
    define('QueueLog', ('Queue', 'Event', 'Message', 'Interface', 'UniqueId')),
    define('MeetmeList', ('Conference',)),
    define('MeetmeMute', ('Meetme', 'Usernum')),
    define('MeetmeUnmute', ('Meetme', 'Usernum')),
    define('ConfbridgeListRooms'),
    define('ConfbridgeList', ('Conference',)),
    define('ConfbridgeKick', ('Conference', 'Channel')),
    define('ConfbridgeLock', ('Conference',)),
    define('ConfbridgeUnlock', ('Conference',)),
    define('ConfbridgeMute', ('Conference', 'Channel')),
    define('ConfbridgeUnmute', ('Conference', 'Channel')),
    define('AGI', ('Channel', 'Command', 'CommandID')),
    define('BlindTransfer', ('Channel', 'Context', 'Extension')),
    define('Filter', ('Operation', 'Filter')),
    define('UserEvent', ('UserEvent',)),
    define('Events', ('Eventmask',)),
)


class ActionFactory:
    """
    Builds actions from the catalog, giving each a new ActionID.

    >>> factory = ActionFactory()
    >>> factory.create('Login', 'admin', 'secret').marshall()
    'ActionID: 0\\r\\nAction: Login\\r\\nUsername: admin\\r\\nSecret: secret\\r\\n\\r\\n'
    >>> factory.create('Ping').action_id
    '1'
    """

    def __init__(self, id_generator=None, definitions=ACTIONS):
        """
        :param id_generator: an iterator producing the ActionIDs. Ids must not repeat.
        :param definitions: the action kinds this factory can build.
        """
        self._ids = itertools.count() if id_generator is None else id_generator
        self._lock = threading.Lock()
        self.definitions = {d.name: d for d in definitions}

    def next_id(self):
        with self._lock:
            return next(self._ids)

    def names(self):
        return list(self.definitions.keys())

    def create(self, name, *args, variables=None, **fields) -> Action:
        """
        Creates an action.
        :param name: the action kind, as named in the catalog.
        :param args: values for the catalog fields of the action, in order. A None value is not sent.
        :param variables: variables sent with the action.
        :param fields: catalog fields given by name, or further fields sent after the catalog ones.
        :raises KeyError: when the name is not in the catalog.
        """
        definition = self.definitions[name]
        if len(args) > len(definition.params):
            raise TypeError("%s takes at most %d arguments (%d given)" % (name, len(definition.params), len(args)))
        named = {key.lower(): (key, value) for key, value in fields.items()}
        action = Action(definition.name, self.next_id())
        for index, param in enumerate(definition.params):
            if index < len(args):
                if param.lower() in named:
                    raise TypeError("%s got multiple values for %s" % (name, param))
                value = args[index]
            else:
                value = named.pop(param.lower(), (param, None))[1]
            if value is not None:
                action.set(param, value)
        for key, value in definition.extra.items():
            action.set(key, value)
        for key, value in named.values():
            if value is not None:
                action.set(key, value)
        for key, value in (variables or {}).items():
            action.set_variable(key, value)
        return action

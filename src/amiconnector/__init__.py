"""


Manager Interface Connections

- Conduit: abstraction of a bi-directional channel. Combines 2 streams for reading and writing.
  SocketConduit wraps a TCP socket and can poll it for readable data.
- Connector: establishes a conduit to an endpoint, such as a TCP server, and fires
  ConnectorConnectedEvent/ConnectorDisconnectedEvent as the connection changes.
- protocol
 - message: the wire encoding of actions, responses and events, and the classifier that tells them apart.
 - actions: the catalog of actions and the factory that numbers them.
 - framer: splits the byte stream into message blocks at the blank line that ends each message.
 - correlation: pairs responses, and the event lists that follow some responses, with the action
   that caused them. Everything else is published as an unsolicited event.
 - io: the greeting check.
- ManagerClient: ties it together. Opens the connector, checks the greeting, logs in and pumps
  the conduit on a background thread. Fires lifecycle events as the connection changes.
- config: layered configuration files, validated against a schema.


## Threading

A single background thread reads from the conduit and processes the messages in the order they arrived.
Listeners and completion callbacks run on that thread; a slow listener delays everything after it.

Actions may be sent from any thread. The table of pending actions is guarded by a lock that is
never held while a callback runs, so callbacks can send further actions.

Request timeouts are checked by the background thread each time it wakes, at most poll_interval apart.
There is no automatic reconnection; a client can be reopened once closed.
"""

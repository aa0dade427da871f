"""
Reading the greeting the manager sends when a connection opens.
"""
import re

from amiconnector.protocol.asynchronous import UnknownProtocolError

GREETING = 'Asterisk Call Manager/.*'
EOL = b'\r\n'
# the longest first line accepted as a greeting
MAX_GREETING_LENGTH = 1024


def check_greeting(banner: str, pattern=GREETING):
    """
    Verifies that the first line sent by the peer is a manager greeting.
    :return: the banner
    :raises UnknownProtocolError: when the banner does not match the pattern.

    >>> check_greeting('Asterisk Call Manager/5.0.1')
    'Asterisk Call Manager/5.0.1'
    """
    if not re.search(pattern, banner):
        raise UnknownProtocolError("unexpected greeting '%s'" % banner)
    return banner


class GreetingReader:
    """
    Collects the first line received on a connection.
    The line may arrive split over several chunks. Once it is complete, any bytes that followed
    it in the same chunk are handed back so they can be processed as regular traffic.
    A line longer than max_length is not a greeting.
    """

    def __init__(self, encoding='utf-8', max_length=MAX_GREETING_LENGTH):
        self.encoding = encoding
        self.max_length = max_length
        self.buffer = bytearray()
        self.banner = None

    @property
    def complete(self):
        return self.banner is not None

    @property
    def waiting(self):
        """ True when part of the line has arrived, but not its end. """
        return not self.complete and len(self.buffer) > 0

    def feed(self, data: bytes):
        """
        Adds data received before the greeting was complete.
        :return: the bytes following the greeting line, or None while the line is still incomplete.
        :raises UnknownProtocolError: when max_length bytes arrive without an end of line. The
            bytes received so far become the banner.
        """
        self.buffer.extend(data)
        end = self.buffer.find(EOL)
        if end < 0:
            if len(self.buffer) > self.max_length:
                self.abandon()
                raise UnknownProtocolError("no end of line in the first %d bytes" % self.max_length)
            return None
        self.banner = bytes(self.buffer[:end]).decode(self.encoding, 'replace')
        remainder = bytes(self.buffer[end + len(EOL):])
        self.buffer = bytearray()
        return remainder

    def abandon(self):
        """ Stops waiting for the end of the line. What was received so far becomes the banner. """
        self.banner = bytes(self.buffer).decode(self.encoding, 'replace')
        self.buffer = bytearray()
        return self.banner

    def reset(self):
        self.buffer = bytearray()
        self.banner = None

import logging

from amiconnector.protocol.asynchronous import ManagerError

logger = logging.getLogger(__name__)

EOM = b'\r\n\r\n'
LINE_ENDINGS = b'\r\n'


class MessageTooLargeError(ManagerError):
    """ raised when an incomplete message grows beyond the configured limit.
        The complete blocks extracted before the limit was hit are available as `blocks`. """

    def __init__(self, message, blocks=()):
        super().__init__(message)
        self.blocks = list(blocks)


class MessageFramer:
    """
    Splits a stream of bytes into message blocks.
    Data is buffered until the end of message marker, a blank line, is seen. Each complete block is
    returned without the marker. Line endings in front of a block are skipped, so any number of
    blank lines after a marker is tolerated. Whatever follows the last marker stays in the buffer
    for the next call.
    """

    def __init__(self, max_message_size=None, encoding='utf-8', log=logger):
        """
        :param max_message_size: the largest number of bytes an incomplete message may hold, or None for no limit.
        """
        self.max_message_size = max_message_size
        self.encoding = encoding
        self.logger = log
        self.buffer = bytearray()

    def feed(self, data: bytes):
        """
        Appends data to the buffer and extracts the complete blocks.
        :return: the list of blocks, as text, in the order they arrived.
        :raises MessageTooLargeError: when the unterminated remainder exceeds the size limit.
            The buffer is discarded.
        """
        buffer = self.buffer
        buffer.extend(data)
        blocks = []
        start = 0
        while True:
            while start < len(buffer) and buffer[start] in LINE_ENDINGS:
                start += 1
            end = buffer.find(EOM, start)
            if end < 0:
                break
            blocks.append(bytes(buffer[start:end]).decode(self.encoding, 'replace'))
            start = end + len(EOM)
        del buffer[:start]
        if self.max_message_size is not None and len(buffer) > self.max_message_size:
            size = len(buffer)
            self.reset()
            raise MessageTooLargeError("incomplete message of %d bytes exceeds the limit of %d" %
                                       (size, self.max_message_size), blocks)
        if blocks:
            self.logger.debug("framed %d block(s), %d byte(s) pending" % (len(blocks), len(buffer)))
        return blocks

    def pending(self) -> bytes:
        """ the bytes received but not yet part of a complete block. """
        return bytes(self.buffer)

    def reset(self):
        self.buffer = bytearray()

import unittest
from unittest.mock import Mock

from hamcrest import assert_that, calling, contains_exactly, empty, is_, raises

from amiconnector.protocol.framer import MessageFramer, MessageTooLargeError

STREAM = b'Response: Success\r\nActionID: 1\r\n\r\nEvent: Hangup\r\nChannel: SIP/1\r\n\r\n'
BLOCKS = ['Response: Success\r\nActionID: 1', 'Event: Hangup\r\nChannel: SIP/1']


class MessageFramerTest(unittest.TestCase):
    def setUp(self):
        self.sut = MessageFramer()

    def test_incomplete_block_is_buffered(self):
        assert_that(self.sut.feed(b'Event: Hangup\r\n'), is_(empty()))
        assert_that(self.sut.pending(), is_(b'Event: Hangup\r\n'))

    def test_multiple_blocks_in_one_chunk(self):
        assert_that(self.sut.feed(STREAM), contains_exactly(*BLOCKS))
        assert_that(self.sut.pending(), is_(b''))

    def test_any_chunking_gives_the_same_blocks(self):
        for size in (1, 2, 3, 5, 7, 16, len(STREAM)):
            sut = MessageFramer()
            blocks = []
            for i in range(0, len(STREAM), size):
                blocks.extend(sut.feed(STREAM[i:i + size]))
            assert_that(blocks, contains_exactly(*BLOCKS))
            assert_that(sut.pending(), is_(b''))

    def test_marker_split_across_chunks(self):
        assert_that(self.sut.feed(b'Event: A\r\n\r'), is_(empty()))
        assert_that(self.sut.feed(b'\n'), contains_exactly('Event: A'))

    def test_remainder_is_kept(self):
        assert_that(self.sut.feed(b'Event: A\r\n\r\nEvent: B\r\n'), contains_exactly('Event: A'))
        assert_that(self.sut.pending(), is_(b'Event: B\r\n'))

    def test_trailing_blank_lines_are_tolerated(self):
        blocks = self.sut.feed(b'Event: A\r\n\r\n\r\n\n\rEvent: B\r\n\r\n')
        assert_that(blocks, contains_exactly('Event: A', 'Event: B'))

    def test_blank_lines_arriving_late_are_skipped(self):
        self.sut.feed(b'Event: A\r\n\r\n')
        self.sut.feed(b'\r\n')
        assert_that(self.sut.feed(b'Event: B\r\n\r\n'), contains_exactly('Event: B'))

    def test_invalid_utf8_is_replaced(self):
        assert_that(self.sut.feed(b'Event: \xff\r\n\r\n'), contains_exactly('Event: �'))

    def test_reset(self):
        self.sut.feed(b'Event: partial')
        self.sut.reset()
        assert_that(self.sut.pending(), is_(b''))
        assert_that(self.sut.feed(b'Event: A\r\n\r\n'), contains_exactly('Event: A'))

    def test_size_limit(self):
        sut = MessageFramer(max_message_size=10)
        assert_that(calling(sut.feed).with_args(b'Event: far too long'), raises(MessageTooLargeError))
        assert_that(sut.pending(), is_(b''))

    def test_size_limit_keeps_complete_blocks(self):
        sut = MessageFramer(max_message_size=10)
        try:
            sut.feed(b'Event: A\r\n\r\nEvent: far too long')
            self.fail('expected MessageTooLargeError')
        except MessageTooLargeError as e:
            assert_that(e.blocks, contains_exactly('Event: A'))

    def test_complete_blocks_do_not_count_against_limit(self):
        sut = MessageFramer(max_message_size=10)
        assert_that(sut.feed(b'Event: quite a long one\r\n\r\n'), contains_exactly('Event: quite a long one'))

    def test_logs_framed_blocks(self):
        log = Mock()
        sut = MessageFramer(log=log)
        sut.feed(STREAM)
        log.debug.assert_called_once()

import unittest
from io import BytesIO, IOBase
from unittest.mock import Mock

from hamcrest import is_, assert_that, raises, calling

from amiconnector.conduit.base import DefaultConduit, Conduit


class ConduitTest(unittest.TestCase):

    def test_abstract_methods(self):
        sut = Conduit()
        assert_that(calling(sut.close), raises(NotImplementedError))
        assert_that(calling(sut.__getattribute__).with_args('input'), raises(NotImplementedError))
        assert_that(calling(sut.__getattribute__).with_args('output'), raises(NotImplementedError))
        assert_that(calling(sut.__getattribute__).with_args('open'), raises(NotImplementedError))
        assert_that(calling(sut.__getattribute__).with_args('target'), raises(NotImplementedError))

    def test_poll_defaults_to_readable(self):
        assert_that(Conduit().poll(0.1), is_(True))


class DefaultConduitTest(unittest.TestCase):

    def test_constructor_read_write(self):
        read = IOBase()
        write = IOBase()
        sut = DefaultConduit(read, write)
        assert_that(sut.output, is_(write))
        assert_that(sut.input, is_(read))
        assert_that(sut.target, is_(read))

    def test_set_streams(self):
        read = IOBase()
        write = IOBase()
        sut = DefaultConduit(None)
        sut.set_streams(read, write)
        assert_that(sut.output, is_(write))
        assert_that(sut.input, is_(read))

    def test_constructor_read(self):
        read = IOBase()
        sut = DefaultConduit(read)
        assert_that(sut.output, is_(read))
        assert_that(sut.input, is_(read))

    def test_open_until_closed(self):
        sut = DefaultConduit(BytesIO(), BytesIO())
        assert_that(sut.open, is_(True))
        sut.close()
        assert_that(sut.open, is_(False))

    def test_close_closes_both_streams(self):
        read = IOBase()
        write = IOBase()
        sut = DefaultConduit(read, write)
        read.close = Mock()
        write.close = Mock()
        sut.close()
        read.close.assert_called_once()
        write.close.assert_called_once()

    def test_close_shared_stream_once(self):
        stream = IOBase()
        stream.close = Mock()
        sut = DefaultConduit(stream)
        sut.close()
        stream.close.assert_called_once()

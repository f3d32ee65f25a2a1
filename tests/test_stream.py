import io
import struct
import unittest

from blockpress import LeOutputStream

from .common import (
    CustomBytesIO,
    NonClosingBytesIO,
    UnseekableBytesIO,
)


class TestLeOutputStream(unittest.TestCase):
    def test_unseekable(self):
        with self.assertRaisesRegex(ValueError, "must be seekable"):
            LeOutputStream(UnseekableBytesIO())

        with self.assertRaisesRegex(ValueError, "must be seekable"):
            LeOutputStream(object())

    def test_put_integers(self):
        buffer = io.BytesIO()
        stream = LeOutputStream(buffer)

        self.assertEqual(stream.put_uint8(1), 1)
        self.assertEqual(stream.put_uint16(0x0203), 2)
        self.assertEqual(stream.put_uint32(0x04050607), 4)
        self.assertEqual(stream.put_uint64(0x08090A0B0C0D0E0F), 8)

        self.assertEqual(
            buffer.getvalue(),
            b"\x01\x03\x02\x07\x06\x05\x04"
            b"\x0f\x0e\x0d\x0c\x0b\x0a\x09\x08",
        )
        self.assertEqual(stream.tell(), 15)

    def test_put_out_of_range(self):
        stream = LeOutputStream(io.BytesIO())

        with self.assertRaises(struct.error):
            stream.put_uint8(256)

        with self.assertRaises(struct.error):
            stream.put_uint32(-1)

    def test_write_at(self):
        buffer = io.BytesIO()
        stream = LeOutputStream(buffer)

        stream.write(b"head")
        marker = stream.mark()
        self.assertEqual(marker.position, 4)

        stream.write(b"\x00\x00\x00\x00")
        stream.write(b"tail")
        self.assertEqual(stream.tell(), 12)

        stream.write_at(marker, b"\xaa\xbb\xcc\xdd")

        self.assertEqual(stream.tell(), 12)
        self.assertEqual(buffer.getvalue(), b"head\xaa\xbb\xcc\xddtail")

        stream.write(b"!")
        self.assertEqual(buffer.getvalue(), b"head\xaa\xbb\xcc\xddtail!")

    def test_write_at_cannot_grow(self):
        buffer = io.BytesIO()
        stream = LeOutputStream(buffer)

        marker = stream.mark()
        stream.write(b"ab")

        with self.assertRaisesRegex(ValueError, "cannot extend the stream"):
            stream.write_at(marker, b"abc")

        self.assertEqual(buffer.getvalue(), b"ab")
        self.assertEqual(stream.tell(), 2)

    def test_write_at_restores_on_error(self):
        buffer = CustomBytesIO()
        stream = LeOutputStream(buffer)

        marker = stream.mark()
        stream.write(b"\x00" * 8)
        stream.write(b"payload")

        buffer.write_exception = IOError("write failed")

        with self.assertRaisesRegex(IOError, "write failed"):
            stream.write_at(marker, b"\x01" * 8)

        buffer.write_exception = None
        self.assertEqual(stream.tell(), 15)
        self.assertEqual(buffer.getvalue(), b"\x00" * 8 + b"payload")

    def test_foreign_marker(self):
        first = LeOutputStream(io.BytesIO())
        second = LeOutputStream(io.BytesIO())
        second.write(b"xx")

        marker = first.mark()

        with self.assertRaisesRegex(ValueError, "different stream"):
            second.write_at(marker, b"a")

    def test_truncate_invalidates_markers(self):
        buffer = io.BytesIO()
        stream = LeOutputStream(buffer)

        stream.write(b"abcdef")
        marker = stream.mark()
        stream.write(b"ghij")

        self.assertEqual(stream.truncate(6), 6)
        self.assertEqual(stream.tell(), 6)
        self.assertEqual(buffer.getvalue(), b"abcdef")

        stream.write(b"klmn")
        with self.assertRaisesRegex(ValueError, "invalidated"):
            stream.write_at(marker, b"x")

    def test_reset(self):
        buffer = io.BytesIO()
        stream = LeOutputStream(buffer)

        marker = stream.mark()
        stream.write(b"abcdef")
        stream.reset()

        self.assertEqual(stream.tell(), 0)
        self.assertEqual(buffer.getvalue(), b"")

        stream.write(b"abcdef")
        with self.assertRaisesRegex(ValueError, "invalidated"):
            stream.write_at(marker, b"x")

        stream.write_at(_mark_at_start(stream), b"x")
        self.assertEqual(buffer.getvalue(), b"xbcdef")

    def test_close(self):
        buffer = NonClosingBytesIO()
        stream = LeOutputStream(buffer)
        stream.close()
        self.assertFalse(buffer.closed)

        stream = LeOutputStream(buffer, closefd=True)
        stream.write(b"foo")
        with stream:
            pass

        self.assertTrue(buffer.closed)
        self.assertTrue(stream.closed)
        self.assertEqual(buffer.getvalue(), b"foo")


def _mark_at_start(stream):
    end = stream.tell()
    stream.raw.seek(0)
    marker = stream.mark()
    stream.raw.seek(end)
    return marker

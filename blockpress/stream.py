# Copyright (c) 2016-present, Gregory Szorc
# All rights reserved.
#
# This software may be modified and distributed under the terms
# of the BSD license. See the LICENSE file for details.

"""Little-endian output stream supporting in-place backpatching."""

import struct

__all__ = ["LeOutputStream", "StreamMarker"]

_UINT8 = struct.Struct("<B")
_UINT16 = struct.Struct("<H")
_UINT32 = struct.Struct("<I")
_UINT64 = struct.Struct("<Q")


class StreamMarker(object):
    """A previously recorded position in a ``LeOutputStream``.

    Markers are only accepted by the stream that created them, and only
    until that stream is truncated or reset.
    """

    __slots__ = ("_stream", "_generation", "_position")

    def __init__(self, stream, generation, position):
        self._stream = stream
        self._generation = generation
        self._position = position

    def __repr__(self):
        return "<StreamMarker position=%d>" % self._position

    @property
    def position(self):
        return self._position


class LeOutputStream(object):
    """Writes little-endian values to a seekable binary file object.

    Writes normally append at the current position. ``write_at()`` is the
    only way to modify earlier bytes and it never grows the stream or
    moves the append position.

    :param fh:
       A seekable, writable binary file object.
    :param closefd:
       Whether ``close()`` closes ``fh`` too.
    """

    def __init__(self, fh, closefd=False):
        seekable = getattr(fh, "seekable", None)
        if seekable is None or not seekable():
            raise ValueError("output stream must be seekable")

        self._fh = fh
        self._closefd = bool(closefd)
        self._generation = 0

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, exc_tb):
        self.close()
        return False

    @property
    def raw(self):
        return self._fh

    @property
    def closed(self):
        return self._fh.closed

    def tell(self):
        return self._fh.tell()

    def write(self, data):
        self._fh.write(data)
        return len(data)

    def put_uint8(self, value):
        return self.write(_UINT8.pack(value))

    def put_uint16(self, value):
        return self.write(_UINT16.pack(value))

    def put_uint32(self, value):
        return self.write(_UINT32.pack(value))

    def put_uint64(self, value):
        return self.write(_UINT64.pack(value))

    def mark(self):
        """Record the current append position."""
        return StreamMarker(self, self._generation, self._fh.tell())

    def write_at(self, marker, data):
        """Overwrite bytes starting at ``marker``.

        The append position is restored afterwards, even if the write
        fails.
        """
        if marker._stream is not self:
            raise ValueError("marker belongs to a different stream")

        if marker._generation != self._generation:
            raise ValueError("marker invalidated by truncate() or reset()")

        end = self._fh.tell()
        if marker._position + len(data) > end:
            raise ValueError(
                "write_at() cannot extend the stream: %d bytes at %d "
                "passes position %d" % (len(data), marker._position, end)
            )

        self._fh.seek(marker._position)
        try:
            self._fh.write(data)
        finally:
            self._fh.seek(end)

    def truncate(self, size=None):
        """Truncate the underlying file, invalidating all markers."""
        if size is None:
            size = self._fh.tell()

        self._fh.truncate(size)
        if self._fh.tell() > size:
            self._fh.seek(size)

        self._generation += 1
        return size

    def reset(self):
        self._fh.seek(0)
        self.truncate(0)

    def flush(self):
        f = getattr(self._fh, "flush", None)
        if f:
            f()

    def close(self):
        if self._closefd and not self._fh.closed:
            self._fh.close()

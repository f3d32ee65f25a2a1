# Copyright (c) 2016-present, Gregory Szorc
# All rights reserved.
#
# This software may be modified and distributed under the terms
# of the BSD license. See the LICENSE file for details.

from .errors import CapacityExceeded

__all__ = ["StagingBuffer"]


class StagingBuffer(object):
    """Accumulates raw bytes for the current block up to a fixed limit."""

    def __init__(self, max_size):
        if max_size < 1:
            raise ValueError("max_size must be positive")

        self._max_size = max_size
        self._buffer = bytearray()

    def __len__(self):
        return len(self._buffer)

    @property
    def max_size(self):
        return self._max_size

    @property
    def remaining(self):
        return self._max_size - len(self._buffer)

    def stage(self, data, limit=None):
        """Append ``data``, returning the number of bytes staged.

        Raises ``CapacityExceeded`` without modifying the buffer if the
        result would be larger than ``max_size``, or if ``limit`` is given
        and ``data`` is larger than it.
        """
        with memoryview(data) as view:
            size = view.nbytes
            if size > self.remaining:
                raise CapacityExceeded(
                    "cannot stage %d bytes: %d of %d bytes in use"
                    % (size, len(self._buffer), self._max_size)
                )

            if limit is not None and size > limit:
                raise CapacityExceeded(
                    "cannot stage %d bytes: only %d more bytes allowed"
                    % (size, max(limit, 0))
                )

            self._buffer += view.cast("B")

        return size

    def drain(self):
        """Return and clear everything staged so far."""
        data = bytes(self._buffer)
        del self._buffer[:]
        return data

    def clear(self):
        del self._buffer[:]

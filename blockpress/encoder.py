# Copyright (c) 2016-present, Gregory Szorc
# All rights reserved.
#
# This software may be modified and distributed under the terms
# of the BSD license. See the LICENSE file for details.

import logging

__all__ = ["ChunkedEncoder"]

logger = logging.getLogger(__name__)


class ChunkedEncoder(object):
    """Moves staged input through a compression engine into a stream.

    Keeps running totals of raw bytes consumed and compressed bytes
    written for the block in progress.
    """

    def __init__(self, stream, staging, engine):
        self._stream = stream
        self._staging = staging
        self._engine = engine
        self._raw_size = 0
        self._compressed_size = 0

    @property
    def raw_size(self):
        return self._raw_size

    @property
    def compressed_size(self):
        return self._compressed_size

    @property
    def engine(self):
        return self._engine

    def begin(self):
        """Start a new compressed stream with zeroed totals."""
        self._engine.reset()
        self._raw_size = 0
        self._compressed_size = 0

    def compress(self):
        """Compress everything staged, returning the bytes written."""
        data = self._staging.drain()
        total_write = self._write_chunks(self._engine.feed(data))
        self._raw_size += len(data)

        if data:
            logger.debug(
                "compressed %d bytes into %d bytes", len(data), total_write
            )

        return total_write

    def finish_compression(self):
        """Terminate the compressed stream.

        Returns the final ``(raw_size, compressed_size)`` pair.
        """
        self.compress()
        self._write_chunks(self._engine.feed(b"", final=True))
        return self._raw_size, self._compressed_size

    def _write_chunks(self, chunks):
        total_write = 0
        for chunk in chunks:
            self._stream.write(chunk)
            total_write += len(chunk)
            self._compressed_size += len(chunk)

        return total_write

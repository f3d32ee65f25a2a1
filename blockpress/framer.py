# Copyright (c) 2016-present, Gregory Szorc
# All rights reserved.
#
# This software may be modified and distributed under the terms
# of the BSD license. See the LICENSE file for details.

"""Size-framed compressed blocks with a backpatched header."""

import collections
import contextlib
import enum
import io
import logging
import struct

from .encoder import ChunkedEncoder
from .engine import CHUNK_SIZE, get_engine
from .errors import (
    AlreadyOpen,
    CapacityExceeded,
    InvalidTransition,
    NotOpen,
)
from .staging import StagingBuffer
from .stream import LeOutputStream

__all__ = [
    "BlockFramer",
    "BlockInfo",
    "BlockState",
    "BlockWriter",
    "DEFAULT_MAX_BLOCK_SIZE",
    "HEADER_U32",
    "HEADER_U64",
]

logger = logging.getLogger(__name__)

# (raw_size, compressed_size) as written before every block.
HEADER_U32 = struct.Struct("<II")
HEADER_U64 = struct.Struct("<QQ")

DEFAULT_MAX_BLOCK_SIZE = 64 * 1024 * 1024

BlockInfo = collections.namedtuple(
    "BlockInfo", ["start_position", "raw_size", "compressed_size"]
)


class BlockState(enum.Enum):
    IDLE = "idle"
    OPEN = "open"
    CLOSED = "closed"
    ABORTED = "aborted"


# Unsigned integer format codes accepted for the two header fields.
_HEADER_CODES = "BHILQN"


def _header_limit(header):
    """Largest value either field of ``header`` can hold."""
    fmt = header.format
    if fmt[:1] in ("<", ">", "=", "!", "@"):
        prefix, codes = fmt[:1], fmt[1:]
    else:
        prefix, codes = "", fmt

    codes = codes.replace(" ", "")
    if codes[:1] == "2":
        codes = codes[1:] * 2

    if (
        len(codes) != 2
        or codes[0] != codes[1]
        or codes[0] not in _HEADER_CODES
    ):
        raise ValueError(
            "header must hold two unsigned integers of equal width; got %r"
            % fmt
        )

    return (1 << (struct.calcsize(prefix + codes[0]) * 8)) - 1


class BlockFramer(object):
    """Writes compressed blocks, each preceded by a size header.

    ``start_block()`` writes a zeroed placeholder header and
    ``finish()`` overwrites it with the block's final raw and compressed
    sizes once they are known. Between the two, raw bytes are staged
    with ``stage()`` and pushed through the compressor with
    ``compress()``.

    Instances are not thread safe.

    :param stream:
       A ``LeOutputStream`` or a seekable binary file object. The stream
       is shared with the caller and not closed unless ``closefd`` is true.
    :param max_block_size:
       Maximum number of raw bytes that may be staged between two
       ``compress()`` calls.
    :param codec:
       ``"zlib"`` (the default unless ``BLOCKPRESS_CODEC`` says otherwise)
       or ``"zstd"``.
    :param level:
       Compression level. Defaults to the codec's balanced setting.
    :param header:
       ``struct.Struct`` describing the header. ``HEADER_U32`` by default.
    :param chunk_size:
       Size of the buffer compressed output is produced into.
    """

    def __init__(
        self,
        stream,
        max_block_size=DEFAULT_MAX_BLOCK_SIZE,
        codec=None,
        level=None,
        header=HEADER_U32,
        chunk_size=CHUNK_SIZE,
        closefd=False,
    ):
        if not isinstance(stream, LeOutputStream):
            stream = LeOutputStream(stream, closefd=closefd)

        self._header_max = _header_limit(header)
        self._header = header
        self._stream = stream
        self._closefd = bool(closefd)
        self._staging = StagingBuffer(max_block_size)
        self._encoder = ChunkedEncoder(
            stream,
            self._staging,
            get_engine(codec, level=level, chunk_size=chunk_size),
        )
        self._state = BlockState.IDLE
        self._marker = None
        self._blocks = []

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, exc_tb):
        self.close()
        return False

    @property
    def state(self):
        return self._state

    @property
    def stream(self):
        return self._stream

    @property
    def header(self):
        return self._header

    @property
    def codec(self):
        return self._encoder.engine.name

    @property
    def max_block_size(self):
        return self._staging.max_size

    @property
    def blocks(self):
        """``BlockInfo`` for every finished block, in write order."""
        return list(self._blocks)

    @property
    def raw_size(self):
        """Raw bytes accepted by the current block so far."""
        return self._encoder.raw_size + len(self._staging)

    def start_block(self):
        if self._state is BlockState.OPEN:
            raise AlreadyOpen(
                "cannot start a block while another block is open"
            )

        self._marker = self._stream.mark()
        self._stream.write(b"\x00" * self._header.size)
        self._staging.clear()

        try:
            self._encoder.begin()
        except Exception:
            self._abandon()
            raise

        self._state = BlockState.OPEN
        logger.debug("started block at offset %d", self._marker.position)
        return self._marker

    def stage(self, data):
        """Stage raw bytes for the open block.

        Raises ``CapacityExceeded`` if the staging buffer is full or if the
        block's raw size would no longer fit in the header.
        """
        self._require_open("stage()")

        return self._staging.stage(
            data, limit=self._header_max - self.raw_size
        )

    write = stage

    def compress(self):
        """Compress all staged bytes into the stream."""
        self._require_open("compress()")

        try:
            return self._encoder.compress()
        except Exception:
            self._abandon()
            raise

    def finish(self):
        """Close the open block and backpatch its header.

        Returns a ``BlockInfo``. The stream's append position is left just
        past the block's compressed payload.
        """
        if self._state is not BlockState.OPEN:
            raise NotOpen("finish() requires an open block")

        try:
            raw_size, compressed_size = self._encoder.finish_compression()
        except Exception:
            self._abandon()
            raise

        if compressed_size > self._header_max:
            self._abandon()
            raise CapacityExceeded(
                "compressed size %d does not fit in the block header"
                % compressed_size
            )

        try:
            self._stream.write_at(
                self._marker, self._header.pack(raw_size, compressed_size)
            )
        except Exception:
            self._abandon()
            raise

        info = BlockInfo(self._marker.position, raw_size, compressed_size)
        self._blocks.append(info)
        self._state = BlockState.CLOSED
        self._marker = None

        logger.debug(
            "finished block at offset %d: %d raw bytes, %d compressed bytes",
            info.start_position,
            raw_size,
            compressed_size,
        )
        return info

    def abort(self):
        """Abandon the open block without writing its header."""
        self._require_open("abort()")
        self._abandon()

    @contextlib.contextmanager
    def block(self):
        """Context manager writing a single block.

        Yields a ``BlockWriter``. The block is finished when the context
        exits normally and aborted if an exception escapes it.
        """
        self.start_block()
        writer = BlockWriter(self)
        try:
            yield writer
        except BaseException:
            if self._state is BlockState.OPEN:
                self._abandon()
            raise
        finally:
            writer._closed = True

        writer.info = self.finish()

    def close(self):
        if self._state is BlockState.OPEN:
            logger.warning(
                "closing with an unfinished block at offset %d",
                self._marker.position,
            )
            self._abandon()

        self._encoder.engine.close()

        if self._closefd:
            self._stream.close()

    def _require_open(self, operation):
        if self._state is not BlockState.OPEN:
            raise InvalidTransition(
                "%s requires an open block; block is %s"
                % (operation, self._state.value)
            )

    def _abandon(self):
        position = self._marker.position if self._marker else -1
        self._encoder.engine.close()
        self._staging.clear()
        self._state = BlockState.ABORTED
        self._marker = None
        logger.warning("aborted block at offset %d", position)


class BlockWriter(object):
    """Writable file object feeding raw bytes into an open block.

    ``write()`` stages data and ``flush()`` compresses whatever has been
    staged. Nothing is written to the underlying stream by ``write()``.
    """

    def __init__(self, framer):
        self._framer = framer
        self._closed = False
        self._bytes_written = 0
        self.info = None

    @property
    def closed(self):
        return self._closed

    def isatty(self):
        return False

    def readable(self):
        return False

    def readline(self, size=-1):
        raise io.UnsupportedOperation()

    def readlines(self, hint=-1):
        raise io.UnsupportedOperation()

    def seek(self, offset, whence=None):
        raise io.UnsupportedOperation()

    def seekable(self):
        return False

    def truncate(self, size=None):
        raise io.UnsupportedOperation()

    def writable(self):
        return True

    def writelines(self, lines):
        for line in lines:
            self.write(line)

    def read(self, size=-1):
        raise io.UnsupportedOperation()

    def readall(self):
        raise io.UnsupportedOperation()

    def readinto(self, b):
        raise io.UnsupportedOperation()

    def fileno(self):
        raise io.UnsupportedOperation()

    def write(self, data):
        if self._closed:
            raise ValueError("stream is closed")

        size = self._framer.stage(data)
        self._bytes_written += size
        return size

    def flush(self):
        if self._closed:
            raise ValueError("stream is closed")

        return self._framer.compress()

    def tell(self):
        return self._bytes_written

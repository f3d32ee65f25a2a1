# Copyright (c) 2016-present, Gregory Szorc
# All rights reserved.
#
# This software may be modified and distributed under the terms
# of the BSD license. See the LICENSE file for details.

"""Stateful streaming compressors that emit bounded output chunks."""

import logging
import os

import zstandard as zstd

from ._cffi import (
    ffi,
    lib,
    DEF_MEM_LEVEL,
    MAX_WBITS,
    Z_BUF_ERROR,
    Z_DATA_ERROR,
    Z_DEFAULT_COMPRESSION,
    Z_DEFAULT_STRATEGY,
    Z_DEFLATED,
    Z_FINISH,
    Z_MEM_ERROR,
    Z_NO_FLUSH,
    Z_OK,
    Z_STREAM_END,
    Z_STREAM_ERROR,
    Z_VERSION_ERROR,
)
from .errors import CompressionFault, InvalidTransition

__all__ = [
    "CHUNK_SIZE",
    "CompressionEngine",
    "DeflateEngine",
    "ZstdEngine",
    "default_codec",
    "get_engine",
]

logger = logging.getLogger(__name__)

# Capacity of the scratch buffer compressed output is produced into.
CHUNK_SIZE = 1000000

_ZLIB_ERRORS = {
    Z_STREAM_ERROR: "Z_STREAM_ERROR",
    Z_DATA_ERROR: "Z_DATA_ERROR",
    Z_MEM_ERROR: "Z_MEM_ERROR",
    Z_BUF_ERROR: "Z_BUF_ERROR",
    Z_VERSION_ERROR: "Z_VERSION_ERROR",
}


def _zlib_error(zresult, strm=None):
    if strm is not None and strm.msg != ffi.NULL:
        return ffi.string(strm.msg).decode("utf-8", "replace")

    return _ZLIB_ERRORS.get(zresult, "error code %d" % zresult)


class CompressionEngine(object):
    """Base class for streaming compressors used by the block encoder.

    Subclasses own the compressor state. ``reset()`` starts a new
    compressed stream and ``feed()`` pushes input through it, yielding
    compressed chunks no larger than ``chunk_size``.

    Instances are not thread safe.
    """

    name = None
    default_level = None

    def __init__(self, level=None, chunk_size=CHUNK_SIZE):
        if chunk_size < 1:
            raise ValueError("chunk_size must be positive")

        if level is None:
            level = self.default_level

        self._level = level
        self._chunk_size = chunk_size

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, exc_tb):
        self.close()
        return False

    @property
    def level(self):
        return self._level

    @property
    def chunk_size(self):
        return self._chunk_size

    @property
    def active(self):
        """Whether a compressed stream is in progress."""
        raise NotImplementedError()

    def reset(self):
        raise NotImplementedError()

    def feed(self, data, final=False):
        raise NotImplementedError()

    def close(self):
        raise NotImplementedError()


class DeflateEngine(CompressionEngine):
    """Produces a zlib stream using the system zlib's ``deflate()``.

    Output is produced directly into a single ``chunk_size`` scratch
    buffer which is reused for every chunk of every stream.

    :param level:
       Integer compression level from 1 through 9, or -1 for zlib's
       default trade-off between speed and size. Level 0 is rejected:
       zlib's stored blocks are cut at ``deflate()`` call boundaries, so
       the compressed size would depend on how input was fed.
    :param chunk_size:
       Size in bytes of the scratch buffer. No emitted chunk is larger.
    """

    name = "zlib"
    default_level = Z_DEFAULT_COMPRESSION

    def __init__(self, level=None, chunk_size=CHUNK_SIZE):
        super(DeflateEngine, self).__init__(level=level, chunk_size=chunk_size)

        if not -1 <= self._level <= 9:
            raise ValueError("level must be between -1 and 9")

        if self._level == 0:
            raise ValueError(
                "level 0 is not supported; stored output depends on how "
                "input is split across feed() calls"
            )

        self._dst_buffer = ffi.new("unsigned char[]", chunk_size)
        self._stream = None

    @property
    def active(self):
        return self._stream is not None

    def reset(self):
        self._release()

        strm = ffi.new("z_stream *")
        zresult = lib.deflateInit2_(
            strm,
            self._level,
            Z_DEFLATED,
            MAX_WBITS,
            DEF_MEM_LEVEL,
            Z_DEFAULT_STRATEGY,
            lib.zlibVersion(),
            ffi.sizeof("z_stream"),
        )
        if zresult != Z_OK:
            raise CompressionFault(
                "error initializing deflate stream: %s"
                % _zlib_error(zresult, strm)
            )

        self._stream = ffi.gc(strm, lib.deflateEnd)
        logger.debug("deflate stream initialized at level %d", self._level)

    def feed(self, data, final=False):
        """Compress ``data``, yielding chunks of compressed output.

        When ``final`` is true, the deflate stream is terminated and all
        output it was holding is emitted. The engine must be ``reset()``
        before it can be fed again.

        The returned generator must be exhausted before calling any other
        method on this instance.
        """
        if self._stream is None:
            raise InvalidTransition(
                "deflate stream not initialized; call reset() first"
            )

        in_buffer = ffi.from_buffer("unsigned char[]", data)
        if not len(in_buffer) and not final:
            return

        strm = self._stream
        strm.next_in = in_buffer
        strm.avail_in = len(in_buffer)

        flush = Z_FINISH if final else Z_NO_FLUSH

        while True:
            strm.next_out = self._dst_buffer
            strm.avail_out = self._chunk_size

            zresult = lib.deflate(strm, flush)
            # Z_BUF_ERROR only signals that no progress was possible.
            if zresult not in (Z_OK, Z_STREAM_END, Z_BUF_ERROR):
                message = _zlib_error(zresult, strm)
                self._release()
                logger.warning("deflate failed: %s", message)
                raise CompressionFault("zlib deflate error: %s" % message)

            produced = self._chunk_size - strm.avail_out
            if produced:
                yield ffi.buffer(self._dst_buffer, produced)[:]

            if zresult == Z_STREAM_END:
                self._release()
                return

            if strm.avail_out:
                if not final:
                    strm.next_in = ffi.NULL
                    return

                if zresult == Z_BUF_ERROR:
                    self._release()
                    raise CompressionFault(
                        "zlib deflate error: stream could not be finished"
                    )

    def close(self):
        self._release()

    def _release(self):
        if self._stream is None:
            return

        lib.deflateEnd(self._stream)
        ffi.gc(self._stream, None)
        self._stream = None


class ZstdEngine(CompressionEngine):
    """Produces a single zstd frame using ``zstandard``'s chunker.

    ``feed()`` only emits full ``chunk_size`` chunks until ``final`` is
    given; the remainder is emitted when the frame is finished.

    :param level:
       Integer compression level. Valid values are all negative integers
       through ``zstandard.MAX_COMPRESSION_LEVEL``.
    """

    name = "zstd"
    default_level = 3

    def __init__(self, level=None, chunk_size=CHUNK_SIZE):
        super(ZstdEngine, self).__init__(level=level, chunk_size=chunk_size)

        if self._level > zstd.MAX_COMPRESSION_LEVEL:
            raise ValueError(
                "level must be less than %d" % zstd.MAX_COMPRESSION_LEVEL
            )

        self._compressor = zstd.ZstdCompressor(level=self._level)
        self._chunker = None

    @property
    def active(self):
        return self._chunker is not None

    def reset(self):
        self._chunker = self._compressor.chunker(chunk_size=self._chunk_size)
        logger.debug("zstd frame initialized at level %d", self._level)

    def feed(self, data, final=False):
        if self._chunker is None:
            raise InvalidTransition(
                "zstd frame not initialized; call reset() first"
            )

        try:
            for chunk in self._chunker.compress(data):
                yield chunk

            if final:
                for chunk in self._chunker.finish():
                    yield chunk

                self._chunker = None
        except zstd.ZstdError as e:
            self._chunker = None
            logger.warning("zstd compression failed: %s", e)
            raise CompressionFault("zstd compress error: %s" % e) from e

    def close(self):
        self._chunker = None


_ENGINES = {
    "zlib": DeflateEngine,
    "deflate": DeflateEngine,
    "zstd": ZstdEngine,
}


def default_codec():
    """Name of the codec used when none is requested explicitly.

    Controlled by the ``BLOCKPRESS_CODEC`` environment variable.
    """
    return os.environ.get("BLOCKPRESS_CODEC", "zlib").strip() or "zlib"


def get_engine(codec=None, level=None, chunk_size=CHUNK_SIZE):
    """Construct a compression engine for a named codec."""
    if codec is None:
        codec = default_codec()

    try:
        cls = _ENGINES[codec]
    except KeyError:
        raise ValueError(
            "unknown codec: %s; use %s" % (codec, ", ".join(sorted(_ENGINES)))
        )

    return cls(level=level, chunk_size=chunk_size)

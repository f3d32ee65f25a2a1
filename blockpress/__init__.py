# Copyright (c) 2017-present, Gregory Szorc
# All rights reserved.
#
# This software may be modified and distributed under the terms
# of the BSD license. See the LICENSE file for details.

"""Write size-framed compressed blocks into seekable binary streams."""

import builtins
import os

from ._cffi import ZLIB_VERSION, Z_DEFAULT_COMPRESSION
from .encoder import ChunkedEncoder
from .engine import (
    CHUNK_SIZE,
    CompressionEngine,
    DeflateEngine,
    ZstdEngine,
    default_codec,
    get_engine,
)
from .errors import (
    AlreadyOpen,
    BlockError,
    CapacityExceeded,
    CompressionFault,
    InvalidTransition,
    NotOpen,
)
from .framer import (
    DEFAULT_MAX_BLOCK_SIZE,
    HEADER_U32,
    HEADER_U64,
    BlockFramer,
    BlockInfo,
    BlockState,
    BlockWriter,
)
from .staging import StagingBuffer
from .stream import LeOutputStream, StreamMarker

__version__ = "0.1.0"


def open(
    filename,
    mode="wb",
    max_block_size=DEFAULT_MAX_BLOCK_SIZE,
    codec=None,
    level=None,
    header=HEADER_U32,
    closefd=None,
):
    """Open a file for writing compressed blocks.

    filename can be a filename (given as a str, bytes, or PathLike
    object) or an existing seekable file object. If the former, the file
    will be opened via `builtins.open()`.

    mode can be `wb` (the default), `xb` for creating exclusively, or
    `r+b` / `w+b` to write into a file opened for update. Append modes
    are rejected because writes in them always land at the end of the
    file, which makes header backpatching impossible.

    closefd specifies whether to close the passed file object when the
    returned ``BlockFramer`` is closed. If a file is explicitly opened,
    that handle is always closed.
    """
    if mode not in ("wb", "xb", "w+b", "r+b", "x+b"):
        raise ValueError("Invalid mode: {!r}".format(mode))

    if isinstance(filename, (str, bytes, os.PathLike)):
        fh = builtins.open(filename, mode)
        closefd = True
    elif hasattr(filename, "write"):
        fh = filename
        closefd = bool(closefd)
    else:
        raise TypeError(
            "filename must be a str, bytes, file or PathLike object"
        )

    try:
        return BlockFramer(
            fh,
            max_block_size=max_block_size,
            codec=codec,
            level=level,
            header=header,
            closefd=closefd,
        )
    except Exception:
        if closefd:
            fh.close()
        raise

import io
import os
import zlib

from typing import List

import zstandard as zstd

from blockpress import HEADER_U32


class NonClosingBytesIO(io.BytesIO):
    """BytesIO that saves the underlying buffer on close().

    This allows us to access written data after close().
    """

    def __init__(self, *args, **kwargs):
        super(NonClosingBytesIO, self).__init__(*args, **kwargs)
        self._saved_buffer = None

    def close(self):
        self._saved_buffer = self.getvalue()
        return super(NonClosingBytesIO, self).close()

    def getvalue(self):
        if self.closed:
            return self._saved_buffer
        else:
            return super(NonClosingBytesIO, self).getvalue()


class CustomBytesIO(io.BytesIO):
    def __init__(self, *args, **kwargs):
        self._seek_count = 0
        self._write_count = 0
        self.seek_exception = None
        self.write_exception = None
        super(CustomBytesIO, self).__init__(*args, **kwargs)

    def seek(self, *args):
        self._seek_count += 1

        if self.seek_exception:
            raise self.seek_exception

        return super(CustomBytesIO, self).seek(*args)

    def write(self, data):
        self._write_count += 1

        if self.write_exception:
            raise self.write_exception

        return super(CustomBytesIO, self).write(data)


class UnseekableBytesIO(io.BytesIO):
    def seekable(self):
        return False


def decompress(payload, codec="zlib"):
    if codec == "zstd":
        return zstd.ZstdDecompressor().decompressobj().decompress(payload)

    return zlib.decompress(payload)


def read_block(data, offset=0, header=HEADER_U32, codec="zlib"):
    """Parse the block starting at ``offset``.

    Returns ``(raw_size, compressed_size, raw, next_offset)``.
    """
    raw_size, compressed_size = header.unpack_from(data, offset)
    start = offset + header.size
    payload = data[start : start + compressed_size]
    assert len(payload) == compressed_size

    return (
        raw_size,
        compressed_size,
        decompress(payload, codec),
        start + compressed_size,
    )


def read_blocks(data, header=HEADER_U32, codec="zlib"):
    offset = 0
    blocks = []
    while offset < len(data):
        raw_size, compressed_size, raw, offset = read_block(
            data, offset, header=header, codec=codec
        )
        blocks.append((raw_size, compressed_size, raw))

    return blocks


_source_files = []  # type: List[bytes]


def random_input_data():
    """Obtain the raw content of source files.

    This is used for generating "random" data to feed into fuzzing, since it is
    faster than random content generation.
    """
    if _source_files:
        return _source_files

    for root, dirs, files in os.walk(os.path.dirname(__file__)):
        # We filter out __pycache__ because there is a race between another
        # process writing cache files and us reading them.
        dirs[:] = list(sorted(d for d in dirs if d != "__pycache__"))
        for f in sorted(files):
            try:
                with open(os.path.join(root, f), "rb") as fh:
                    data = fh.read()
                    if data:
                        _source_files.append(data)
            except OSError:
                pass

    # Also add some actual random data.
    _source_files.append(os.urandom(100))
    _source_files.append(os.urandom(1000))
    _source_files.append(os.urandom(10000))
    _source_files.append(os.urandom(100000))

    return _source_files

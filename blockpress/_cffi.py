# Copyright (c) 2016-present, Gregory Szorc
# All rights reserved.
#
# This software may be modified and distributed under the terms
# of the BSD license. See the LICENSE file for details.

"""cffi bindings to the system zlib library.

Only the streaming deflate API is declared. The library is loaded in ABI
mode, so no compiler or zlib headers are needed at install time. Set
``BLOCKPRESS_ZLIB_LIBRARY`` to the path of a specific shared library to
override the lookup.
"""

import ctypes.util
import os

import cffi

__all__ = [
    "ffi",
    "lib",
    "Z_NO_FLUSH",
    "Z_FINISH",
    "Z_OK",
    "Z_STREAM_END",
    "Z_STREAM_ERROR",
    "Z_DATA_ERROR",
    "Z_MEM_ERROR",
    "Z_BUF_ERROR",
    "Z_VERSION_ERROR",
    "Z_DEFLATED",
    "Z_DEFAULT_COMPRESSION",
    "Z_DEFAULT_STRATEGY",
    "MAX_WBITS",
    "DEF_MEM_LEVEL",
    "ZLIB_VERSION",
]

ffi = cffi.FFI()

# Layout of struct z_stream_s from zlib.h. Only field offsets matter in ABI
# mode, so the allocator callbacks and internal state are declared as plain
# pointers.
ffi.cdef(
    """
typedef struct z_stream_s {
    const unsigned char *next_in;
    unsigned int avail_in;
    unsigned long total_in;

    unsigned char *next_out;
    unsigned int avail_out;
    unsigned long total_out;

    const char *msg;
    void *state;

    void *zalloc;
    void *zfree;
    void *opaque;

    int data_type;
    unsigned long adler;
    unsigned long reserved;
} z_stream;

const char *zlibVersion(void);
int deflateInit2_(z_stream *strm, int level, int method, int windowBits,
                  int memLevel, int strategy, const char *version,
                  int stream_size);
int deflate(z_stream *strm, int flush);
int deflateEnd(z_stream *strm);
"""
)

Z_NO_FLUSH = 0
Z_FINISH = 4

Z_OK = 0
Z_STREAM_END = 1
Z_STREAM_ERROR = -2
Z_DATA_ERROR = -3
Z_MEM_ERROR = -4
Z_BUF_ERROR = -5
Z_VERSION_ERROR = -6

Z_DEFLATED = 8
Z_DEFAULT_COMPRESSION = -1
Z_DEFAULT_STRATEGY = 0
MAX_WBITS = 15
DEF_MEM_LEVEL = 8

_FALLBACK_NAMES = ("libz.so.1", "libz.so", "libz.1.dylib", "zlib1.dll")


def _candidate_names():
    override = os.environ.get("BLOCKPRESS_ZLIB_LIBRARY")
    if override:
        return [override]

    names = []
    for name in ("z", "zlib", "zlib1"):
        found = ctypes.util.find_library(name)
        if found and found not in names:
            names.append(found)

    names.extend(n for n in _FALLBACK_NAMES if n not in names)
    return names


def _load():
    errors = []
    for name in _candidate_names():
        try:
            return ffi.dlopen(name)
        except OSError as e:
            errors.append("%s (%s)" % (name, e))

    raise ImportError(
        "unable to load the zlib shared library; tried: %s"
        % ", ".join(errors)
    )


lib = _load()

ZLIB_VERSION = ffi.string(lib.zlibVersion()).decode("ascii")

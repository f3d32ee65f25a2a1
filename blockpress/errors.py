# Copyright (c) 2016-present, Gregory Szorc
# All rights reserved.
#
# This software may be modified and distributed under the terms
# of the BSD license. See the LICENSE file for details.

"""Exception types raised while writing compressed blocks."""

__all__ = [
    "BlockError",
    "CapacityExceeded",
    "CompressionFault",
    "InvalidTransition",
    "AlreadyOpen",
    "NotOpen",
]


class BlockError(Exception):
    """Base class for all errors raised by this package."""


class CapacityExceeded(BlockError):
    """Raised when a block cannot hold any more data.

    Either staged input would grow past the configured maximum block
    payload, or a block's sizes cannot be represented by the header.
    Nothing is modified when this is raised from ``stage()``, so callers
    can finish the current block and start another one.
    """


class CompressionFault(BlockError):
    """The compressor reported an unrecoverable error.

    The block being written when this is raised must be discarded.
    """


class InvalidTransition(BlockError, RuntimeError):
    """An operation was attempted in a block state that does not allow it."""


class AlreadyOpen(InvalidTransition):
    pass


class NotOpen(InvalidTransition):
    pass

"""
Pipe channels joining adjacent pipeline stages.

Each channel is an os.pipe() pair whose two descriptors are wrapped in
Endpoint handles. An endpoint is closed at most once; whoever still owns an
endpoint when a ChannelSet scope is left gets it released there, on normal
and on error paths alike.
"""

import fcntl
import logging
import os
from typing import Iterator, List, Optional

from .exceptions import SystemCallError

logger = logging.getLogger(__name__)

READ = 'read'
WRITE = 'write'

# Pipe descriptors are kept above stdin, stdout and stderr
FIRST_CHANNEL_FD = 3


def _above_standard_streams(fd: int) -> int:
    """Move fd to the lowest free number >= FIRST_CHANNEL_FD, keeping close-on-exec."""
    if fd >= FIRST_CHANNEL_FD:
        return fd
    moved = fcntl.fcntl(fd, fcntl.F_DUPFD_CLOEXEC, FIRST_CHANNEL_FD)
    os.close(fd)
    return moved


class Endpoint:
    """
    One end of a channel, owning a file descriptor.

    Attributes:
        fd: The descriptor number (kept after close for diagnostics)
        role: READ or WRITE
        channel_index: Position of the owning channel in the pipeline
    """

    def __init__(self, fd: int, role: str, channel_index: int):
        self.fd = fd
        self.role = role
        self.channel_index = channel_index
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def fileno(self) -> int:
        if self._closed:
            raise ValueError(f"{self!r} is closed")
        return self.fd

    def close(self) -> None:
        """
        Release the descriptor.

        Closing an already closed endpoint does nothing.

        Raises:
            SystemCallError: If close(2) fails
        """
        if self._closed:
            return
        # Marked first: a failed close(2) leaves the descriptor state
        # unspecified and it must not be closed a second time.
        self._closed = True
        try:
            os.close(self.fd)
        except OSError as e:
            raise SystemCallError(f"close {self.role} end of pipe {self.channel_index}", e)

    def __repr__(self):
        state = 'closed' if self._closed else 'open'
        return f"Endpoint({self.role} fd={self.fd} channel={self.channel_index} {state})"


class Channel:
    """An anonymous unidirectional pipe between stage k and stage k+1."""

    def __init__(self, index: int, read: Endpoint, write: Endpoint):
        self.index = index
        self.read = read
        self.write = write

    @classmethod
    def open(cls, index: int) -> 'Channel':
        """
        Create a new pipe.

        Both descriptors are numbered FIRST_CHANNEL_FD or higher, even when
        digenv was started with stdin or stdout closed. A pipe end sitting
        on fd 0 or 1 would be closed by the very child that was redirected
        onto it.

        Raises:
            SystemCallError: If pipe(2) or fcntl(2) fails
        """
        try:
            read_fd, write_fd = os.pipe()
        except OSError as e:
            raise SystemCallError("pipe", e)
        try:
            read_fd = _above_standard_streams(read_fd)
            write_fd = _above_standard_streams(write_fd)
        except OSError as e:
            for fd in (read_fd, write_fd):
                try:
                    os.close(fd)
                except OSError:
                    logger.debug("fd %d already gone while discarding pipe %d", fd, index)
            raise SystemCallError("fcntl", e)
        logger.debug("opened channel %d (read fd %d, write fd %d)", index, read_fd, write_fd)
        return cls(index, Endpoint(read_fd, READ, index), Endpoint(write_fd, WRITE, index))

    @property
    def closed(self) -> bool:
        return self.read.closed and self.write.closed

    def endpoints(self) -> List[Endpoint]:
        return [self.read, self.write]

    def close(self) -> None:
        """Close both ends; the write end is attempted even if the read end fails."""
        try:
            self.read.close()
        finally:
            self.write.close()

    def __repr__(self):
        return f"Channel({self.index}, {self.read!r}, {self.write!r})"


class ChannelSet:
    """
    The ordered channels of one pipeline run.

    Usage:
        with ChannelSet(len(stages) - 1) as channels:
            ...                     # spawn stages, close as they are wired
        # every endpoint still open here has been released

    Channels are created when the scope is entered, all of them before any
    stage is spawned.
    """

    def __init__(self, count: int):
        if count < 0:
            raise ValueError(f"channel count must not be negative: {count}")
        self.count = count
        self.channels: List[Channel] = []

    def open(self) -> 'ChannelSet':
        """
        Create every channel.

        If one pipe(2) call fails, the channels created before it are closed
        and the error propagates.
        """
        try:
            for index in range(self.count):
                self.channels.append(Channel.open(index))
        except BaseException:
            self.close()
            raise
        return self

    def __len__(self) -> int:
        return len(self.channels)

    def __iter__(self) -> Iterator[Channel]:
        return iter(self.channels)

    def __getitem__(self, index: int) -> Channel:
        return self.channels[index]

    def input_for(self, position: int) -> Optional[Endpoint]:
        """Read end feeding the stage at position, None for the first stage."""
        if position == 0:
            return None
        return self.channels[position - 1].read

    def output_for(self, position: int) -> Optional[Endpoint]:
        """Write end fed by the stage at position, None for the last stage."""
        if position >= len(self.channels):
            return None
        return self.channels[position].write

    def open_endpoints(self) -> List[Endpoint]:
        return [end for channel in self.channels for end in channel.endpoints() if not end.closed]

    def close(self) -> None:
        """
        Close every endpoint still open.

        All endpoints are attempted; the first failure is raised afterwards.
        """
        first_error = None
        for end in self.open_endpoints():
            try:
                end.close()
            except SystemCallError as e:
                if first_error is None:
                    first_error = e
        if first_error is not None:
            raise first_error

    def __enter__(self):
        return self.open()

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None:
            self.close()
            return False
        try:
            self.close()
        except SystemCallError as e:
            # Keep the exception that is already propagating
            logger.debug("ignoring %s while unwinding from %s", e, exc_type.__name__)
        return False

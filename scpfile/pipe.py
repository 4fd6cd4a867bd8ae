"""
Bounded, thread-safe byte pipe connecting a download thread to its reader.
"""
import io
from collections import deque
from threading import Condition

#: Default number of bytes the writer may buffer before it blocks.
DEFAULT_CAPACITY = 64 * 1024


class PipeClosed(Exception):
    """
    Raised to the writer when the reading side has been closed.
    """

    pass


class _State:
    def __init__(self, capacity):
        if capacity < 1:
            raise ValueError("Pipe capacity must be positive!")
        self.capacity = capacity
        self.cond = Condition()
        self.chunks = deque()
        self.buffered = 0
        self.written = 0
        self.writer_closed = False
        self.reader_closed = False
        self.error = None


class PipeReader(io.RawIOBase):
    """
    Read end of a `pipe`.

    Reads block until data is available or the writer closes. Once the
    buffer is drained, a writer closed with an error re-raises that error
    on every read; a cleanly closed writer yields EOF.

    Callables registered via `on_close` run (once) when this end is closed,
    which is how abandoned downloads get cancelled.
    """

    def __init__(self, state):
        super().__init__()
        self._state = state
        self._close_callbacks = []

    def readable(self):
        return True

    def on_close(self, callback):
        self._close_callbacks.append(callback)

    def readinto(self, buffer):
        if self.closed:
            raise ValueError("I/O operation on closed pipe.")
        state = self._state
        view = memoryview(buffer).cast("B")
        with state.cond:
            while not state.chunks and not state.writer_closed:
                state.cond.wait()
            if not state.chunks:
                if state.error is not None:
                    raise state.error
                return 0
            filled = 0
            while state.chunks and filled < len(view):
                chunk = state.chunks[0]
                n = min(len(chunk), len(view) - filled)
                view[filled : filled + n] = chunk[:n]
                filled += n
                if n == len(chunk):
                    state.chunks.popleft()
                else:
                    state.chunks[0] = chunk[n:]
            state.buffered -= filled
            state.cond.notify_all()
            return filled

    def close(self):
        if self.closed:
            return
        state = self._state
        with state.cond:
            state.reader_closed = True
            state.chunks.clear()
            state.buffered = 0
            finished = state.writer_closed
            state.cond.notify_all()
        super().close()
        if not finished:
            for callback in self._close_callbacks:
                callback()


class PipeWriter:
    """
    Write end of a `pipe`.
    """

    def __init__(self, state):
        self._state = state

    def write(self, data):
        """
        Append ``data``, blocking while the pipe is at capacity.

        :raises: `PipeClosed` if the reader has gone away.
        """
        state = self._state
        view = memoryview(data).cast("B")
        with state.cond:
            if state.writer_closed:
                raise ValueError("write to closed pipe.")
            while view:
                while state.buffered >= state.capacity and not state.reader_closed:
                    state.cond.wait()
                if state.reader_closed:
                    raise PipeClosed("reader closed the pipe")
                n = min(len(view), state.capacity - state.buffered)
                state.chunks.append(bytes(view[:n]))
                state.buffered += n
                state.written += n
                view = view[n:]
                state.cond.notify_all()
        return len(data)

    def close(self, error=None):
        """
        Close the write end; pending data stays readable.

        :param error:
            Exception the reader receives once it has drained the buffer, or
            ``None`` for a clean EOF. Subsequent closes are no-ops.
        """
        state = self._state
        with state.cond:
            if state.writer_closed:
                return
            state.writer_closed = True
            state.error = error
            state.cond.notify_all()

    @property
    def closed(self):
        return self._state.writer_closed

    @property
    def written(self):
        """
        Total bytes accepted so far; updated under the pipe lock, so it never
        lags behind what the reader has seen.
        """
        return self._state.written


def pipe(capacity=DEFAULT_CAPACITY):
    """
    Return a connected ``(reader, writer)`` pair.
    """
    state = _State(capacity)
    return PipeReader(state), PipeWriter(state)

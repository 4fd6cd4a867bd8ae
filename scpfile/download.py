"""
Downloading a single file from a remote scp running in "source" mode.
"""
from threading import Event

from invoke.util import ExceptionHandlingThread

from .exceptions import ProtocolViolation, SCPError, TransferIOError
from .file import File
from .pipe import DEFAULT_CAPACITY, PipeClosed, pipe
from .protocol import LEVELS, SOURCE, parse_copy, read_diagnostic, write_status
from .util import debug, wrap_io

#: Upper bound on a single read from the remote while streaming content.
DEFAULT_CHUNK_SIZE = 1024


class Download(ExceptionHandlingThread):
    """
    Background thread streaming one file's content out of a remote session.

    Owns ``session`` for its whole lifetime, and always closes it. Content
    is pushed into ``writer`` (the write end of a `.pipe`) as it arrives; the
    writer is closed once done, carrying any error so it surfaces to
    whoever reads the other end.

    `cancel` (hooked up to the pipe reader being closed) aborts the transfer
    by closing the session, unblocking any pending remote read.
    """

    def __init__(self, session, directive, writer, chunk_size=DEFAULT_CHUNK_SIZE):
        super().__init__()
        self.session = session
        self.directive = directive
        self.writer = writer
        self.chunk_size = chunk_size
        self.delivered = 0
        self.cancelled = Event()

    def cancel(self):
        # Nothing to abort once every content byte made it into the pipe; the
        # ack and drain still need to happen for the remote to exit cleanly.
        if self.writer.written >= self.directive.size or self.cancelled.is_set():
            return
        self.cancelled.set()
        debug(
            "Download of {!r} abandoned after {} of {} bytes".format(
                self.directive.name, self.writer.written, self.directive.size
            )
        )
        self.session.close()

    def _run(self):
        error = None
        try:
            with wrap_io("receiving {!r}".format(self.directive.name)):
                self._receive()
        except PipeClosed:
            debug("Content reader went away, stopping download")
        except Exception as e:
            if self.cancelled.is_set():
                debug("Download cancelled: {!r}".format(e))
            elif isinstance(e, SCPError):
                error = e
            else:
                error = TransferIOError(
                    "Unexpected failure receiving {!r}: {!r}".format(
                        self.directive.name, e
                    )
                )
                error.__cause__ = e
        finally:
            self.session.close()
            self.writer.close(error)
        if error is not None:
            debug("Download of {!r} failed: {}".format(self.directive.name, error))

    def _receive(self):
        stdout = self.session.stdout
        size = self.directive.size
        while self.delivered < size:
            chunk = stdout.read(min(self.chunk_size, size - self.delivered))
            if not chunk:
                raise TransferIOError(
                    "Remote closed the stream after {} of {} bytes".format(
                        self.delivered, size
                    )
                )
            self.writer.write(chunk)
            self.delivered += len(chunk)
        debug("Received all {} bytes of {!r}".format(size, self.directive.name))
        write_status(self.session.stdin)
        # Whatever's left (normally just the remote's own trailing status
        # byte) is discarded until the remote hangs up.
        while stdout.read(self.chunk_size):
            pass


def _receive_directive(session):
    write_status(session.stdin)
    with wrap_io("reading copy directive"):
        first = session.stdout.read(1)
    if not first:
        raise ProtocolViolation("Remote closed the session before sending a file")
    if first[0] in LEVELS:
        # Unlike uploads, any diagnostic here is fatal: no file follows it.
        raise read_diagnostic(session.stdout, first[0]).exception()
    with wrap_io("reading copy directive"):
        line = first + session.stdout.readline()
    if not line.endswith(b"\n"):
        raise ProtocolViolation("Truncated copy directive: {!r}".format(line))
    directive = parse_copy(line)
    debug("Got copy directive {!r}".format(directive))
    write_status(session.stdin)
    return directive


def read_file(
    connection,
    path,
    chunk_size=DEFAULT_CHUNK_SIZE,
    buffer_size=DEFAULT_CAPACITY,
):
    """
    Start downloading remote ``path`` and return it as a `.File`.

    The returned file's content streams in from a background `Download`
    thread; callers may start reading before the transfer finishes.

    :param connection:
        Anything with a ``create_session(mode, target)`` method, such as a
        `.Connection`.
    :param str path: Remote file path.
    :param int chunk_size: Maximum bytes per read from the remote.
    :param int buffer_size: Bytes buffered in-process before the thread
        waits for the reader to catch up.

    :returns: `.File` whose ``content`` is readable binary stream.

    :raises:
        `.TransportError`, `.ProtocolViolation`, `.RemoteWarning`,
        `.RemoteError` or `.TransferIOError`, for failures occurring before
        content starts flowing. Later failures are raised from the file's
        read methods instead.
    """
    session = connection.create_session(SOURCE, path)
    try:
        directive = _receive_directive(session)
    except BaseException:
        session.close()
        raise
    reader, writer = pipe(buffer_size)
    thread = Download(session, directive, writer, chunk_size=chunk_size)
    reader.on_close(thread.cancel)
    thread.start()
    return File(directive.name, directive.size, directive.mode, reader)

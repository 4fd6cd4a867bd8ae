"""
Uploading a single file to a remote scp running in "sink" mode.
"""
from .download import DEFAULT_CHUNK_SIZE
from .exceptions import RemoteError, TransferIOError
from .protocol import SINK, Diagnostic, format_copy, read_status
from .util import debug, wrap_io


def _checkpoint(stream, warnings):
    status = read_status(stream)
    if isinstance(status, Diagnostic):
        message = status.message.strip()
        if status.is_fatal:
            raise RemoteError(message)
        debug("Remote warning: {}".format(message))
        warnings.append(message)


def _send_content(file, stdin, chunk_size):
    remaining = file.size
    while remaining:
        with wrap_io("reading local content of {!r}".format(file.name)):
            chunk = file.read(min(chunk_size, remaining))
        if not chunk:
            raise TransferIOError(
                "Content of {!r} ended after {} of {} bytes".format(
                    file.name, file.size - remaining, file.size
                )
            )
        with wrap_io("sending content of {!r}".format(file.name)):
            stdin.write(chunk)
        remaining -= len(chunk)
    with wrap_io("sending content of {!r}".format(file.name)):
        stdin.flush()


def write_file(connection, directory, file, chunk_size=DEFAULT_CHUNK_SIZE):
    """
    Upload ``file`` into remote ``directory``.

    Exactly ``file.size`` bytes are read from the file's content and sent;
    nothing past that point is consumed.

    :param connection:
        Anything with a ``create_session(mode, target)`` method, such as a
        `.Connection`.
    :param str directory: Remote directory to write into.
    :param file: The `.File` to send.
    :param int chunk_size: Maximum bytes per read from ``file``.

    :returns:
        List of warning messages sent by the remote (possibly empty). Remote
        warnings never stop an upload, but if there are any they're probably
        important.

    :raises:
        `.RemoteError` if the remote rejects the file, either before any
        content is sent or after all of it was; plus `.TransportError`,
        `.ProtocolViolation` or `.TransferIOError` for local or wire trouble.
    """
    warnings = []
    with connection.create_session(SINK, directory) as session:
        with wrap_io("sending copy directive"):
            session.stdin.write(format_copy(file.mode, file.size, file.name))
            session.stdin.flush()
        _checkpoint(session.stdout, warnings)
        _send_content(file, session.stdin, chunk_size)
        _checkpoint(session.stdout, warnings)
    debug(
        "Uploaded {!r} ({} bytes) to {!r} with {} warning(s)".format(
            file.name, file.size, directory, len(warnings)
        )
    )
    return warnings

"""
Wire-level pieces of the (single file subset of the) SCP protocol.

Two things travel over an scp session besides file content:

- **status bytes**, exchanged at every checkpoint: ``0`` means "proceed",
  ``1`` is a non-fatal warning and ``2`` a fatal error, both followed by a
  newline-terminated message;
- the **copy directive**, ``C<mode> <size> <name>\\n``, announcing the single
  file about to be sent.

Directory (``D``/``E``) and timestamp (``T``) directives are not supported.
"""
import re
from collections import namedtuple

from .exceptions import (
    ProtocolViolation,
    RemoteError,
    RemoteWarning,
    TransferIOError,
)
from .util import wrap_io

#: Status byte values.
OK = 0
WARNING = 1
ERROR = 2

#: Session modes understood by `.Connection.create_session`.
SOURCE = "source"
SINK = "sink"

LEVELS = {WARNING: "warning", ERROR: "error"}

_OCTAL = re.compile(rb"[0-7]+")
_DECIMAL = re.compile(rb"[+-]?[0-9]+")


class _Ack:
    """
    The bare ``0`` status byte.
    """

    def __repr__(self):
        return "ACK"


ACK = _Ack()


class Diagnostic(namedtuple("Diagnostic", ["level", "message"])):
    """
    A warning or error sent by the remote in place of a ``0`` status byte.
    """

    __slots__ = ()

    @property
    def is_fatal(self):
        return self.level == LEVELS[ERROR]

    def exception(self):
        """
        Return the matching `.RemoteWarning`/`.RemoteError` instance.
        """
        cls = RemoteError if self.is_fatal else RemoteWarning
        return cls(self.message)


class CopyDirective(namedtuple("CopyDirective", ["mode", "size", "name"])):
    """
    Parsed form of a ``C`` line: permission bits, byte count and file name.
    """

    __slots__ = ()

    def encode(self):
        return format_copy(self.mode, self.size, self.name)


def _to_int(raw, pattern, base):
    # int() alone would also accept whitespace and underscores.
    if not pattern.fullmatch(raw):
        raise ValueError("invalid literal for base {}: {!r}".format(base, raw))
    return int(raw, base)


def format_copy(mode, size, name):
    """
    Render a copy directive line as bytes, including the trailing newline.

    The mode is written in octal and the size in decimal, e.g.
    ``format_copy(0o644, 13, "hello.txt") == b"C0644 13 hello.txt\\n"``.
    """
    line = "C{:04o} {:d} {}\n".format(mode, size, name)
    return line.encode("utf-8", "surrogateescape")


def parse_copy(line):
    """
    Parse a copy directive line into a `.CopyDirective`.

    :param bytes line: The raw line, with or without its trailing newline.

    :raises:
        `.ProtocolViolation` if the line doesn't start with ``C``, doesn't
        have exactly three space-separated fields, or carries a mode/size
        that isn't a valid number.
    """
    if not line or line[:1] != b"C":
        raise ProtocolViolation(
            "invalid first byte; expected C but got {!r}".format(line[:1])
        )
    fields = line.rstrip(b"\n").split(b" ")
    if len(fields) != 3:
        # Names containing spaces are a known limitation of this parser.
        raise ProtocolViolation(
            "expected 3 fields in copy directive, got {}: {!r}".format(
                len(fields), line
            )
        )
    raw_mode, raw_size, raw_name = fields
    raw_mode = raw_mode[1:]
    try:
        mode = _to_int(raw_mode, _OCTAL, 8)
    except ValueError as e:
        raise ProtocolViolation("bad mode in copy directive: {}".format(e)) from e
    try:
        size = _to_int(raw_size, _DECIMAL, 10)
    except ValueError as e:
        raise ProtocolViolation("bad size in copy directive: {}".format(e)) from e
    if size < 0:
        raise ProtocolViolation("negative size in copy directive: {}".format(size))
    name = raw_name.decode("utf-8", "surrogateescape")
    return CopyDirective(mode=mode, size=size, name=name)


def read_diagnostic(stream, code):
    """
    Read the message line following a ``1``/``2`` status byte.

    Only the trailing newline is removed; a stream ending before the newline
    simply yields whatever text arrived.
    """
    with wrap_io("reading remote {}".format(LEVELS[code])):
        line = stream.readline()
    message = line.rstrip(b"\n").decode("utf-8", "replace")
    return Diagnostic(level=LEVELS[code], message=message)


def read_status(stream):
    """
    Read one status byte, returning `ACK` or a `.Diagnostic`.

    :raises:
        `.TransferIOError` if the stream ends instead, or
        `.ProtocolViolation` for any byte other than ``0``, ``1`` or ``2``.
    """
    with wrap_io("reading status byte"):
        byte = stream.read(1)
    if not byte:
        raise TransferIOError(
            "remote closed the session while a status byte was expected"
        )
    code = byte[0]
    if code == OK:
        return ACK
    if code in LEVELS:
        return read_diagnostic(stream, code)
    raise ProtocolViolation("unexpected status byte {!r}".format(byte))


def write_status(stream, code=OK):
    """
    Send a single status byte and flush it.
    """
    with wrap_io("sending status byte"):
        stream.write(bytes([code]))
        stream.flush()

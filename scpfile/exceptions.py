class SCPError(Exception):
    """
    Base class for every error raised by this library.
    """

    pass


class TransportError(SCPError):
    """
    Raised when the remote scp session could not be set up.

    Wraps the underlying Paramiko or socket error, which is available as
    ``__cause__``.
    """

    pass


class ProtocolViolation(SCPError):
    """
    Raised when the remote peer sends something this subset of SCP can't
    understand: an unexpected status byte or a malformed copy directive.
    """

    pass


class RemoteDiagnostic(SCPError):
    """
    A warning or error line sent by the remote scp process.

    :param str message: The remote-supplied text, verbatim.
    """

    level = None

    def __init__(self, message):
        super().__init__(message)
        self.message = message

    def __str__(self):
        return "{}: {}".format(self.level, self.message)


class RemoteWarning(RemoteDiagnostic):
    """
    Remote warning (status byte ``1``).

    Only raised by downloads; uploads collect warnings and keep going.
    """

    level = "warning"


class RemoteError(RemoteDiagnostic):
    """
    Remote fatal error (status byte ``2``).
    """

    level = "error"


class TransferIOError(SCPError, OSError):
    """
    Raised when reading or writing transfer data fails midway.

    For downloads this surfaces from the `.File` content stream rather than
    from `.read_file` itself.
    """

    pass

# flake8: noqa
from ._version import __version_info__, __version__
from .config import Config
from .connection import Connection
from .download import read_file
from .exceptions import (
    SCPError,
    TransportError,
    ProtocolViolation,
    RemoteDiagnostic,
    RemoteWarning,
    RemoteError,
    TransferIOError,
)
from .file import File
from .session import RemoteSession
from .transfer import Transfer, Result
from .upload import write_file

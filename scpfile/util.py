import getpass
import logging
from contextlib import contextmanager

from paramiko.ssh_exception import SSHException

from .exceptions import SCPError, TransferIOError

log = logging.getLogger("scpfile")
for x in ("debug",):
    globals()[x] = getattr(log, x)


def get_local_user():
    """
    Return the local executing username, or ``None`` if one can't be found.
    """
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        # Containers and similar environments may have no passwd entry and
        # no LOGNAME/USER style env vars.
        return None


@contextmanager
def wrap_io(action):
    """
    Re-raise low-level I/O failures inside the block as `.TransferIOError`.

    `.SCPError` subclasses pass through untouched, so protocol and remote
    errors keep their identity.

    :param str action:
        Short description of what was being attempted, used as the message
        prefix (e.g. ``"sending copy directive"``).
    """
    try:
        yield
    except SCPError:
        raise
    except (OSError, EOFError, SSHException) as e:
        raise TransferIOError("{} failed: {}".format(action, e)) from e

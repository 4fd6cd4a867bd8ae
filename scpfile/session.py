"""
Remote scp processes running on Paramiko channels.
"""
import shlex
import socket
from threading import Lock

from paramiko.ssh_exception import SSHException

from .exceptions import TransportError
from .protocol import SINK, SOURCE
from .util import debug


def scp_command(mode, target, config):
    """
    Build the remote command line for an scp session.

    :param str mode: `.SOURCE` (download ``target``) or `.SINK` (upload into
        the ``target`` directory).
    :param str target: Remote path; shell-quoted here.
    :param config: A `.Config`, consulted for ``scp.source_command`` and
        ``scp.sink_command``.
    """
    templates = {
        SOURCE: config.scp.source_command,
        SINK: config.scp.sink_command,
    }
    try:
        prefix = templates[mode]
    except KeyError:
        raise ValueError("Unknown scp session mode {!r}!".format(mode))
    return "{} {}".format(prefix, shlex.quote(target))


class RemoteSession:
    """
    One remote command execution, exposing its stdin and stdout as files.

    Wraps a `~paramiko.channel.Channel` obtained from a connected
    `~paramiko.transport.Transport`. Instances are context managers; leaving
    the block closes the channel.

    :param transport: Connected `~paramiko.transport.Transport`.
    :param str command: Command line to execute remotely.
    :param int timeout: Optional channel-open timeout, in seconds.

    :raises:
        `.TransportError` if the channel can't be opened or the command
        can't be started.
    """

    def __init__(self, transport, command, timeout=None):
        self.command = command
        self._lock = Lock()
        self._closed = False
        debug("Starting remote session: {!r}".format(command))
        try:
            if transport is None or not transport.is_active():
                raise SSHException("SSH transport is not active")
            self.channel = transport.open_session(timeout=timeout)
        except (SSHException, socket.error) as e:
            raise TransportError(
                "Unable to open session for {!r}: {}".format(command, e)
            ) from e
        try:
            self.channel.exec_command(command)
            self.stdin = self.channel.makefile_stdin("wb")
            self.stdout = self.channel.makefile("rb")
        except (SSHException, socket.error) as e:
            self.channel.close()
            raise TransportError(
                "Unable to start {!r}: {}".format(command, e)
            ) from e

    def __repr__(self):
        return "<RemoteSession {!r}>".format(self.command)

    @property
    def closed(self):
        return self._closed

    def close(self):
        """
        Close the channel. Safe to call repeatedly and from any thread.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
        debug("Closing remote session: {!r}".format(self.command))
        self.channel.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

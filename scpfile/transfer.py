"""
Path-level file transfer via single-file SCP.
"""
import os
import posixpath
import shutil
import stat

from .download import read_file
from .file import File
from .upload import write_file
from .util import debug

#: Mode used for uploads whose local mode isn't known or preserved.
DEFAULT_MODE = 0o644


class Transfer:
    """
    `.Connection`-wrapping class responsible for managing file upload/download.
    """

    def __init__(self, connection):
        self.connection = connection

    def read(self, path):
        """
        Start downloading ``path``; see `.read_file`.

        Chunk and buffer sizes come from the connection's ``scp`` config.
        """
        scp = self.connection.config.scp
        return read_file(
            self.connection,
            path,
            chunk_size=scp.chunk_size,
            buffer_size=scp.buffer_size,
        )

    def write(self, directory, file):
        """
        Upload ``file`` into ``directory``; see `.write_file`.
        """
        return write_file(
            self.connection,
            directory,
            file,
            chunk_size=self.connection.config.scp.chunk_size,
        )

    def get(self, remote, local=None, preserve_mode=True):
        """
        Copy a file from wrapped connection's host to the local filesystem.

        :param str remote:
            Remote file to download. May be absolute, or relative to the
            remote user's home directory.

        :param local:
            Local path to store downloaded file in, or a file-like object.

            **If None or another 'falsey'/empty value is given** (the default),
            the remote file is downloaded to the current working directory (as
            seen by `os.getcwd`) using its remote filename.

            **If a string is given**, it should be a path to a local directory
            or file. If it is an existing directory, or ends in `os.sep`, the
            remote filename is appended to it. Missing parent directories are
            created.

            **If a file-like object is given**, the contents of the remote file
            are simply written into it.

        :param bool preserve_mode:
            Whether to `os.chmod` the local file so it matches the remote
            file's mode (default: ``True``). Ignored for file-like ``local``.

        :returns: A `.Result` object.
        """
        if not remote:
            raise ValueError("Remote path must not be empty!")
        orig_remote = remote
        orig_local = local
        is_file_like = hasattr(local, "write") and callable(local.write)
        if not local:
            local = posixpath.basename(remote)
        if not is_file_like:
            local = os.path.abspath(local)
            if os.path.isdir(local) or orig_local and orig_local.endswith(os.sep):
                local = os.path.join(local, posixpath.basename(remote))
            parent = os.path.dirname(local)
            if not os.path.isdir(parent):
                os.makedirs(parent)
        with self.read(remote) as file:
            if is_file_like:
                shutil.copyfileobj(file, local)
            else:
                with open(local, "wb") as fd:
                    shutil.copyfileobj(file, fd)
                if preserve_mode:
                    os.chmod(local, file.mode)
            debug("Downloaded {!r} ({} bytes) to {!r}".format(remote, file.size, local))
        return Result(
            orig_remote=orig_remote,
            remote=remote,
            orig_local=orig_local,
            local=local,
            connection=self.connection,
        )

    def put(self, local, remote=None, preserve_mode=True):
        """
        Upload a file from the local filesystem to the current connection.

        :param local:
            Local path of file to upload, or a file-like object.

            **If a string is given**, it should be a path to a local (regular)
            file (not a directory).

            **If a file-like object is given**, its contents from the current
            position onward are uploaded. It must be seekable, since the size
            has to be announced before any content is sent.

        :param str remote:
            Remote path to which the local file will be written.

            'Falsey'/empty values (the default), and paths ending in ``/``,
            refer to a directory: the local file's basename is used as the
            remote filename. Relative paths are relative to the remote user's
            home directory.

            .. note::
                When ``local`` is a file-like object, ``remote`` is required
                and must refer to a file path (not a directory).

        :param bool preserve_mode:
            Whether the remote file's mode should match the local file's
            (default: ``True``). Otherwise, and for file-like ``local``,
            ``0o644`` is sent.

        :returns: A `.Result` object, whose ``warnings`` attribute holds any
            remote warnings.
        """
        if not local:
            raise ValueError("Local path must not be empty!")
        is_file_like = hasattr(local, "read") and callable(local.read)
        orig_remote = remote
        orig_local = local
        if is_file_like:
            if not remote or remote.endswith("/"):
                raise ValueError(
                    "Must give a remote file path when uploading a file-like object!"  # noqa
                )
        else:
            local = os.path.abspath(local)
            if not remote or remote.endswith("/"):
                remote = posixpath.join(remote or "", os.path.basename(local))
        directory = posixpath.dirname(remote) or "."
        name = posixpath.basename(remote)
        if is_file_like:
            pointer = local.tell()
            local.seek(0, os.SEEK_END)
            size = local.tell() - pointer
            local.seek(pointer)
            warnings = self.write(directory, File(name, size, DEFAULT_MODE, local))
        else:
            info = os.stat(local)
            if not stat.S_ISREG(info.st_mode):
                raise ValueError("Can only upload regular files: {!r}".format(local))
            mode = stat.S_IMODE(info.st_mode) if preserve_mode else DEFAULT_MODE
            with open(local, "rb") as fd:
                warnings = self.write(directory, File(name, info.st_size, mode, fd))
        return Result(
            orig_remote=orig_remote,
            remote=remote,
            orig_local=orig_local,
            local=local,
            connection=self.connection,
            warnings=warnings,
        )


class Result:
    """
    A container for information about the result of a file transfer.

    See individual attribute/method documentation below for details.

    .. note::
        This class has no useful truthiness behavior. If a file transfer
        fails, some exception will be raised, either an `OSError` or an
        `.SCPError` subclass.
    """

    def __init__(
        self, local, orig_local, remote, orig_remote, connection, warnings=None
    ):
        #: The local path the file was saved as, or the object it was saved
        #: into if a file-like object was given instead.
        self.local = local
        #: The original value given as the returning method's ``local``
        #: argument.
        self.orig_local = orig_local
        #: The remote path downloaded from or uploaded to.
        self.remote = remote
        #: The original argument value given as the returning method's
        #: ``remote`` argument.
        self.orig_remote = orig_remote
        #: The `.Connection` object this result was obtained from.
        self.connection = connection
        #: Warnings sent by the remote during an upload (always empty for
        #: downloads).
        self.warnings = warnings or []

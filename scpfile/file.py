import stat


class File:
    """
    A single file being sent to, or received from, a remote host.

    Carries the metadata the copy directive needs (name, size, permission
    bits) plus a binary ``content`` stream. It never touches the local
    filesystem itself: for uploads the caller hands in an open stream, for
    downloads `.read_file` hands back a stream fed by a background thread.

    The object is itself readable, delegating ``read``/``readinto``/``close``
    to ``content``, so it can be handed to e.g. `shutil.copyfileobj`.

    :param str name: File name, without any directory part.

    :param int size:
        Exact byte count of ``content``. Must be known up front, since the
        receiving side may reject the file before any data is sent (e.g. for
        lack of disk space).

    :param int mode: Permission bits; anything beyond them is masked off.

    :param content: Readable binary file-like object.
    """

    #: Always ``None``; this subset of SCP carries no timestamps.
    mod_time = None

    def __init__(self, name, size, mode, content):
        if size < 0:
            raise ValueError("File size must be >= 0, got {!r}".format(size))
        self._name = name
        self._size = size
        self._mode = stat.S_IMODE(mode)
        self.content = content

    def __repr__(self):
        return "<File {!r} size={} mode={:04o}>".format(
            self._name, self._size, self._mode
        )

    @property
    def name(self):
        return self._name

    @property
    def size(self):
        return self._size

    @property
    def mode(self):
        return self._mode

    def is_dir(self):
        """
        Always ``False``: only regular files are represented.
        """
        return False

    def read(self, size=-1):
        return self.content.read(size)

    def readinto(self, buffer):
        return self.content.readinto(buffer)

    def close(self):
        """
        Close the content stream.

        For downloads still in flight this also cancels the transfer and
        closes the remote session.
        """
        self.content.close()

    @property
    def closed(self):
        return self.content.closed

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

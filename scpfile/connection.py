from copy import deepcopy

from decorator import decorator
from invoke import Context
from paramiko.client import SSHClient, AutoAddPolicy

from .config import Config
from .session import RemoteSession, scp_command
from .transfer import Transfer


@decorator
def opens(method, self, *args, **kwargs):
    self.open()
    return method(self, *args, **kwargs)


class Connection(Context):
    """
    A connection to an SSH daemon, with methods for single-file scp transfer.

    **Basics**

    This class inherits from Invoke's `~invoke.context.Context`, so it carries
    an Invoke-style `.Config`. It also encapsulates a Paramiko
    `~paramiko.client.SSHClient` instance, from whose transport each transfer
    opens its own `~paramiko.channel.Channel` running the remote ``scp``.

    .. note::
        SSH specific options -- such as specifying private keys and
        passphrases, timeouts, disabling SSH agents, etc -- are handled
        directly by Paramiko and should be specified via the
        ``connect_kwargs`` argument of the constructor.

    **Lifecycle**

    `.Connection` has a basic "`create <__init__>`, `connect/open <open>`, `do
    work <read_file>`, `disconnect/close <close>`" lifecycle:

    - `Instantiation <__init__>` imprints the object with its connection
      parameters (but does **not** actually initiate the network connection).
    - Methods like `read_file`, `get` etc automatically trigger a call to
      `open` if the connection is not active; users may of course call `open`
      manually if desired.
    - Connections do not always need to be explicitly closed, but it's best
      to call `close` (or use the connection as a context manager) when done.

    **Configuration**

    Most `.Connection` parameters honor Invoke-style configuration (e.g.
    ``/etc/scpfile.yaml`` or ``SCPFILE_USER``) as well as any applicable SSH
    config file directives (``Hostname``, ``User``, ``Port``,
    ``ConnectTimeout`` and ``IdentityFile``).
    """

    host = None
    original_host = None
    user = None
    port = None
    ssh_config = None
    connect_timeout = None
    connect_kwargs = None
    client = None
    transport = None

    def __init__(
        self,
        host,
        user=None,
        port=None,
        config=None,
        connect_timeout=None,
        connect_kwargs=None,
    ):
        """
        Set up a new object representing a server connection.

        :param str host:
            the hostname (or IP address) of this connection.

            May include shorthand for the ``user`` and/or ``port`` parameters,
            of the form ``user@host``, ``host:port``, or ``user@host:port``.

            .. note::
                Due to ambiguity, IPv6 host addresses are incompatible with the
                ``host:port`` shorthand (though ``user@host`` will still work
                OK). Use the explicit ``port`` parameter instead.

            .. note::
                If ``host`` matches a ``Host`` clause in loaded SSH config
                data, and that ``Host`` clause contains a ``Hostname``
                directive, the resulting `.Connection` object will behave as if
                ``host`` is equal to that ``Hostname`` value. The original
                value is preserved as the ``original_host`` attribute.

        :param str user:
            the login user for the remote connection. Defaults to
            ``config.user``.

        :param int port:
            the remote port. Defaults to ``config.port``.

        :param config:
            configuration settings to use when executing methods on this
            `.Connection`. Should be a `.Config` or an `invoke.config.Config`
            (which will be turned into a `.Config`). Default is an anonymous
            `.Config` object.

        :param int connect_timeout:
            Connection timeout, in seconds. Default:
            ``config.timeouts.connect``.

        :param dict connect_kwargs:
            Keyword arguments handed verbatim to
            `SSHClient.connect <paramiko.client.SSHClient.connect>` (when
            `.open` is called), e.g. ``pkey`` or ``key_filename``. Default:
            ``config.connect_kwargs``.

        :raises ValueError:
            if user or port values are given via both ``host`` shorthand *and*
            their own arguments.
        """
        super().__init__(config=config)
        if config is None:
            config = Config()
        elif not isinstance(config, Config):
            config = config.clone(into=Config)
        self._set(_config=config)
        shorthand = self.derive_shorthand(host)
        host = shorthand["host"]
        err = "You supplied the {} via both shorthand and kwarg! Please pick one."
        if shorthand["user"] is not None:
            if user is not None:
                raise ValueError(err.format("user"))
            user = shorthand["user"]
        if shorthand["port"] is not None:
            if port is not None:
                raise ValueError(err.format("port"))
            port = shorthand["port"]
        self.ssh_config = self.config.base_ssh_config.lookup(host)
        self.original_host = host
        self.host = host
        if "hostname" in self.ssh_config:
            self.host = self.ssh_config["hostname"]
        self.user = user or self.ssh_config.get("user", self.config.user)
        self.port = port or int(self.ssh_config.get("port", self.config.port))
        if connect_timeout is None:
            connect_timeout = self.ssh_config.get(
                "connecttimeout", self.config.timeouts.connect
            )
        if connect_timeout is not None:
            connect_timeout = int(connect_timeout)
        self.connect_timeout = connect_timeout
        self.connect_kwargs = self.resolve_connect_kwargs(connect_kwargs)
        client = SSHClient()
        client.set_missing_host_key_policy(AutoAddPolicy())
        self.client = client
        self.transport = None

    def resolve_connect_kwargs(self, connect_kwargs):
        # Constructor kwargs win over config; key filenames from both plus
        # ssh_config's IdentityFile are merged.
        constructor_kwargs = connect_kwargs or {}
        config_kwargs = dict(self.config.connect_kwargs)
        constructor_keys = constructor_kwargs.get("key_filename", [])
        config_keys = config_kwargs.get("key_filename", [])
        ssh_config_keys = self.ssh_config.get("identityfile", [])
        final_kwargs = deepcopy(constructor_kwargs or config_kwargs)
        final_keys = []
        for value in (config_keys, constructor_keys, ssh_config_keys):
            if isinstance(value, str):
                value = [value]
            final_keys.extend(value)
        if final_keys:
            final_kwargs["key_filename"] = final_keys
        return final_kwargs

    def derive_shorthand(self, host_string):
        user_hostport = host_string.rsplit("@", 1)
        hostport = user_hostport.pop()
        user = user_hostport[0] if user_hostport and user_hostport[0] else None
        # IPv6: can't reliably tell where addr ends and port begins, so don't
        # try (and don't bother adding special syntax either, user should avoid
        # this situation by using port=).
        if hostport.count(":") > 1:
            host = hostport
            port = None
        else:
            host_port = hostport.rsplit(":", 1)
            host = host_port.pop(0) or None
            port = host_port[0] if host_port and host_port[0] else None
        if port is not None:
            port = int(port)
        return {"user": user, "host": host, "port": port}

    def __repr__(self):
        bits = [("host", self.host)]
        if self.user != self.config.user:
            bits.append(("user", self.user))
        if self.port != self.config.port:
            bits.append(("port", self.port))
        return "<Connection {}>".format(
            " ".join("{}={}".format(*x) for x in bits)
        )

    def _identity(self):
        return (self.host, self.user, self.port)

    def __eq__(self, other):
        if not isinstance(other, Connection):
            return False
        return self._identity() == other._identity()

    def __lt__(self, other):
        return self._identity() < other._identity()

    def __hash__(self):
        return hash(self._identity())

    @property
    def is_connected(self):
        """
        Whether or not this connection is actually open.
        """
        return self.transport.active if self.transport else False

    def open(self):
        """
        Initiate an SSH connection to the host/port this object is bound to.

        Does nothing if already connected.

        :returns:
            The result of the internal call to
            `SSHClient.connect <paramiko.client.SSHClient.connect>`.

        :raises ValueError:
            if ``connect_kwargs`` duplicates one of the values this class
            passes itself (``hostname``, ``port``, ``username`` or
            ``timeout``).
        """
        if self.is_connected:
            return
        err = "Refusing to be ambiguous: connect() kwarg '{}' was given both via regular arg and via connect_kwargs!"  # noqa
        for key in ("hostname", "port", "username"):
            if key in self.connect_kwargs:
                raise ValueError(err.format(key))
        if "timeout" in self.connect_kwargs and self.connect_timeout is not None:
            raise ValueError(err.format("timeout"))
        kwargs = dict(
            self.connect_kwargs,
            username=self.user,
            hostname=self.host,
            port=self.port,
        )
        if self.connect_timeout:
            kwargs["timeout"] = self.connect_timeout
        if "key_filename" in kwargs and not kwargs["key_filename"]:
            del kwargs["key_filename"]
        result = self.client.connect(**kwargs)
        self.transport = self.client.get_transport()
        return result

    def close(self):
        """
        Terminate the network connection to the remote end, if open.

        If no connection is open, this method does nothing.
        """
        if self.is_connected:
            self.client.close()
        self.transport = None

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    @opens
    def create_session(self, mode, target):
        """
        Start a remote ``scp`` for ``target`` and return its `.RemoteSession`.

        :param str mode:
            ``"source"`` to send ``target`` to us, ``"sink"`` to receive a
            file into directory ``target``.
        :param str target: Remote path; quoted for the remote shell here.
        """
        command = scp_command(mode, target, self.config)
        return RemoteSession(self.transport, command, timeout=self.connect_timeout)

    def read_file(self, path):
        """
        Download remote ``path`` as a streaming `.File`.

        See `.read_file` for details.
        """
        return Transfer(self).read(path)

    def write_file(self, directory, file):
        """
        Upload `.File` ``file`` into remote ``directory``.

        See `.write_file` for details.

        :returns: A list of remote warning messages.
        """
        return Transfer(self).write(directory, file)

    def get(self, *args, **kwargs):
        """
        Get a remote file to the local filesystem or file-like object.

        Simply a wrapper for `.Transfer.get`. Please see its documentation for
        all details.
        """
        return Transfer(self).get(*args, **kwargs)

    def put(self, *args, **kwargs):
        """
        Put a local file (or file-like object) to the remote filesystem.

        Simply a wrapper for `.Transfer.put`. Please see its documentation for
        all details.
        """
        return Transfer(self).put(*args, **kwargs)

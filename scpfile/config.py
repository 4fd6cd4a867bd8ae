import errno
import os

from invoke.config import Config as InvokeConfig, merge_dicts
from paramiko.config import SSHConfig

from .download import DEFAULT_CHUNK_SIZE
from .pipe import DEFAULT_CAPACITY
from .util import get_local_user, debug


class Config(InvokeConfig):
    """
    An `invoke.config.Config` subclass with extra scpfile-related behavior.

    This class behaves like `invoke.config.Config` in every way, with the
    following exceptions:

    - its `global_defaults` staticmethod has been extended to add connection
      and ``scp`` settings (see its documentation, below, for details);
    - it triggers loading of scpfile-specific env vars (e.g.
      ``SCPFILE_SCP_CHUNK_SIZE=4096``) and filenames (e.g.
      ``/etc/scpfile.yaml`` instead of ``/etc/invoke.yaml``);
    - it extends the API to account for loading ``ssh_config`` files (which are
      stored as additional attributes and have no direct relation to the
      regular config data/hierarchy.)

    Intended for use with `.Connection`, as using vanilla
    `invoke.config.Config` objects would require users to manually define
    ``port``, ``user`` and so forth.
    """

    prefix = "scpfile"

    def __init__(self, *args, **kwargs):
        """
        Creates a new scpfile-specific config object.

        For most API details, see `invoke.config.Config.__init__`. Parameters
        new to this subclass are listed below.

        :param ssh_config:
            Custom/explicit `paramiko.config.SSHConfig` object. If given,
            prevents loading of any SSH config files. Default: ``None``.

        :param str runtime_ssh_path:
            Runtime SSH config path to load. Prevents loading of system/user
            files if given. Default: ``None``.

        :param str system_ssh_path:
            Location of the system-level SSH config file. Default:
            ``/etc/ssh/ssh_config``.

        :param str user_ssh_path:
            Location of the user-level SSH config file. Default:
            ``~/.ssh/config``.

        :param bool lazy:
            Has the same meaning as the parent class' ``lazy``, but
            additionally controls whether SSH config file loading is deferred
            (requires manually calling `load_ssh_config` sometime.)
        """
        ssh_config = kwargs.pop("ssh_config", None)
        lazy = kwargs.get("lazy", False)
        self.set_runtime_ssh_path(kwargs.pop("runtime_ssh_path", None))
        system_path = kwargs.pop("system_ssh_path", "/etc/ssh/ssh_config")
        self._set(_system_ssh_path=system_path)
        self._set(_user_ssh_path=kwargs.pop("user_ssh_path", "~/.ssh/config"))
        explicit = ssh_config is not None
        self._set(_given_explicit_object=explicit)
        if ssh_config is None:
            ssh_config = SSHConfig()
        self._set(base_ssh_config=ssh_config)
        super().__init__(*args, **kwargs)
        if not lazy:
            self.load_ssh_config()

    def set_runtime_ssh_path(self, path):
        """
        Configure a runtime-level SSH config file path.

        If set, this will cause `load_ssh_config` to skip system and user
        files, as OpenSSH does.
        """
        self._set(_runtime_ssh_path=path)

    def load_ssh_config(self):
        """
        Load SSH config file(s) from disk.

        Also (beforehand) ensures that Invoke-level config re: runtime SSH
        config file paths, is accounted for.
        """
        if self.ssh_config_path:
            self._runtime_ssh_path = self.ssh_config_path
        if not self._given_explicit_object:
            self._load_ssh_files()

    def _load_ssh_files(self):
        """
        Trigger loading of configured SSH config file paths.

        Expects that ``base_ssh_config`` has already been set to an
        `~paramiko.config.SSHConfig` object.

        :returns: ``None``.
        """
        if self._runtime_ssh_path is not None:
            path = self._runtime_ssh_path
            # Blow up like open() would; _load_ssh_file itself is lenient.
            if not os.path.exists(path):
                raise FileNotFoundError(
                    errno.ENOENT, "No such file or directory", path
                )
            self._load_ssh_file(os.path.expanduser(path))
        elif self.load_ssh_configs:
            for path in (self._user_ssh_path, self._system_ssh_path):
                self._load_ssh_file(os.path.expanduser(path))

    def _load_ssh_file(self, path):
        """
        Attempt to open and parse an SSH config file at ``path``.

        Does nothing if ``path`` is not a path to a valid file.

        :returns: ``None``.
        """
        if os.path.isfile(path):
            old_rules = len(self.base_ssh_config.get_hostnames())
            with open(path) as fd:
                self.base_ssh_config.parse(fd)
            new_rules = len(self.base_ssh_config.get_hostnames())
            msg = "Loaded {} new ssh_config host patterns from {!r}"
            debug(msg.format(new_rules - old_rules, path))
        else:
            debug("File not found, skipping")

    @staticmethod
    def global_defaults():
        """
        Default configuration values and behavior toggles.

        scpfile only extends this method in order to add some settings to
        Invoke's `~invoke.config.Config.global_defaults`:

        - ``connect_kwargs``: keyword arguments handed to
          `~paramiko.client.SSHClient.connect`. Default: ``{}``.
        - ``load_ssh_configs``: whether to load user/system SSH config files.
          Default: ``True``.
        - ``port``: SSH port. Default: ``22``.
        - ``ssh_config_path``: runtime SSH config file path. Default: ``None``.
        - ``timeouts.connect``: connect timeout in seconds. Default: ``None``.
        - ``user``: login user. Default: the local user.
        - ``scp.chunk_size``: largest single read while streaming content.
          Default: ``1024``.
        - ``scp.buffer_size``: bytes a download may buffer ahead of its
          reader. Default: ``65536``.
        - ``scp.source_command``/``scp.sink_command``: remote command
          prefixes for downloads and uploads. Default: ``"scp -qf"`` and
          ``"scp -t"``.
        """
        defaults = InvokeConfig.global_defaults()
        ours = {
            "connect_kwargs": {},
            "load_ssh_configs": True,
            "port": 22,
            "scp": {
                "buffer_size": DEFAULT_CAPACITY,
                "chunk_size": DEFAULT_CHUNK_SIZE,
                "sink_command": "scp -t",
                "source_command": "scp -qf",
            },
            "ssh_config_path": None,
            "timeouts": {"connect": None},
            "user": get_local_user(),
        }
        merge_dicts(defaults, ours)
        return defaults

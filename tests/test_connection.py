from unittest.mock import patch

import pytest
from invoke.config import Config as InvokeConfig
from paramiko.config import SSHConfig

from scpfile import Config, Connection, File

SSH_CONFIG = """
Host myalias
    Hostname real.example.com
    User bob
    Port 2222
    ConnectTimeout 15
    IdentityFile /home/bob/.ssh/special
"""


def _config(text="", **overrides):
    return Config(
        lazy=True,
        ssh_config=SSHConfig.from_text(text),
        overrides=overrides,
    )


@pytest.fixture
def client():
    with patch("scpfile.connection.SSHClient") as SSHClient:
        client = SSHClient.return_value
        client.get_transport.return_value.active = True
        yield client


class TestInit:
    def test_host_only(self):
        cxn = Connection("web1", config=_config(user="deploy"))
        assert cxn.host == "web1"
        assert cxn.original_host == "web1"
        assert cxn.user == "deploy"
        assert cxn.port == 22

    def test_shorthand(self):
        cxn = Connection("admin@web1:2200", config=_config())
        assert (cxn.user, cxn.host, cxn.port) == ("admin", "web1", 2200)

    @pytest.mark.parametrize(
        "host,kwargs",
        [("admin@web1", {"user": "root"}), ("web1:2200", {"port": 22})],
    )
    def test_shorthand_and_kwarg_conflict(self, host, kwargs):
        with pytest.raises(ValueError):
            Connection(host, config=_config(), **kwargs)

    def test_ipv6_is_not_split_on_colons(self):
        cxn = Connection("::1", config=_config())
        assert cxn.host == "::1"
        assert cxn.port == 22

    def test_ssh_config_values_are_used(self):
        cxn = Connection("myalias", config=_config(SSH_CONFIG))
        assert cxn.original_host == "myalias"
        assert cxn.host == "real.example.com"
        assert cxn.user == "bob"
        assert cxn.port == 2222
        assert cxn.connect_timeout == 15
        assert cxn.connect_kwargs["key_filename"] == ["/home/bob/.ssh/special"]

    def test_kwargs_beat_ssh_config(self):
        cxn = Connection(
            "myalias", user="alice", port=22, connect_timeout=3,
            config=_config(SSH_CONFIG),
        )
        assert (cxn.user, cxn.port, cxn.connect_timeout) == ("alice", 22, 3)

    def test_key_filenames_are_merged(self):
        config = _config(SSH_CONFIG, connect_kwargs={"key_filename": "/cfg/key"})
        cxn = Connection(
            "myalias",
            config=config,
            connect_kwargs={"key_filename": ["/arg/key"]},
        )
        assert cxn.connect_kwargs["key_filename"] == [
            "/cfg/key",
            "/arg/key",
            "/home/bob/.ssh/special",
        ]

    def test_vanilla_invoke_config_is_upgraded(self):
        cxn = Connection("web1", config=InvokeConfig(lazy=True))
        assert isinstance(cxn.config, Config)
        assert cxn.config.scp.chunk_size == 1024

    def test_repr(self):
        cxn = Connection("web1", port=2200, config=_config(user="deploy"))
        assert repr(cxn) == "<Connection host=web1 port=2200>"

    def test_equality(self):
        config = _config(user="deploy")
        assert Connection("web1", config=config) == Connection("web1", config=config)
        assert Connection("web1", config=config) != Connection("web2", config=config)


class TestOpenClose:
    def test_open_connects_client(self, client):
        cxn = Connection("deploy@web1", connect_timeout=9, config=_config())
        assert not cxn.is_connected
        cxn.open()
        client.connect.assert_called_once_with(
            username="deploy", hostname="web1", port=22, timeout=9
        )
        assert cxn.transport is client.get_transport.return_value
        assert cxn.is_connected

    def test_open_is_noop_when_connected(self, client):
        cxn = Connection("web1", config=_config())
        cxn.open()
        cxn.open()
        assert client.connect.call_count == 1

    @pytest.mark.parametrize("key", ["hostname", "port", "username"])
    def test_ambiguous_connect_kwargs(self, client, key):
        cxn = Connection("web1", config=_config(), connect_kwargs={key: "x"})
        with pytest.raises(ValueError):
            cxn.open()

    def test_ambiguous_timeout(self, client):
        cxn = Connection(
            "web1", connect_timeout=5, config=_config(),
            connect_kwargs={"timeout": 5},
        )
        with pytest.raises(ValueError):
            cxn.open()

    def test_close(self, client):
        with Connection("web1", config=_config()) as cxn:
            cxn.open()
        client.close.assert_called_once_with()
        assert cxn.transport is None

    def test_close_without_open(self, client):
        Connection("web1", config=_config()).close()
        assert not client.close.called


class TestTransfers:
    @patch("scpfile.connection.RemoteSession")
    def test_create_session_opens_and_runs_scp(self, RemoteSession, client):
        cxn = Connection("web1", connect_timeout=4, config=_config())
        session = cxn.create_session("source", "/etc/my hosts")
        client.connect.assert_called_once()
        RemoteSession.assert_called_once_with(
            cxn.transport, "scp -qf '/etc/my hosts'", timeout=4
        )
        assert session is RemoteSession.return_value

    @patch("scpfile.connection.Transfer")
    def test_read_file_delegates(self, Transfer):
        cxn = Connection("web1", config=_config())
        result = cxn.read_file("/etc/hosts")
        Transfer.assert_called_once_with(cxn)
        Transfer.return_value.read.assert_called_once_with("/etc/hosts")
        assert result is Transfer.return_value.read.return_value

    @patch("scpfile.connection.Transfer")
    def test_write_file_delegates(self, Transfer):
        cxn = Connection("web1", config=_config())
        f = File("a", 0, 0o644, None)
        cxn.write_file("/tmp", f)
        Transfer.return_value.write.assert_called_once_with("/tmp", f)

    @patch("scpfile.connection.Transfer")
    def test_get_and_put_delegate(self, Transfer):
        cxn = Connection("web1", config=_config())
        cxn.get("remote", local="local", preserve_mode=False)
        cxn.put("local", "remote/")
        Transfer.return_value.get.assert_called_once_with(
            "remote", local="local", preserve_mode=False
        )
        Transfer.return_value.put.assert_called_once_with("local", "remote/")

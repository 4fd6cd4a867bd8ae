from io import BytesIO
from unittest.mock import Mock

import pytest

from scpfile import File, write_file
from scpfile.exceptions import ProtocolViolation, RemoteError, TransferIOError
from scpfile.testing.base import MockConnection, MockSession, error, ok, warning


class RecordingStream(BytesIO):
    def __init__(self, data):
        super().__init__(data)
        self.sizes = []

    def read(self, size=-1):
        self.sizes.append(size)
        return super().read(size)


def hello():
    return File("hello.txt", 13, 0o644, BytesIO(b"Hello, world!"))


class TestWriteFile:
    def test_sends_directive_then_content(self):
        session = MockSession(ok() + ok())
        with MockConnection(session) as cxn:
            assert write_file(cxn, "/tmp", hello()) == []
        assert session.sent == b"C0644 13 hello.txt\nHello, world!"

    def test_runs_sink_session_for_directory(self):
        session = MockSession(ok() + ok())
        with MockConnection(session) as cxn:
            write_file(cxn, "/srv/my app", hello())
        cxn.create_session.assert_called_once_with("sink", "/srv/my app")

    def test_warning_then_ok_is_collected(self):
        session = MockSession(warning("disk low") + ok())
        with MockConnection(session) as cxn:
            assert write_file(cxn, "/tmp", hello()) == ["disk low"]
        # Content was sent exactly once.
        assert session.sent.count(b"Hello, world!") == 1

    def test_warnings_from_both_checkpoints_keep_order(self):
        session = MockSession(warning(" first ") + warning("second\r"))
        with MockConnection(session) as cxn:
            warnings = write_file(cxn, "/tmp", hello())
        assert warnings == ["first", "second"]

    def test_error_at_first_checkpoint_sends_no_content(self):
        session = MockSession(error("no space"))
        with MockConnection(session) as cxn:
            with pytest.raises(RemoteError) as info:
                write_file(cxn, "/tmp", hello())
        assert info.value.message == "no space"
        assert session.sent == b"C0644 13 hello.txt\n"

    def test_error_after_warning_discards_warnings(self):
        session = MockSession(warning("disk low") + error("disk full\n"))
        with MockConnection(session) as cxn:
            with pytest.raises(RemoteError) as info:
                write_file(cxn, "/tmp", hello())
        assert info.value.message == "disk full"
        assert not hasattr(info.value, "warnings")

    def test_error_at_second_checkpoint(self):
        session = MockSession(ok() + error("write failed"))
        with MockConnection(session) as cxn:
            with pytest.raises(RemoteError):
                write_file(cxn, "/tmp", hello())
        assert session.sent.endswith(b"Hello, world!")

    def test_unexpected_status_byte(self):
        session = MockSession(b"\x07")
        with MockConnection(session) as cxn:
            with pytest.raises(ProtocolViolation):
                write_file(cxn, "/tmp", hello())

    def test_remote_hangs_up(self):
        session = MockSession(b"")
        with MockConnection(session) as cxn:
            with pytest.raises(TransferIOError):
                write_file(cxn, "/tmp", hello())

    def test_sends_exactly_declared_size(self):
        f = File("a.bin", 4, 0o600, BytesIO(b"abcdefgh"))
        session = MockSession(ok() + ok())
        with MockConnection(session) as cxn:
            write_file(cxn, "/tmp", f)
        assert session.sent == b"C0600 4 a.bin\nabcd"
        # The rest of the content was left alone.
        assert f.read() == b"efgh"

    def test_short_content_fails(self):
        f = File("a.bin", 10, 0o600, BytesIO(b"abc"))
        session = MockSession(ok() + ok())
        with MockConnection(session) as cxn:
            with pytest.raises(TransferIOError):
                write_file(cxn, "/tmp", f)

    def test_empty_file(self):
        session = MockSession(ok() + ok())
        with MockConnection(session) as cxn:
            write_file(cxn, "/tmp", File("empty", 0, 0o644, BytesIO()))
        assert session.sent == b"C0644 0 empty\n"

    def test_content_is_chunked(self):
        content = b"x" * 2500
        stream = RecordingStream(content)
        session = MockSession(ok() + ok())
        with MockConnection(session) as cxn:
            write_file(cxn, "/tmp", File("x", 2500, 0o644, stream), chunk_size=1000)
        assert stream.sizes == [1000, 1000, 500]
        assert session.sent.endswith(content)

    def test_local_read_failure_becomes_transfer_error(self):
        content = Mock(read=Mock(side_effect=OSError("disk on fire")))
        session = MockSession(ok() + ok())
        with MockConnection(session) as cxn:
            with pytest.raises(TransferIOError):
                write_file(cxn, "/tmp", File("x", 1, 0o644, content))

    def test_session_closed_on_success(self):
        session = MockSession(ok() + ok())
        with MockConnection(session) as cxn:
            write_file(cxn, "/tmp", hello())
        assert session.close_calls == 1

    def test_remote_write_failure_becomes_transfer_error(self):
        session = MockSession(ok() + ok())
        real_write = session.stdin.write
        calls = []

        def write(data):
            calls.append(data)
            # Directive and first chunk go through, then the channel drops.
            if len(calls) > 2:
                raise ConnectionResetError("connection reset by peer")
            return real_write(data)

        session.stdin.write = write
        with MockConnection(session) as cxn:
            with pytest.raises(TransferIOError) as info:
                write_file(cxn, "/tmp", hello(), chunk_size=5)
        assert isinstance(info.value.__cause__, ConnectionResetError)
        assert session.sent == b"C0644 13 hello.txt\nHello"

import threading

import pytest
from websockets.exceptions import ConnectionClosedError, InvalidURI
from websockets.frames import Close

from zkpassport_sdk.transport import TransportError, TransportHandlers, WebSocketTransport


class FakeConnection:
    def __init__(self, frames, failure=None) -> None:
        self.frames = list(frames)
        self.failure = failure
        self.sent: list[str] = []
        self.closed = False

    def __iter__(self):
        yield from self.frames
        if self.failure is not None:
            raise self.failure

    def send(self, message: str) -> None:
        self.sent.append(message)

    def close(self) -> None:
        self.closed = True


class Recorder:
    def __init__(self) -> None:
        self.events: list[tuple] = []
        self.handlers = TransportHandlers(
            on_message=lambda raw: self.events.append(("message", raw)),
            on_open=lambda: self.events.append(("open",)),
            on_error=lambda exc: self.events.append(("error", exc)),
        )


def _transport(recorder: Recorder) -> WebSocketTransport:
    return WebSocketTransport("wss://bridge.example.com?topic=abc456", "demo.example.com", recorder.handlers)


def test_frames_are_delivered_in_order_after_open(monkeypatch: pytest.MonkeyPatch) -> None:
    recorder = Recorder()
    connection = FakeConnection(['{"method":"handshake"}', b'{"method":"encryptedMessage"}'])
    seen = {}

    def fake_connect(url, **kwargs):
        seen.update(kwargs, url=url)
        return connection

    monkeypatch.setattr("zkpassport_sdk.transport.connect", fake_connect)

    _transport(recorder)._run()

    assert seen["url"] == "wss://bridge.example.com?topic=abc456"
    assert seen["origin"] == "demo.example.com"
    assert recorder.events == [
        ("open",),
        ("message", '{"method":"handshake"}'),
        ("message", '{"method":"encryptedMessage"}'),
    ]


def test_connect_failure_is_reported_as_transport_error(monkeypatch: pytest.MonkeyPatch) -> None:
    recorder = Recorder()

    def refuse(url, **kwargs):
        raise OSError("connection refused")

    monkeypatch.setattr("zkpassport_sdk.transport.connect", refuse)

    _transport(recorder)._run()

    [(kind, exc)] = recorder.events
    assert kind == "error"
    assert isinstance(exc, TransportError)
    assert "connection refused" in str(exc)


def test_invalid_uri_is_reported(monkeypatch: pytest.MonkeyPatch) -> None:
    recorder = Recorder()

    def reject(url, **kwargs):
        raise InvalidURI(url, "not a websocket URI")

    monkeypatch.setattr("zkpassport_sdk.transport.connect", reject)

    _transport(recorder)._run()

    assert recorder.events[0][0] == "error"


def test_abnormal_close_is_reported_after_messages(monkeypatch: pytest.MonkeyPatch) -> None:
    recorder = Recorder()
    failure = ConnectionClosedError(Close(1011, "internal error"), None)
    monkeypatch.setattr("zkpassport_sdk.transport.connect", lambda url, **kwargs: FakeConnection(["frame"], failure))

    _transport(recorder)._run()

    assert [event[0] for event in recorder.events] == ["open", "message", "error"]
    assert isinstance(recorder.events[-1][1], TransportError)


def test_send_requires_an_open_connection() -> None:
    transport = _transport(Recorder())

    with pytest.raises(TransportError):
        transport.send("{}")


def test_send_and_close_use_the_live_connection(monkeypatch: pytest.MonkeyPatch) -> None:
    recorder = Recorder()
    transport = _transport(recorder)
    connection = FakeConnection([])

    def send_during_open() -> None:
        transport.send('{"method":"encryptedMessage"}')

    recorder.handlers.on_open = send_during_open
    monkeypatch.setattr("zkpassport_sdk.transport.connect", lambda url, **kwargs: connection)

    transport._run()
    assert connection.sent == ['{"method":"encryptedMessage"}']

    transport._connection = connection
    transport.close()

    assert connection.closed
    assert not transport.is_open
    with pytest.raises(TransportError):
        transport.send("{}")


class HeldConnection:
    """Connection whose receive loop blocks until it is closed."""

    def __init__(self) -> None:
        self.released = threading.Event()

    def __iter__(self):
        self.released.wait(5)
        return iter(())

    def send(self, message: str) -> None:
        pass

    def close(self) -> None:
        self.released.set()


def test_close_waits_for_the_reader_thread(monkeypatch: pytest.MonkeyPatch) -> None:
    opened = threading.Event()
    recorder = Recorder()
    recorder.handlers.on_open = opened.set
    monkeypatch.setattr("zkpassport_sdk.transport.connect", lambda url, **kwargs: HeldConnection())

    transport = WebSocketTransport.open("wss://bridge.example.com?topic=abc456", "demo.example.com", recorder.handlers)
    assert opened.wait(5)

    transport.close()

    assert not transport._reader.is_alive()


def test_close_from_a_handler_does_not_wait_on_itself(monkeypatch: pytest.MonkeyPatch) -> None:
    recorder = Recorder()
    holder = {}
    recorder.handlers.on_open = lambda: holder["transport"].close()
    monkeypatch.setattr("zkpassport_sdk.transport.connect", lambda url, **kwargs: HeldConnection())

    transport = WebSocketTransport("wss://bridge.example.com?topic=abc456", "demo.example.com", recorder.handlers)
    holder["transport"] = transport
    transport._reader.start()
    transport._reader.join(5)

    assert not transport._reader.is_alive()
    assert not transport.is_open

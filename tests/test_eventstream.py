import pytest
import responses

from assertoor.eventstream import (
    READY,
    Stream,
    StreamEvent,
    SubscriptionError,
    parse_events,
    subscribe,
)

URL = "http://beacon.test/eth/v1/events"


@pytest.fixture
def mocked():
    with responses.RequestsMock(assert_all_requests_are_fired=False) as rsps:
        yield rsps


def _drain(stream, count, timeout=5.0):
    return [stream.messages.get(timeout=timeout) for _ in range(count)]


def test_parse_events_full_event():
    events = list(parse_events(["event: block", "data: hello", "id: 7", ""]))
    assert events == [StreamEvent(id="7", event="block", data="hello", retry=0)]


def test_parse_events_joins_data_lines():
    events = list(parse_events(["data: a", "data: b", ""]))
    assert [event.data for event in events] == ["a\nb"]


def test_parse_events_ignores_comments_and_unknown_fields():
    events = list(parse_events([": comment", "foo: bar", "data:x", ""]))
    assert events == [StreamEvent(data="x")]


def test_parse_events_comment_only_block_not_dispatched():
    assert list(parse_events([": ping", "", ""])) == []


def test_parse_events_drops_unterminated_event():
    assert list(parse_events(["data: a"])) == []


def test_parse_events_strips_only_one_space():
    (event,) = parse_events(["data:  two", ""])
    assert event.data == " two"


def test_parse_events_retry_values():
    (valid,) = parse_events(["retry: 1500", "data: x", ""])
    (invalid,) = parse_events(["retry: abc", "data: x", ""])
    assert valid.retry == 1500
    assert invalid.retry == 0


def test_subscription_error_fields():
    error = SubscriptionError(404, "missing")
    assert error.code == 404
    assert error.message == "missing"
    assert str(error) == "404: missing"


def test_stream_delivers_events_then_eof(mocked):
    mocked.add(
        responses.GET,
        URL,
        body=b"event: block\r\ndata: {}\r\n\r\n",
        status=200,
        content_type="text/event-stream",
    )
    stream = subscribe(URL, {"X-Test": "1"}, "")
    try:
        first, second, third = _drain(stream, 3)
    finally:
        stream.close()

    assert first is READY
    assert second == StreamEvent(event="block", data="{}")
    assert isinstance(third, EOFError)
    request = mocked.calls[0].request
    assert request.headers["Accept"] == "text/event-stream"
    assert request.headers["Cache-Control"] == "no-cache"
    assert request.headers["X-Test"] == "1"
    assert "Last-Event-ID" not in request.headers
    assert stream.closed


def test_stream_sends_last_event_id(mocked):
    mocked.add(responses.GET, URL, body=b"data: x\n\n", content_type="text/event-stream")
    stream = Stream(URL, None, "41")
    try:
        _drain(stream, 2)
    finally:
        stream.close()
    assert mocked.calls[0].request.headers["Last-Event-ID"] == "41"


def test_stream_updates_retry_and_last_id(mocked):
    mocked.add(
        responses.GET,
        URL,
        body=b"retry: 5000\nid: 42\ndata: x\n\n",
        content_type="text/event-stream",
    )
    stream = Stream(URL)
    try:
        ready, event = _drain(stream, 2)
    finally:
        stream.close()
    assert ready is READY
    assert event.id == "42"
    assert stream.retry == 5.0
    assert stream.last_event_id == "42"


def test_stream_reconnects_with_last_event_id(mocked):
    mocked.add(
        responses.GET,
        URL,
        body=b"retry: 50\nid: 9\ndata: x\n\n",
        content_type="text/event-stream",
    )
    stream = Stream(URL)
    try:
        messages = _drain(stream, 4)
    finally:
        stream.close()
    assert messages[0] is READY
    assert isinstance(messages[2], EOFError)
    assert messages[3] is READY
    assert len(mocked.calls) >= 2
    assert mocked.calls[1].request.headers["Last-Event-ID"] == "9"


def test_non_200_raises_subscription_error(mocked):
    mocked.add(responses.GET, URL, body="unavailable", status=503)
    with pytest.raises(SubscriptionError) as info:
        Stream(URL)
    assert info.value.code == 503
    assert info.value.message == "unavailable"
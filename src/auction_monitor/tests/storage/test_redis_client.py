# tests/storage/test_redis_client.py
import json
from unittest.mock import MagicMock

import pytest
import redis

from auction_monitor.core.storage.redis_client import redis_engine
from cores.config import auction_consumer_group, auction_status_stream

STATUS = {
    "currentAuction": "1",
    "currentPrice": "3000000000000000000",
    "tokensRemaining": "2000000000000000000000",
}


def make_engine(callback=None, **kwargs):
    client = MagicMock()
    engine = redis_engine(data_callback=callback, redis_client=client, **kwargs)
    return engine, client


def test_consumer_group_is_created():
    engine, client = make_engine()

    client.xgroup_create.assert_called_once_with(
        auction_status_stream, auction_consumer_group, id="0", mkstream=True
    )


def test_existing_group_is_reused():
    client = MagicMock()
    client.xgroup_create.side_effect = redis.exceptions.ResponseError(
        "BUSYGROUP Consumer Group name already exists"
    )

    redis_engine(redis_client=client)


def test_other_group_errors_raise():
    client = MagicMock()
    client.xgroup_create.side_effect = redis.exceptions.ResponseError("WRONGTYPE")

    with pytest.raises(redis.exceptions.ResponseError):
        redis_engine(redis_client=client)


def test_message_is_forwarded_and_acked():
    callback = MagicMock()
    engine, client = make_engine(callback)

    engine._process_message(b"1-0", {b"data": json.dumps(STATUS).encode()})

    callback.assert_called_once_with(STATUS)
    client.xack.assert_called_once_with(
        auction_status_stream, auction_consumer_group, b"1-0"
    )


def test_malformed_message_is_dropped_but_acked():
    callback = MagicMock()
    engine, client = make_engine(callback)

    engine._process_message(b"1-0", {b"data": b"{not json"})
    engine._process_message(b"2-0", {b"other": b"{}"})
    engine._process_message(b"3-0", {b"data": b"[1, 2]"})

    callback.assert_not_called()
    assert client.xack.call_count == 3


def test_poll_once_processes_batch():
    callback = MagicMock()
    engine, client = make_engine(callback)
    client.xreadgroup.return_value = [
        (
            auction_status_stream.encode(),
            [
                (b"1-0", {b"data": json.dumps(STATUS).encode()}),
                (b"2-0", {b"data": json.dumps(STATUS).encode()}),
            ],
        )
    ]

    assert engine.poll_once() == 2
    assert callback.call_count == 2


def test_poll_once_without_messages():
    engine, client = make_engine(MagicMock())
    client.xreadgroup.return_value = []

    assert engine.poll_once() == 0


def test_replay_does_not_ack():
    callback = MagicMock()
    engine, client = make_engine(callback, replay=True)
    client.xrange.return_value = [(b"1-0", {b"data": json.dumps(STATUS).encode()})]

    engine._replay_history()

    callback.assert_called_once_with(STATUS)
    client.xack.assert_not_called()


def test_listener_loop_runs_until_stopped():
    callback = MagicMock()
    engine, client = make_engine(callback)

    def read_then_stop(*args, **kwargs):
        engine.stop()
        return [
            (
                auction_status_stream.encode(),
                [(b"1-0", {b"data": json.dumps(STATUS).encode()})],
            )
        ]

    client.xreadgroup.side_effect = read_then_stop

    engine._redis_stream_listener()

    callback.assert_called_once_with(STATUS)
    assert client.xreadgroup.call_count == 1


def test_callback_error_does_not_stop_the_batch():
    callback = MagicMock(side_effect=[ValueError("No supply cap configured"), None])
    engine, client = make_engine(callback)
    client.xreadgroup.return_value = [
        (
            auction_status_stream.encode(),
            [
                (b"1-0", {b"data": json.dumps({"currentPrice": "1"}).encode()}),
                (b"2-0", {b"data": json.dumps(STATUS).encode()}),
            ],
        )
    ]

    assert engine.poll_once() == 2

    callback.assert_called_with(STATUS)
    assert callback.call_count == 2
    assert client.xack.call_count == 2


def test_listener_survives_unexpected_errors(monkeypatch):
    monkeypatch.setattr(
        "auction_monitor.core.storage.redis_client.time.sleep", lambda _: None
    )
    callback = MagicMock()
    engine, client = make_engine(callback)
    batches = [
        RuntimeError("connection reset"),
        [(auction_status_stream.encode(), [(b"1-0", {b"data": json.dumps(STATUS).encode()})])],
    ]

    def read(*args, **kwargs):
        result = batches.pop(0)
        if not batches:
            engine.stop()
        if isinstance(result, Exception):
            raise result
        return result

    client.xreadgroup.side_effect = read

    engine._redis_stream_listener()

    callback.assert_called_once_with(STATUS)
    assert client.xreadgroup.call_count == 2


def test_status_without_auction_does_not_block_later_updates(data_manager):
    engine, client = make_engine(data_manager.update_from_realtime)
    client.xreadgroup.return_value = [
        (
            auction_status_stream.encode(),
            [
                (
                    b"1-0",
                    {b"data": json.dumps({"currentPrice": "1", "tokensRemaining": "1"}).encode()},
                ),
                (b"2-0", {b"data": json.dumps(STATUS).encode()}),
            ],
        )
    ]

    engine.poll_once()

    assert [s.auction_id for s in data_manager.window] == ["1"]
    assert client.xack.call_count == 2
    assert data_manager.get_chart_data()["current_price_eth"] == 3.0

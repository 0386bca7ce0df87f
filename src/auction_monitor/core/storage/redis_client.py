import json
import logging
import os
import socket
import time
from threading import Thread

import redis

from cores.config import (
    auction_consumer_group,
    auction_status_stream,
    redis_db,
    redis_host,
    redis_port,
)

logger = logging.getLogger(__name__)


class redis_engine:
    """
    Auction status listener on a Redis stream.

    Each stream entry carries {"data": <json status>} with currentAuction,
    currentPrice and tokensRemaining; every decoded status goes to
    data_callback.
    """

    def __init__(self, data_callback=None, replay=False, redis_client=None):
        self.replay_mode = replay

        # ----------redis stream-----------
        self.redis_client = redis_client or redis.Redis(
            host=redis_host, port=redis_port, db=redis_db
        )
        self.STREAM_NAME = auction_status_stream
        self.CONSUMER_GROUP = auction_consumer_group
        self.CONSUMER_NAME = f"consumer_{socket.gethostname()}_{os.getpid()}"

        # Create consumer group if not exists
        try:
            self.redis_client.xgroup_create(
                self.STREAM_NAME, self.CONSUMER_GROUP, id="0", mkstream=True
            )
        except redis.exceptions.ResponseError as e:
            if "BUSYGROUP" not in str(e):
                raise

        self.data_callback = data_callback
        self.running = False

    # -------------------------------------------------------------------------
    def _redis_stream_listener(self):
        logger.info(f"Starting Redis Stream consumer {self.CONSUMER_NAME}...")
        self.running = True

        # REPLAY HISTORY VIA XRANGE
        if self.replay_mode:
            self._replay_history()
            self.replay_mode = False

        # REAL-TIME CONSUMPTION
        while self.running:
            try:
                self.poll_once()
            except KeyboardInterrupt:
                logger.info("Stopping Redis Stream listener...")
                break
            except Exception as e:
                logger.error(f"Redis Stream error: {e}", exc_info=True)
                time.sleep(5)

        logger.info("Redis Stream listener stopped")

    def _replay_history(self):
        logger.info(">>> Replaying stored auction status messages via XRANGE ...")
        try:
            all_history = self.redis_client.xrange(self.STREAM_NAME, min="-", max="+")
        except redis.exceptions.RedisError as e:
            logger.error(f"Error during replay: {e}")
            return

        for message_id, message_data in all_history:
            self._process_message(message_id, message_data, ack=False)

        logger.info(f">>> Replay finished, {len(all_history)} messages processed")

    def poll_once(self, block_ms: int = 2000) -> int:
        """Read and process one batch of new messages, returns the count"""
        messages = self.redis_client.xreadgroup(
            self.CONSUMER_GROUP,
            self.CONSUMER_NAME,
            {self.STREAM_NAME: ">"},
            count=10,
            block=block_ms,
        )

        processed = 0
        for stream_name, message_list in messages or []:
            for message_id, message_data in message_list:
                self._process_message(message_id, message_data, ack=True)
                processed += 1
        return processed

    def _process_message(self, message_id, message_data, ack=True):
        try:
            status = json.loads(message_data[b"data"])
            if not isinstance(status, dict):
                raise ValueError(f"expected a JSON object, got {type(status).__name__}")
        except (KeyError, ValueError) as e:
            logger.warning(f"Dropping malformed message {message_id}: {e}")
            status = None

        if status is not None and self.data_callback:
            try:
                self.data_callback(status)
            except Exception as e:
                logger.error(f"Error handling message {message_id}: {e}", exc_info=True)

        # rejected entries are acked too, redelivery would not fix them
        if ack:
            self.redis_client.xack(self.STREAM_NAME, self.CONSUMER_GROUP, message_id)

    def start(self) -> Thread:
        """Run the listener in a background thread"""
        redis_thread = Thread(target=self._redis_stream_listener, daemon=True)
        redis_thread.start()
        return redis_thread

    def stop(self):
        self.running = False

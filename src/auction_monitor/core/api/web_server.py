"""
Web Server for the Auction Price Chart
Uses Flask + WebSocket to push price / volume series to the browser
"""

import asyncio
import logging
import time
from threading import Thread

from flask import Flask, jsonify, request
from flask_socketio import SocketIO, emit

from auction_monitor.core.api.data_manager import ChartDataManager
from auction_monitor.core.data.providers.coincap_rate import EthUsdRateProvider
from auction_monitor.core.storage.redis_client import redis_engine
from auction_monitor.core.utils.logger import setup_logger
from cores.config import (
    AUCTION_SUPPLY_CAPS,
    DEFAULT_TIME_WINDOW,
    TIME_WINDOWS,
    rate_refresh_seconds,
)

logger = logging.getLogger(__name__)


class AuctionChartServer:
    """Web server combining the auction status listener and a WebSocket feed"""

    def __init__(
        self,
        host="localhost",
        port=5000,
        data_manager=None,
        status_engine=None,
        rate_provider=EthUsdRateProvider,
        replay=False,
    ):
        self.app = Flask(__name__)
        self.app.config["SECRET_KEY"] = "auction_chart_secret"
        self.socketio = SocketIO(self.app, cors_allowed_origins="*")

        self.host = host
        self.port = port
        self.replay = replay

        self.data_manager = data_manager or ChartDataManager()
        self.status_engine = status_engine
        self.rate_provider = rate_provider

        self.connected_clients = set()

        self._setup_routes()
        self._setup_socket_events()

        # every recomputation is broadcast to the browsers
        self.data_manager.subscribe(self._broadcast_chart)

    def _broadcast_chart(self, chart_data):
        self.socketio.emit("chart_update", chart_data)
        logger.debug(
            f"Broadcast {len(chart_data['times'])} points "
            f"to {len(self.connected_clients)} clients"
        )

    def _setup_routes(self):
        """Setup Flask routes"""

        @self.app.route("/api/chart")
        def get_chart():
            return jsonify(self.data_manager.get_chart_data())

        @self.app.route("/api/time-windows")
        def get_time_windows():
            return jsonify(
                {
                    "selected": self.data_manager.time_window.name,
                    "windows": [spec.to_dict() for spec in TIME_WINDOWS.values()],
                    "supply_caps": AUCTION_SUPPLY_CAPS.to_dict(),
                }
            )

        @self.app.route("/api/time-window/<name>", methods=["POST"])
        def change_time_window(name):
            try:
                self.data_manager.change_time_window(name)
            except ValueError as e:
                return jsonify({"error": str(e)}), 400
            return jsonify(self.data_manager.get_chart_data())

        @self.app.route("/api/rate")
        def get_rate():
            return jsonify({"ETH_USD": self.data_manager.eth_usd_rate})

    def _setup_socket_events(self):
        """Setup WebSocket event handlers"""

        @self.socketio.on("connect")
        def handle_connect(auth=None):
            logger.info(f"Client connected: {request.sid}")
            self.connected_clients.add(request.sid)

            emit("chart_update", self.data_manager.get_chart_data())

        @self.socketio.on("disconnect")
        def handle_disconnect(*args):
            logger.info(f"Client disconnected: {request.sid}")
            self.connected_clients.discard(request.sid)

        @self.socketio.on("change_time_window")
        def handle_change_time_window(data):
            window = (data or {}).get("window")
            if not window:
                emit("error", {"message": "No time window specified"})
                return

            try:
                self.data_manager.change_time_window(window)
            except ValueError as e:
                emit("error", {"message": str(e)})

    # ------------------------------------------------------ background ----
    def _rate_loop(self):
        while True:
            rate = asyncio.run(self.rate_provider.fetch_rate())
            if rate is not None:
                self.data_manager.update_eth_usd_rate(rate)
            time.sleep(rate_refresh_seconds)

    def start_rate_poller(self):
        rate_thread = Thread(target=self._rate_loop, daemon=True)
        rate_thread.start()
        return rate_thread

    def start_status_listener(self):
        """Start the auction status listener in a background thread"""
        if self.status_engine is None:
            self.status_engine = redis_engine(
                data_callback=self.data_manager.update_from_realtime,
                replay=self.replay,
            )
        return self.status_engine.start()

    def run(self, debug=False):
        """Run the web server"""
        logger.info(f"Starting Auction Chart server on {self.host}:{self.port}")

        self.data_manager.retrieve_data()
        self.start_status_listener()
        self.start_rate_poller()

        self.socketio.run(
            self.app,
            host=self.host,
            port=self.port,
            debug=debug,
            allow_unsafe_werkzeug=True,
        )


def main():
    """Main entry point"""
    import argparse

    parser = argparse.ArgumentParser(description="Auction Price Chart server")
    parser.add_argument("--host", default="localhost", help="Host to bind to")
    parser.add_argument("--port", type=int, default=5000, help="Port to bind to")
    parser.add_argument("--debug", action="store_true", help="Enable debug mode")
    parser.add_argument(
        "--window",
        default=DEFAULT_TIME_WINDOW,
        choices=list(TIME_WINDOWS),
        help="Initial time window",
    )
    parser.add_argument(
        "--replay", action="store_true", help="Replay stored auction status first"
    )

    args = parser.parse_args()

    setup_logger(
        "auction_monitor", level=logging.DEBUG if args.debug else logging.INFO
    )

    server = AuctionChartServer(
        host=args.host,
        port=args.port,
        data_manager=ChartDataManager(time_window=args.window),
        replay=args.replay,
    )
    server.run(debug=args.debug)


if __name__ == "__main__":
    main()

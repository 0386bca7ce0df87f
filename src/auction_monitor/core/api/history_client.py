"""
Client for the auction history endpoint
GET {met_api_url}/history?from=<unix s>&to=<unix s> -> JSON array of snapshots
"""

import logging
from typing import List

import requests
from pydantic import ValidationError

from auction_monitor.core.data.schema import RawSnapshot
from cores.config import history_request_timeout, met_api_url

logger = logging.getLogger(__name__)


class HistoryUnavailableError(Exception):
    """The historical query failed; previously retained data stays valid."""


class HistoryClient:
    def __init__(self, base_url: str = met_api_url, timeout: float = history_request_timeout):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = requests.Session()

    def fetch_history(self, from_ts: int, to_ts: int) -> List[RawSnapshot]:
        url = f"{self.base_url}/history"
        try:
            response = self.session.get(
                url, params={"from": from_ts, "to": to_ts}, timeout=self.timeout
            )
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"History query {url} failed: {e}")
            raise HistoryUnavailableError(str(e)) from e

        if not isinstance(data, list):
            raise HistoryUnavailableError(
                f"expected a JSON array from {url}, got {type(data).__name__}"
            )

        try:
            snapshots = [RawSnapshot.model_validate(item) for item in data]
        except ValidationError as e:
            raise HistoryUnavailableError(f"invalid snapshot in history: {e}") from e

        logger.info(f"Fetched {len(snapshots)} snapshots from {from_ts} to {to_ts}")
        return snapshots

import concurrent.futures

import pytest

from auction_monitor.core.api.data_manager import ChartDataManager
from auction_monitor.core.api.history_client import HistoryUnavailableError
from auction_monitor.core.data.schema import RawSnapshot

NOW = 1_700_000_000


class ManualExecutor:
    """Executor whose jobs only start and finish when the test says so"""

    def __init__(self):
        self.jobs = []

    def submit(self, fn, *args, **kwargs):
        future = concurrent.futures.Future()
        self.jobs.append((fn, args, kwargs, future))
        return future

    def start(self, index):
        return self.jobs[index][3].set_running_or_notify_cancel()

    def finish(self, index):
        fn, args, kwargs, future = self.jobs[index]
        if not future.running() and not self.start(index):
            return
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)

    def shutdown(self, wait=True, cancel_futures=False):
        pass


class FakeClock:
    def __init__(self, now=NOW):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FakeHistoryClient:
    """Answers by requested range length, so each window gets its own batch"""

    def __init__(self):
        self.batches = {}
        self.calls = []

    def fetch_history(self, from_ts, to_ts):
        self.calls.append((from_ts, to_ts))
        batch = self.batches.get(to_ts - from_ts)
        if isinstance(batch, Exception):
            raise batch
        if batch is None:
            raise HistoryUnavailableError("no data for range")
        return batch


@pytest.fixture
def executor():
    return ManualExecutor()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def history_client():
    return FakeHistoryClient()


@pytest.fixture
def data_manager(history_client, executor, clock):
    return ChartDataManager(
        history_client=history_client, executor=executor, clock=clock
    )


@pytest.fixture
def make_snapshot():
    def _make(auction, sold, t, price=10**18):
        cap = 8_000_000 if auction == "0" else 2_880
        return RawSnapshot(
            auction_id=auction,
            current_price=price,
            tokens_remaining=(cap - sold) * 10**18,
            timestamp=t,
        )

    return _make

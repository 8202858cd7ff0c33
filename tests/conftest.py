import asyncio

import pytest

from wcs_toolbox.core.locator import ServiceLocator


@pytest.fixture(autouse=True)
def reset_locator():
    """Each test gets a fresh ServiceLocator singleton."""
    ServiceLocator.reset()
    yield
    ServiceLocator.reset()


@pytest.fixture
def wait_until():
    """Poll a predicate on the running loop until it holds or the timeout expires."""
    async def _wait(predicate, timeout: float = 5.0, interval: float = 0.01):
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                raise AssertionError("Condition not met before timeout")
            await asyncio.sleep(interval)
    return _wait


class GatedHandler:
    """
    Async handler whose invocations block until released by key.

    The payload carries only plain data ({"n": key, "fail": msg}); the gates
    live on the handler because payloads are deep-copied on submission.
    """

    def __init__(self):
        self.gates = {}
        self.started = []
        self.finished = []

    def gate(self, key) -> asyncio.Event:
        return self.gates.setdefault(key, asyncio.Event())

    def release(self, key):
        self.gate(key).set()

    async def run(self, data, progress):
        key = data["n"]
        self.started.append(key)
        for value in data.get("progress", []):
            progress(value)
        await self.gate(key).wait()
        self.finished.append(key)
        if data.get("fail"):
            raise RuntimeError(data["fail"])
        return {"n": key}


@pytest.fixture
def gated_handler():
    return GatedHandler()

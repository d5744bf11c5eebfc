import asyncio

import pytest

from core.store import Store


@pytest.fixture
def run_store():
    """Chạy một kịch bản async với Store đang xử lý action, trả về store."""

    def _run(client, scenario, state=None, on_change=None):
        async def main():
            store = Store(client, state=state, on_change=on_change)
            runner = asyncio.create_task(store.run())
            try:
                await scenario(store)
            finally:
                runner.cancel()
            return store

        return asyncio.run(main())

    return _run

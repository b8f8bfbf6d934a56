import asyncio


class CancellationToken:
    """Cooperative cancellation signal for a single chat call.

    The route sets it when the client disconnects; the decoder races it
    against the pending chunk read.
    """

    def __init__(self):
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()

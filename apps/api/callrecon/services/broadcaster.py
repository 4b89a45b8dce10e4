import asyncio
from collections.abc import Awaitable, Callable

import structlog

from callrecon.models.call_session import CallSession

Subscriber = Callable[[dict], Awaitable[None]]


class CallBroadcaster:
    """In-process fan-out of call updates to live subscribers.

    Publishing only schedules the delivery; subscribers run after the
    webhook response is on its way, and their failures are logged.
    """

    def __init__(self) -> None:
        self._subscribers: list[Subscriber] = []
        self._pending: set[asyncio.Task] = set()

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        self._subscribers.append(subscriber)

        def unsubscribe() -> None:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(
        self, call_session: CallSession, logger: structlog.typing.FilteringBoundLogger
    ) -> None:
        message = {
            "type": "call.updated",
            "tenant_id": str(call_session.tenant_id),
            "call_session_id": str(call_session.id),
            "session_id": call_session.session_id,
            "token": call_session.token,
            "status": call_session.status,
            "duration_seconds": call_session.duration_seconds,
        }
        fanout = self._fanout(message, logger)
        try:
            task = asyncio.create_task(fanout)
        except RuntimeError as exc:
            fanout.close()
            logger.error("call_update_broadcast_failed", token=call_session.token, error=str(exc))
            return
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def _fanout(self, message: dict, logger: structlog.typing.FilteringBoundLogger) -> None:
        for subscriber in list(self._subscribers):
            try:
                await subscriber(message)
            except Exception as exc:
                logger.error(
                    "call_update_subscriber_failed",
                    token=message["token"],
                    error=str(exc),
                )
        logger.info(
            "call_update_broadcast",
            token=message["token"],
            status=message["status"],
            subscribers=len(self._subscribers),
        )


broadcaster = CallBroadcaster()


def get_broadcaster() -> CallBroadcaster:
    return broadcaster

import inspect
import logging
from typing import Any, Awaitable, Callable, List, Optional, Union
from streamroute.core.config import RouterConfig
from streamroute.core.errors import HandlerContractError, StoreError
from streamroute.core.interfaces import ILogStore
from streamroute.core.models import AckResult, DrainSignal, Message

logger = logging.getLogger(__name__)

# Receives one page of messages, returns a truthy value once they are processed
MessageHandler = Callable[[List[Message]], Union[Any, Awaitable[Any]]]

HISTORY_START = "0"


def check_handler(handler: Optional[MessageHandler]):
    """Raises HandlerContractError unless handler can be called with one page."""
    if handler is None:
        raise HandlerContractError("No message handler supplied")
    if not callable(handler):
        raise HandlerContractError(f"Message handler {handler!r} is not callable")
    try:
        inspect.signature(handler).bind([])
    except TypeError as e:
        raise HandlerContractError(
            f"Message handler {handler!r} cannot accept a page of messages: {e}"
        )
    except ValueError:
        # Builtins without an introspectable signature
        pass


class AckConsumer:
    """Drains a consumer's backlog: read a page, handle it, ack it, repeat.

    Nothing is acknowledged unless the handler reported success for the page
    it was given. A falsy return stops the loop and leaves the page pending.
    Exceptions raised by the handler propagate to the caller.
    """

    def __init__(self, store: ILogStore, config: RouterConfig):
        self.store = store
        self.config = config

    async def _handle(self, handler: MessageHandler, page: List[Message]) -> bool:
        result = handler(page)
        if inspect.isawaitable(result):
            result = await result
        return bool(result)

    async def consume(
        self, consumer: str, handler: Optional[MessageHandler]
    ) -> AckResult:
        cfg = self.config
        result = AckResult()

        try:
            check_handler(handler)
        except HandlerContractError as e:
            logger.warning(f"Not consuming for {consumer}: {e}")
            result.signal = DrainSignal.ERROR
            result.error = str(e)
            return result

        start = HISTORY_START
        while True:
            try:
                page = await self.store.read_group_from(
                    cfg.stream, cfg.group, consumer, start, cfg.batch_size
                )
            except StoreError as e:
                logger.exception(f"Consumption stopped for {consumer}")
                result.signal = DrainSignal.ERROR
                result.error = str(e)
                return result

            if not page:
                result.signal = DrainSignal.EXHAUSTED
                return result

            result.pages += 1
            if not await self._handle(handler, page):
                logger.info(
                    f"Handler rejected {len(page)} messages for {consumer}; "
                    "leaving them pending"
                )
                result.signal = DrainSignal.ERROR
                result.error = "handler rejected page"
                return result

            ids = [msg.id for msg in page]
            try:
                acked = await self.store.ack(cfg.stream, cfg.group, ids)
            except StoreError as e:
                logger.exception(f"Ack failed for {consumer}")
                result.signal = DrainSignal.ERROR
                result.error = str(e)
                return result

            result.success_count += acked or 0
            start = ids[-1]
            logger.debug(f"Acked {acked}/{len(ids)} messages for {consumer}")

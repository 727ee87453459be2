from collections.abc import Iterable

from sqlalchemy.orm import Session

from lendstate.context import LendingContext
from lendstate.deployments import EthereumMainnetCompoundV2, LendingDeployment
from lendstate.events import LendingEvent
from lendstate.exceptions import LendstateError, LendstateValueError, ProtocolNotFound
from lendstate.fixed_point import decimal_context
from lendstate.handlers import EVENT_HANDLERS
from lendstate.introspection import MarketReader
from lendstate.logging import logger
from lendstate.types import PricingMode


class LendingStateEngine:
    """
    Applies lending events to the state store, one at a time.

    Each event is a unit of work: all of its changes are committed together, or all are rolled back
    if processing fails for any reason. A failed event never prevents the next one from being
    processed.
    """

    def __init__(
        self,
        session: Session,
        reader: MarketReader,
        deployment: LendingDeployment = EthereumMainnetCompoundV2,
        mode: PricingMode = PricingMode.PRICE_AWARE,
    ) -> None:
        self.context = LendingContext(
            session=session,
            reader=reader,
            deployment=deployment,
            mode=mode,
        )

    @property
    def session(self) -> Session:
        return self.context.session

    def process_event(self, event: LendingEvent) -> bool:
        """
        Apply a single event and commit the result. Returns False if the event was rolled back.
        """

        handler = EVENT_HANDLERS.get(type(event))
        if handler is None:
            raise LendstateValueError(message=f"No handler for event type {type(event).__name__}")

        meta = event.meta
        try:
            with decimal_context():
                handler(self.context, event)
        except ProtocolNotFound as exc:
            self.session.rollback()
            logger.critical(
                f"{exc.message}. Rolled back {type(event).__name__} {meta.record_id} at block "
                f"{meta.block_number}."
            )
            return False
        except LendstateError as exc:
            self.session.rollback()
            logger.error(
                f"Failed to process {type(event).__name__} {meta.record_id} at block "
                f"{meta.block_number}: {exc.message}"
            )
            return False
        except Exception:
            self.session.rollback()
            logger.exception(
                f"Unexpected error processing {type(event).__name__} {meta.record_id} at block "
                f"{meta.block_number}"
            )
            return False

        self.session.commit()
        return True

    def process_events(self, events: Iterable[LendingEvent]) -> int:
        """
        Apply the events in (block number, log index) order. Returns the number of events that were
        committed.
        """

        return sum(
            self.process_event(event) for event in sorted(events, key=lambda e: e.meta.order_key)
        )

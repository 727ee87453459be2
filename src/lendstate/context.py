from dataclasses import dataclass, field

from sqlalchemy.orm import Session

from lendstate.deployments import LendingDeployment
from lendstate.introspection import MarketReader
from lendstate.prices import PriceResolver
from lendstate.types import PricingMode


@dataclass(slots=True)
class LendingContext:
    """Context object passed to every state component, holding the store, reader and deployment."""

    session: Session
    reader: MarketReader
    deployment: LendingDeployment
    mode: PricingMode = PricingMode.PRICE_AWARE
    price_resolver: PriceResolver = field(init=False)

    def __post_init__(self) -> None:
        self.price_resolver = PriceResolver(reader=self.reader, deployment=self.deployment)

    @property
    def protocol_id(self) -> str:
        return self.deployment.comptroller

from dataclasses import dataclass

import eth_typing

from lendstate.constants import ZERO_ADDRESS


@dataclass(slots=True, frozen=True, kw_only=True)
class LendingDeployment:
    """
    Static description of a pooled lending deployment. Addresses are lowercase hex strings,
    matching the storage keys of the entities they identify.
    """

    name: str
    slug: str
    chain_id: eth_typing.ChainId
    comptroller: str
    start_block: int

    # Pool token for the native asset, which has no ERC-20 underlying contract
    native_pool_token: str
    native_underlying: str = ZERO_ADDRESS
    native_pool_token_name: str = "Compound Ether"
    native_pool_token_symbol: str = "cETH"
    native_name: str = "Ether"
    native_symbol: str = "ETH"

    # Reference stablecoin used to convert ETH-denominated prices to USD
    reference_pool_token: str
    reference_token: str
    reference_token_decimals: int

    # Underlying tokens that do not implement name() and symbol(), as
    # (address, name, symbol, decimals)
    hardcoded_tokens: tuple[tuple[str, str, str, int], ...] = ()

    # Price source history. Both bounds are inclusive: the legacy source answers up to and including
    # `legacy_oracle_end_block`, and prices are ETH-denominated up to and including
    # `eth_pricing_end_block`
    legacy_price_oracle: str
    legacy_oracle_end_block: int
    eth_pricing_end_block: int

    schema_version: str = "1.1.0"
    subgraph_version: str = "0.8.0"
    methodology_version: str = "1.0.0"
    network: str = "ETHEREUM"
    protocol_type: str = "LENDING"
    lending_type: str = "POOLED"
    risk_type: str = "GLOBAL"

    def hardcoded_token(self, address: str) -> tuple[str, str, int] | None:
        for token_address, name, symbol, decimals in self.hardcoded_tokens:
            if token_address == address:
                return name, symbol, decimals
        return None


EthereumMainnetCompoundV2 = LendingDeployment(
    name="Compound V2",
    slug="compound-v2",
    chain_id=eth_typing.ChainId.ETH,
    comptroller="0x3d9819210a31b4961b30ef54be2aed79b9c9cd3b",
    start_block=7_710_671,
    native_pool_token="0x4ddc2d193948926d02f9b1fe9e1daa0718270ed5",
    reference_pool_token="0x39aa39c021dfbae8fac545936693ac917d5e7563",
    reference_token="0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48",
    reference_token_decimals=6,
    hardcoded_tokens=(
        (
            "0x89d24a6b4ccb1b6faa2625fe562bdd9a23260359",
            "Dai Stablecoin v1.0 (DAI)",
            "DAI",
            18,
        ),
    ),
    legacy_price_oracle="0x02557a5e05defeffd4cae6d83ea3d173b272c904",
    legacy_oracle_end_block=7_715_908,
    eth_pricing_end_block=10_678_764,
)

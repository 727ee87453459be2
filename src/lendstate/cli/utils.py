from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import HttpUrl, WebsocketUrl
from web3 import HTTPProvider, IPCProvider, JSONBaseProvider, LegacyWebSocketProvider, Web3
from web3.providers import BaseProvider

from lendstate.config import CONFIG_FILE, settings
from lendstate.connection import _fast_decode_rpc_response
from lendstate.exceptions import LendstateValueError


def _provider_for_endpoint(endpoint: HttpUrl | WebsocketUrl | Path) -> BaseProvider:
    match endpoint:
        case HttpUrl():
            return HTTPProvider(str(endpoint))
        case WebsocketUrl():
            return LegacyWebSocketProvider(str(endpoint))
        case Path():
            return IPCProvider(endpoint)


def get_web3_from_config(*, chain_id: int, optimize: bool = True) -> Web3:
    """
    Connect to the RPC endpoint configured for the chain and confirm that it serves that chain.

    With `optimize`, the middleware stack is dropped and RPC responses are decoded with ujson. The
    reads issued while processing lending events never need the default middleware.
    """

    if (endpoint := settings.rpc.get(chain_id)) is None:
        raise LendstateValueError(
            message=f"No RPC endpoint for chain ID {chain_id} is set in {CONFIG_FILE}"
        )

    w3 = Web3(_provider_for_endpoint(endpoint))

    if (endpoint_chain_id := w3.eth.chain_id) != chain_id:
        raise LendstateValueError(
            message=f"The endpoint {endpoint} serves chain ID {endpoint_chain_id}, not {chain_id}"
        )

    if optimize:
        w3.middleware_onion.clear()
        if TYPE_CHECKING:
            assert isinstance(w3.provider, JSONBaseProvider)
        w3.provider.decode_rpc_response = _fast_decode_rpc_response  # type:ignore[method-assign]

    return w3

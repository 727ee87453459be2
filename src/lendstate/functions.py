from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import eth_abi.abi
import tqdm
from eth_typing import ChecksumAddress
from eth_utils.crypto import keccak
from hexbytes import HexBytes
from requests.exceptions import RequestException
from tenacity import (
    RetryError,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)
from web3 import Web3
from web3._utils.threads import Timeout
from web3.exceptions import Web3Exception
from web3.types import BlockIdentifier, FilterParams, LogReceipt, TxParams

from lendstate.exceptions import ExternalServiceError, LendstateValueError
from lendstate.logging import logger
from lendstate.types.aliases import BlockNumber

BLOCK_TAGS = frozenset(("latest", "earliest", "pending", "safe", "finalized"))


def extract_argument_types_from_function_prototype(function_prototype: str) -> list[str]:
    """
    Extract the argument types from the function prototype.

    e.g. the argument types for the prototype 'getUnderlyingPrice(address)' are ['address']
    """

    arguments = function_prototype.partition("(")[2].rpartition(")")[0]
    return arguments.split(",") if arguments else []


def encode_function_calldata(
    function_prototype: str, function_arguments: Sequence[Any] | None
) -> bytes:
    """
    Build the calldata for a call to the function prototype: the 4-byte selector followed by the
    ABI-encoded arguments.
    """

    selector = keccak(text=function_prototype)[:4]
    return selector + eth_abi.abi.encode(
        types=extract_argument_types_from_function_prototype(function_prototype),
        args=function_arguments or (),
    )


def raw_call(
    w3: Web3,
    address: ChecksumAddress,
    calldata: bytes,
    return_types: list[str],
    block_identifier: BlockIdentifier | None = None,
) -> tuple[Any, ...]:
    """
    Execute an eth_call against the contract and decode the returned bytes.
    """

    result = w3.eth.call(
        transaction=TxParams(to=address, data=calldata),
        block_identifier=block_identifier,
    )
    return eth_abi.abi.decode(types=return_types, data=result)


def get_number_for_block_identifier(identifier: BlockIdentifier | None, w3: Web3) -> BlockNumber:
    """
    Resolve a block number, numeric string, or block tag to a block number. `None` resolves to the
    chain head.
    """

    if identifier is None:
        return w3.eth.get_block_number()

    if isinstance(identifier, int):
        return identifier

    if isinstance(identifier, str):
        if identifier in BLOCK_TAGS:
            block_number = w3.eth.get_block(identifier).get("number")
            if TYPE_CHECKING:
                assert block_number is not None
            return block_number
        try:
            return int(identifier, 0)
        except ValueError:
            pass

    raise LendstateValueError(message=f"Invalid block identifier {identifier!r}")


@dataclass(slots=True)
class _AdaptiveSpan:
    """
    The number of blocks covered by one eth_getLogs request. The span drops by a quarter after a
    failed request and creeps up after a successful one, never exceeding the ceiling.
    """

    size: int
    ceiling: int

    def shrink(self) -> None:
        self.size = max(1, int(self.size * 0.75))

    def grow(self) -> None:
        self.size = min(self.ceiling, max(self.size + 1, int(self.size * 1.01)))


def _iter_log_chunks(
    w3: Web3,
    start_block: BlockNumber,
    end_block: BlockNumber,
    span: _AdaptiveSpan,
    retrier: Retrying,
    address: list[ChecksumAddress],
    topics: Sequence[Sequence[HexBytes] | HexBytes],
) -> Iterator[tuple[int, list[LogReceipt]]]:
    """
    Yield (block count, logs) for consecutive chunks of the inclusive block range.
    """

    chunk_start = start_block
    while chunk_start <= end_block:
        for attempt in retrier:
            chunk_end = min(end_block, chunk_start + span.size - 1)
            with attempt:
                try:
                    logs = w3.eth.get_logs(
                        FilterParams(
                            address=address,
                            fromBlock=chunk_start,
                            toBlock=chunk_end,
                            topics=topics,
                        )
                    )
                except Exception:
                    span.shrink()
                    logger.debug(
                        f"Log request for blocks {chunk_start}-{chunk_end} failed on attempt "
                        f"{attempt.retry_state.attempt_number}, span reduced to {span.size}"
                    )
                    raise

        span.grow()
        yield chunk_end - chunk_start + 1, list(logs)
        chunk_start = chunk_end + 1


def fetch_logs_retrying(
    w3: Web3,
    start_block: BlockNumber,
    end_block: BlockNumber,
    max_retries: int = 10,
    max_blocks_per_request: int | None = None,
    address: list[ChecksumAddress] | None = None,
    topic_signature: Sequence[Sequence[HexBytes] | HexBytes] | None = None,
    *,
    show_progress: bool = False,
) -> list[LogReceipt]:
    """
    Fetch all event logs emitted by the addresses (or any address, if omitted) matching the topic
    filter, inclusive for the given block range.

    The range is requested in chunks. Each chunk is retried with exponential backoff up to
    `max_retries` times, and the chunk size adapts to the endpoint without exceeding
    `max_blocks_per_request` (5,000 if not specified).
    """

    if end_block < start_block:
        msg = "End block cannot be earlier than start block."
        raise ValueError(msg)

    retrier = Retrying(
        stop=stop_after_attempt(max_retries),
        wait=wait_exponential_jitter(),
        retry=retry_if_exception_type((Timeout, Web3Exception, RequestException)),
    )
    span = _AdaptiveSpan(size=100, ceiling=max_blocks_per_request or 5_000)

    event_logs: list[LogReceipt] = []
    with tqdm.tqdm(
        total=end_block - start_block + 1,
        desc="Fetching logs",
        bar_format="{desc}: {percentage:3.1f}% |{bar}| {n_fmt}/{total_fmt}",
        leave=False,
        disable=not show_progress,
    ) as pbar:
        try:
            for block_count, logs in _iter_log_chunks(
                w3=w3,
                start_block=start_block,
                end_block=end_block,
                span=span,
                retrier=retrier,
                address=address or [],
                topics=topic_signature or [],
            ):
                event_logs.extend(logs)
                pbar.update(block_count)
        except RetryError:
            raise ExternalServiceError(
                error=f"Timed out fetching logs after {max_retries} tries."
            ) from None

    return event_logs

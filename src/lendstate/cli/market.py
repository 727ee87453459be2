"""
Market CLI commands.

    market update - Fetch Comptroller and pool token events for a block range, and apply them to the
        state database in (block number, log index) order.

Events are fetched one chunk of blocks at a time. Comptroller events are fetched first, so pool
tokens listed within the chunk are included when fetching pool token events for the same chunk.
"""

import click
import tqdm
from sqlalchemy.orm import Session
from web3 import Web3
from web3.types import LogReceipt

from lendstate.checksum_cache import get_checksum_address
from lendstate.cli import cli
from lendstate.cli.utils import get_web3_from_config
from lendstate.config import settings
from lendstate.database.models import ProtocolTable
from lendstate.database.operations import create_new_sqlite_database, get_scoped_sqlite_session
from lendstate.deployments import EthereumMainnetCompoundV2, LendingDeployment
from lendstate.engine import LendingStateEngine
from lendstate.events import (
    COMPTROLLER_EVENTS,
    POOL_TOKEN_EVENTS,
    MarketListedEvent,
    decode_event,
)
from lendstate.exceptions import LendstateValueError
from lendstate.functions import fetch_logs_retrying, get_number_for_block_identifier
from lendstate.introspection import Web3MarketReader
from lendstate.logging import logger
from lendstate.types import BlockNumber, Timestamp

DEPLOYMENTS: dict[int, LendingDeployment] = {
    EthereumMainnetCompoundV2.chain_id: EthereumMainnetCompoundV2,
}


@cli.group()
def market() -> None:
    """
    Lending market commands
    """


class BlockTimestampCache:
    """
    Block timestamps fetched for the chunk being processed. Cleared after every chunk, since
    events are applied in block order and earlier blocks are never looked up again.
    """

    def __init__(self, w3: Web3) -> None:
        self.w3 = w3
        self._timestamps: dict[BlockNumber, Timestamp] = {}

    def __len__(self) -> int:
        return len(self._timestamps)

    def get(self, block_number: BlockNumber) -> Timestamp:
        if block_number not in self._timestamps:
            self._timestamps[block_number] = self.w3.eth.get_block(block_number)["timestamp"]
        return self._timestamps[block_number]

    def clear(self) -> None:
        self._timestamps.clear()


def _listed_markets(session: Session, deployment: LendingDeployment) -> list[str]:
    if (protocol := session.get(ProtocolTable, deployment.comptroller)) is None:
        return []
    return list(protocol.market_ids)


def _fetch_chunk_events(
    w3: Web3,
    session: Session,
    deployment: LendingDeployment,
    start_block: BlockNumber,
    end_block: BlockNumber,
    timestamps: BlockTimestampCache,
    *,
    show_progress: bool,
) -> list[LogReceipt]:
    comptroller_logs = fetch_logs_retrying(
        w3=w3,
        start_block=start_block,
        end_block=end_block,
        address=[get_checksum_address(deployment.comptroller)],
        topic_signature=[[event.value for event in COMPTROLLER_EVENTS]],
        show_progress=show_progress,
    )

    pool_tokens = set(_listed_markets(session, deployment))
    for log in comptroller_logs:
        event = decode_event(log, timestamp=timestamps.get(log["blockNumber"]))
        if isinstance(event, MarketListedEvent):
            pool_tokens.add(event.pool_token)

    pool_token_logs = (
        fetch_logs_retrying(
            w3=w3,
            start_block=start_block,
            end_block=end_block,
            address=[get_checksum_address(pool_token) for pool_token in sorted(pool_tokens)],
            topic_signature=[[event.value for event in POOL_TOKEN_EVENTS]],
            show_progress=show_progress,
        )
        if pool_tokens
        else []
    )

    return sorted(
        comptroller_logs + pool_token_logs,
        key=lambda log: (log["blockNumber"], log["logIndex"]),
    )


@market.command(
    "update",
    help="Apply lending market events for a block range to the state database.",
)
@click.option(
    "--chain-id",
    "chain_id",
    default=EthereumMainnetCompoundV2.chain_id,
    show_default=True,
    type=int,
    help="The chain ID of the deployment.",
)
@click.option(
    "--start",
    "start",
    default=None,
    type=int,
    help="The first block in the update range. Defaults to the deployment block.",
)
@click.option(
    "--end",
    "end",
    default="latest",
    show_default=True,
    help=(
        "The last block in the update range. Must be a block number or a valid block identifier: "
        "'earliest', 'finalized', 'safe', 'latest', 'pending'."
    ),
)
@click.option(
    "--chunk",
    "chunk_size",
    default=10_000,
    show_default=True,
    help="The maximum number of blocks to fetch events for at once.",
)
@click.option(
    "--no-progress",
    "no_progress",
    is_flag=True,
    default=False,
    show_default=True,
    help="Disable progress bars.",
)
def market_update(
    *,
    chain_id: int,
    start: int | None,
    end: str,
    chunk_size: int,
    no_progress: bool,
) -> None:
    """
    Apply lending market events for a block range to the state database.
    """

    if (deployment := DEPLOYMENTS.get(chain_id)) is None:
        msg = f"No lending deployment is known for chain ID {chain_id}"
        raise click.BadParameter(msg, param_hint="--chain-id")

    try:
        w3 = get_web3_from_config(chain_id=chain_id)
    except LendstateValueError as exc:
        raise click.ClickException(exc.message) from None

    start_block = deployment.start_block if start is None else start
    last_block = get_number_for_block_identifier(identifier=end, w3=w3)
    if last_block < start_block:
        msg = f"The end block ({last_block}) is earlier than the start block ({start_block})."
        raise click.BadParameter(msg, param_hint="--end")

    if not settings.database.path.exists():
        create_new_sqlite_database(db_path=settings.database.path)

    db_session = get_scoped_sqlite_session(database_path=settings.database.path)
    timestamps = BlockTimestampCache(w3)

    with db_session() as session:
        engine = LendingStateEngine(
            session=session,
            reader=Web3MarketReader(w3),
            deployment=deployment,
            mode=settings.pricing_mode,
        )

        block_pbar = tqdm.tqdm(
            total=last_block - start_block + 1,
            bar_format="{desc} {percentage:3.1f}% |{bar}|",
            leave=False,
            disable=no_progress,
        )

        processed = failed = 0
        working_start_block = start_block
        while working_start_block <= last_block:
            working_end_block = min(last_block, working_start_block + chunk_size - 1)
            block_pbar.set_description(
                f"Processing block range {working_start_block:,} -> {working_end_block:,}"
            )
            block_pbar.refresh()

            for log in _fetch_chunk_events(
                w3=w3,
                session=session,
                deployment=deployment,
                start_block=working_start_block,
                end_block=working_end_block,
                timestamps=timestamps,
                show_progress=not no_progress,
            ):
                event = decode_event(log, timestamp=timestamps.get(log["blockNumber"]))
                if engine.process_event(event):
                    processed += 1
                else:
                    failed += 1

            timestamps.clear()
            block_pbar.update(working_end_block - working_start_block + 1)
            working_start_block = working_end_block + 1

        block_pbar.close()

    logger.info(
        f"Processed {processed} events ({failed} rolled back) for {deployment.name} between "
        f"blocks {start_block:,} and {last_block:,}"
    )
    click.echo(f"Processed {processed} events, {failed} rolled back.")

import functools

from cchecksum import to_checksum_address
from eth_typing import ChecksumAddress, HexAddress


@functools.lru_cache(maxsize=512)
def get_checksum_address(address: HexAddress | str | bytes) -> ChecksumAddress:
    return to_checksum_address(address)


def get_entity_id(address: HexAddress | str | bytes) -> str:
    """
    Get the storage key for an address: the lowercase 0x-prefixed hex string.
    """

    return get_checksum_address(address).lower()

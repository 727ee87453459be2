from typing import Annotated

from sqlalchemy import ForeignKey
from sqlalchemy.orm import mapped_column

PrimaryKeyId = Annotated[
    str,
    mapped_column(primary_key=True),
]
ForeignKeyProtocolId = Annotated[
    str,
    mapped_column(ForeignKey("protocols.id"), index=True),
]
ForeignKeyMarketId = Annotated[
    str,
    mapped_column(ForeignKey("markets.id"), index=True),
]
ForeignKeyTokenId = Annotated[
    str,
    mapped_column(ForeignKey("tokens.id"), index=True),
]

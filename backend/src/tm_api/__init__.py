"""Transfermarkt page access."""

from tm_api.client import (
    MOVER_DIRECTIONS,
    TransfermarktClient,
    TransfermarktError,
    TransfermarktNonRetryableError,
)
from tm_api.parsers import PageParser, load_parser

__all__ = [
    "MOVER_DIRECTIONS",
    "PageParser",
    "TransfermarktClient",
    "TransfermarktError",
    "TransfermarktNonRetryableError",
    "load_parser",
]

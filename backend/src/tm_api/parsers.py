"""
Page parser interface.

Turning Transfermarkt markup into records is delegated to a PageParser
implementation selected by configuration (PAGE_PARSER="package.module:Parser").
The pipeline only depends on the shapes declared here.
"""

import importlib
from typing import List, Protocol, runtime_checkable

from models.movers import ValueMoverRecord
from models.player import PartialRecord, PlayerStats


@runtime_checkable
class PageParser(Protocol):
    """Converts fetched page text into typed records."""

    def parse_value_listing(self, html: str) -> List[PartialRecord]:
        """Rows of the value-ranked listing: identity, profile fields, market_value."""
        ...

    def parse_minutes_listing(self, html: str) -> List[PartialRecord]:
        """Rows of the minutes-ranked listing: identity plus counters."""
        ...

    def parse_player_stats(self, html: str) -> PlayerStats:
        """Season totals from one player's performance page."""
        ...

    def parse_period_movers(self, html: str, period: str) -> List[ValueMoverRecord]:
        """Every row of one period's market value movers table."""
        ...


def load_parser(target: str) -> PageParser:
    """
    Import a parser from "module:attribute".

    A class is instantiated with no arguments; any other attribute is used as is.

    Raises:
        ValueError: If target is malformed or the object is not a PageParser
    """
    module_name, sep, attr = target.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"Parser must be given as 'module:attribute', got {target!r}")

    obj = getattr(importlib.import_module(module_name), attr)
    parser = obj() if isinstance(obj, type) else obj
    if not isinstance(parser, PageParser):
        raise ValueError(f"{target} does not implement PageParser")
    return parser

"""Option contract detection and underlying-symbol resolution.

Option executions are reported under their OCC symbol, e.g.
``SPY251218C00679000`` (root + YYMMDD expiry + C/P + strike x 1000).
Per-symbol reports fold those contracts into their underlying root so
that ``SPY`` shares and ``SPY`` options land in the same row.
"""

from __future__ import annotations

import re
from decimal import Decimal

_OCC_PATTERN = re.compile(r"^(?P<root>[A-Z]{1,6})(?P<expiry>\d{6})(?P<right>[CP])(?P<strike>\d{8})$")


def is_option_symbol(symbol: str) -> bool:
    """True for OCC-format option contract symbols."""
    return _OCC_PATTERN.match(symbol.replace(" ", "").upper()) is not None


def underlying_symbol(symbol: str) -> str:
    """Return the underlying root for option symbols, the symbol itself otherwise."""
    match = _OCC_PATTERN.match(symbol.replace(" ", "").upper())
    if match:
        return match.group("root")
    return symbol


def contract_multiplier(symbol: str, option_multiplier: Decimal) -> Decimal:
    return option_multiplier if is_option_symbol(symbol) else Decimal("1")

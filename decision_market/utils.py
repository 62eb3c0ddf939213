import re
import time
from decimal import Decimal, ROUND_FLOOR, getcontext
from typing import Any

import mpmath as mp
import numpy as np

getcontext().prec = 60
mp.mp.dps = 60

AMOUNT_DECIMALS = 6
PRICE_DECIMALS = 18

ZERO = Decimal('0')
ZERO_ADDRESS = '0x' + '0' * 40

_ADDRESS_RE = re.compile(r'^0x[0-9a-fA-F]{40}$')

def get_current_ms() -> int:
    return int(time.time() * 1000)

def get_current_s() -> int:
    return int(time.time())

def token_amount(amount: int | str | Decimal) -> Decimal:
    return Decimal(str(amount)).quantize(Decimal(f'1e-{AMOUNT_DECIMALS}'))

def floor_amount(amount: Decimal) -> Decimal:
    """Round down to the token base unit (1e-6)."""
    return Decimal(amount).quantize(Decimal(f'1e-{AMOUNT_DECIMALS}'), rounding=ROUND_FLOOR)

def price_value(p: str | Decimal) -> Decimal:
    return Decimal(p).quantize(Decimal(f'1e-{PRICE_DECIMALS}'), rounding=ROUND_FLOOR)

def is_base_unit_multiple(amount: Decimal) -> bool:
    return token_amount(amount) == Decimal(amount)

def is_address(value: Any) -> bool:
    return isinstance(value, str) and bool(_ADDRESS_RE.match(value))

def is_null_address(value: Any) -> bool:
    return not is_address(value) or value.lower() == ZERO_ADDRESS

def to_jsonable(obj: Any) -> Any:
    """Recursively convert Decimals, numpy scalars and tuples into JSON-friendly values."""
    if isinstance(obj, dict):
        return {k: to_jsonable(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [to_jsonable(v) for v in obj]
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, np.integer):
        return int(obj)
    if isinstance(obj, (np.float64, np.float32)):
        return float(obj)
    return obj

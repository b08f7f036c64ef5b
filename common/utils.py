from __future__ import annotations

import math
import time
from decimal import Decimal
from typing import Tuple, Union

Number = Union[int, float]


def now_ms() -> int:
    """Epoch timestamp in milliseconds."""
    return int(time.time() * 1000)


def format_number(v: Number) -> str:
    """
    Shortest round-trip text for a number, laid out the way a browser prints it:
    integral values drop the fractional part, and exponent form is used only
    below 1e-6 or from 1e21 up.

        format_number(512)     -> "512"
        format_number(512.0)   -> "512"
        format_number(-118.4)  -> "-118.4"
        format_number(0.00001) -> "0.00001"
        format_number(1e-7)    -> "1e-7"
        format_number(1e21)    -> "1e+21"
    """
    f = float(v)
    if math.isnan(f):
        return "NaN"
    if math.isinf(f):
        return "Infinity" if f > 0 else "-Infinity"
    if f == 0:
        return "0"

    sign, digits, exp = Decimal(repr(f)).as_tuple()
    digits = list(digits)
    while len(digits) > 1 and digits[-1] == 0:
        digits.pop()
        exp += 1
    s = "".join(str(d) for d in digits)
    k = len(s)
    n = k + exp  # position of the decimal point relative to the first digit

    if k <= n <= 21:
        text = s + "0" * (n - k)
    elif 0 < n <= 21:
        text = f"{s[:n]}.{s[n:]}"
    elif -6 < n <= 0:
        text = "0." + "0" * -n + s
    else:
        mantissa = s[0] + (f".{s[1:]}" if k > 1 else "")
        e = n - 1
        text = f"{mantissa}e{'+' if e >= 0 else '-'}{abs(e)}"
    return ("-" if sign else "") + text


def parse_size(s: str) -> Tuple[int, int]:
    """Parse 'WxH' or 'W,H' into (width, height)."""
    sep = "x" if "x" in s.lower() else ","
    parts = s.lower().split(sep)
    if len(parts) != 2:
        raise ValueError("Size must be WxH or W,H")
    return int(parts[0]), int(parts[1])

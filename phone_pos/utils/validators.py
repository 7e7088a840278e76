# utils/validators.py
import math


def non_empty(text) -> bool:
    """
    True if `text` is not None/empty after stripping whitespace.
    """
    return bool(text is not None and str(text).strip())


# ---- Numeric parsing & validators ----

def try_parse_float(x):
    """
    Best-effort parse to float.

    Returns:
        (ok: bool, value: float|None)

    ok == False means parsing failed and value is None. NaN and infinities
    count as failures.
    """
    if isinstance(x, bool):
        return False, None
    try:
        val = float(x)
    except (TypeError, ValueError):
        return False, None
    if math.isnan(val) or math.isinf(val):
        return False, None
    return True, val


def float_or_zero(x) -> float:
    """
    Permissive parse used by the pricing inputs: empty or non-numeric text is 0.0.
    """
    if isinstance(x, str):
        x = x.strip()
    ok, val = try_parse_float(x)
    return val if ok else 0.0  # type: ignore[return-value]


def as_integer(x):
    """
    Return x as int when it is an integral number (not a bool), else None.
    """
    if isinstance(x, bool):
        return None
    if isinstance(x, int):
        return x
    if isinstance(x, float) and x.is_integer():
        return int(x)
    return None

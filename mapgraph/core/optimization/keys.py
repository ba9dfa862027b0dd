"""Variable keys.

A key is a plain ``int``. ``symbol('x', 3)`` packs a one-character tag into
the top byte so keys read as ``x3`` in logs while staying totally ordered.
"""

Key = int

_CHR_BITS = 8
_INDEX_BITS = 64 - _CHR_BITS
_INDEX_MASK = (1 << _INDEX_BITS) - 1


def symbol(c: str, index: int) -> Key:
    """Key for variable ``index`` of family ``c``."""
    if len(c) != 1:
        raise ValueError(f"Symbol character must be a single character, got {c!r}")
    if index < 0 or index > _INDEX_MASK:
        raise ValueError(f"Symbol index {index} out of range")
    return (ord(c) << _INDEX_BITS) | index


def symbol_chr(key: Key) -> str:
    return chr(key >> _INDEX_BITS)


def symbol_index(key: Key) -> int:
    return key & _INDEX_MASK


def is_symbol(key: Key) -> bool:
    c = key >> _INDEX_BITS
    return 0 < c < 256 and chr(c).isprintable() and not chr(c).isspace()


def format_key(key: Key) -> str:
    """Human-readable key: ``x3`` for symbols, decimal otherwise."""
    if isinstance(key, int) and key >= 0 and is_symbol(key):
        return f"{symbol_chr(key)}{symbol_index(key)}"
    return str(key)


def X(j: int) -> Key:
    """Pose key."""
    return symbol("x", j)


def L(j: int) -> Key:
    """Landmark key."""
    return symbol("l", j)


def C(j: int) -> Key:
    """Camera key."""
    return symbol("c", j)


def P(j: int) -> Key:
    """Point key."""
    return symbol("p", j)


def D(j: int) -> Key:
    """Dual variable key."""
    return symbol("d", j)

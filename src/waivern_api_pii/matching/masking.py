"""Masking of sensitive values for safe display."""

MASK_CHAR = "*"

# Characters kept visible at each end of values longer than this
_VISIBLE_EDGE = 2
_FULLY_MASKED_MAX_LENGTH = 4


def mask_value(value: str) -> str:
    """Mask a sensitive value, keeping its length.

    Values of up to four characters are fully masked; longer values keep
    their first two and last two characters.

    >>> mask_value("a@b.com")
    'a@***om'
    """
    if len(value) <= _FULLY_MASKED_MAX_LENGTH:
        return MASK_CHAR * len(value)
    return (
        value[:_VISIBLE_EDGE]
        + MASK_CHAR * (len(value) - 2 * _VISIBLE_EDGE)
        + value[-_VISIBLE_EDGE:]
    )

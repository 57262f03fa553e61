"""Convert between non-negative integers and Base62 strings.

Digits are A-Z (0-25), a-z (26-51) and 0-9 (52-61), most significant first.

    >>> encode(123)
    'B9'
    >>> decode("B9")
    123
    >>> decode("Base*62") is None
    True
"""

import logging

logger = logging.getLogger(__name__)

ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789"
BASE = len(ALPHABET)

# Largest value representable by a 64-bit unsigned integer.
MAX_VALUE = 2**64 - 1
MAX_VALUE_32 = 2**32 - 1

_DIGITS = {char: digit for digit, char in enumerate(ALPHABET)}


class Base62Error(ValueError):
    """Base class for Base62 conversion errors."""


class InvalidCharacterError(Base62Error):
    def __init__(self, text: str, position: int):
        self.text = text
        self.position = position
        self.char = text[position] if position < len(text) else ""
        if self.char:
            msg = f"invalid Base62 character {self.char!r} at position {position}"
        else:
            msg = "empty string is not a Base62 number"
        super().__init__(msg)


class Base62OverflowError(Base62Error, OverflowError):
    def __init__(self, max_value: int):
        self.max_value = max_value
        super().__init__(f"value exceeds maximum of {max_value}")


def char_at(digit: int) -> str:
    if not 0 <= digit < BASE:
        raise IndexError(f"digit out of range: {digit}")
    return ALPHABET[digit]


def digit_of(char: str) -> int | None:
    return _DIGITS.get(char)


def encode(number: int, max_value: int = MAX_VALUE) -> str:
    """Encode ``number`` as a Base62 string.

    Raises ``TypeError`` for non-integers, ``ValueError`` for negative
    numbers and ``Base62OverflowError`` above ``max_value``.
    """
    if not isinstance(number, int) or isinstance(number, bool):
        raise TypeError(f"expected int, got {type(number).__name__}")
    if number < 0:
        raise ValueError(f"cannot encode negative number: {number}")
    if number > max_value:
        raise Base62OverflowError(max_value)

    if number == 0:
        return ALPHABET[0]
    out = []
    while number > 0:
        number, rem = divmod(number, BASE)
        out.append(ALPHABET[rem])
    return "".join(reversed(out))


def decode_or_raise(text: str, max_value: int = MAX_VALUE) -> int:
    """Decode a Base62 string, raising a ``Base62Error`` on bad input."""
    if not isinstance(text, str):
        raise TypeError(f"expected str, got {type(text).__name__}")
    if not text:
        raise InvalidCharacterError(text, 0)

    num = 0
    for position, char in enumerate(text):
        digit = _DIGITS.get(char)
        if digit is None:
            raise InvalidCharacterError(text, position)
        num = num * BASE + digit
        if num > max_value:
            raise Base62OverflowError(max_value)
    return num


def decode(text: str, max_value: int = MAX_VALUE) -> int | None:
    """Decode a Base62 string, or return None if it is invalid or overflows."""
    try:
        return decode_or_raise(text, max_value)
    except Base62Error as e:
        logger.debug("rejected Base62 input %r: %s", text, e)
        return None

"""
Value normalization for ONTAP numeric fields.

ONTAP returns numbers as ints, floats or strings depending on the call.
Everything that becomes a metric value goes through ``to_float``.
"""

import re
from typing import Any

from netapp_exporter.exceptions import MalformedValueError, UnsupportedValueTypeError


_INTEGER_PATTERN = re.compile(r'[+-]?[0-9]+')


def to_float(value: Any) -> float:
    """
    Coerce a raw ONTAP value into a float.

    Args:
        value: int, float or base-10 integer string

    Returns:
        The value as a float

    Raises:
        MalformedValueError: If a string is not a base-10 integer
        UnsupportedValueTypeError: For any other type (None, bool, containers)
    """
    if isinstance(value, float):
        return value

    # bool is an int subclass but never a valid quota or usage figure
    if isinstance(value, bool):
        raise UnsupportedValueTypeError(
            f"Value ({value!r}) is neither int, float nor string",
            invalid_value=value
        )

    if isinstance(value, int):
        return float(value)

    if isinstance(value, str):
        if not _INTEGER_PATTERN.fullmatch(value):
            raise MalformedValueError(
                f"Value ({value!r}) is not a base-10 integer",
                invalid_value=value
            )
        return float(int(value))

    raise UnsupportedValueTypeError(
        f"Value ({value!r}) is neither int, float nor string",
        invalid_value=value
    )


def to_rate(value: Any) -> float:
    """
    Convert a percentage (0-100) into a fraction (0-1).

    Raises the same errors as ``to_float``.
    """
    return to_float(value) / 100

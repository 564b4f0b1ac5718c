import base64
import json
import logging
import math
from decimal import Decimal
from typing import Any, Mapping, Sequence

logger = logging.getLogger(__name__)


def _unknown(value: Any) -> str:
    return f'<Unknown OpenTelemetry attribute value type "{type(value).__name__}">'


def _float_to_string(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    # shortest round-trip digits, never in exponent notation
    return format(Decimal(repr(value)).normalize(), 'f')


def _to_json_value(value: Any) -> Any:
    if value is None or isinstance(value, (str, bool, int)):
        return value
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return _float_to_string(value)
        return value
    if isinstance(value, bytes):
        return base64.b64encode(value).decode('ascii')
    if isinstance(value, Mapping):
        return {str(k): _to_json_value(v) for k, v in value.items()}
    if isinstance(value, Sequence):
        return [_to_json_value(v) for v in value]
    raise TypeError(f"Unsupported attribute value: {value!r}")


def attribute_value_to_string(value: Any) -> str:
    """
    Converts a resource attribute value into the string used as a label value.

    - None: empty string
    - str: unchanged
    - bool: "true" / "false"
    - int: decimal digits
    - float: shortest decimal form, no exponent ("NaN", "+Inf", "-Inf" for special values)
    - bytes: base64
    - sequences and mappings: compact JSON

    Values that can't be converted are replaced with a placeholder (and a warning is logged) so that a single bad
    attribute never fails the batch it belongs to.

    :param value: the attribute value
    :return: the label value
    """
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    # bool is a subclass of int, so it must be checked first
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return _float_to_string(value)
    if isinstance(value, bytes):
        return base64.b64encode(value).decode('ascii')
    if isinstance(value, (Mapping, Sequence)):
        try:
            return json.dumps(_to_json_value(value), separators=(',', ':'))
        except (TypeError, ValueError, RecursionError) as ex:
            logger.warning(f"Unable to convert attribute value to a label: {ex}")
            return _unknown(value)

    logger.warning(f"Unsupported attribute value type: {type(value).__name__}")
    return _unknown(value)

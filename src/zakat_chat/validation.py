"""Field validation for zakat report values."""

import re
from typing import Any

from .errors import ValidationError
from .models import ZakatType

NON_DIGIT_REGEX = re.compile(r"[^0-9]")


def parse_amount(text: str) -> int:
    """Keep only the digits of ``text``; "Rp 45.000" becomes 45000."""
    digits = NON_DIGIT_REGEX.sub("", text)
    if not digits:
        raise ValidationError("Maaf, jumlah harus dalam bentuk angka. Silakan coba lagi.")
    return int(digits)


def parse_zakat_type(text: str) -> ZakatType:
    zakat_type = ZakatType.match(text)
    if zakat_type is None:
        raise ValidationError(
            f"Maaf, jenis zakat tidak valid. Pilihan: {ZakatType.choices()}. Silakan coba lagi."
        )
    return zakat_type


def coerce_amount(value: Any) -> int:
    """Accept ints, integral floats and digit strings from structured input."""
    if isinstance(value, bool):
        raise ValidationError("Jumlah zakat harus berupa angka.")
    if isinstance(value, float):
        if not value.is_integer():
            raise ValidationError("Jumlah zakat harus berupa bilangan bulat.")
        value = int(value)
    if isinstance(value, int):
        if value < 0:
            raise ValidationError("Jumlah zakat tidak boleh negatif.")
        return value
    if isinstance(value, str):
        return parse_amount(value)
    raise ValidationError("Jumlah zakat harus berupa angka.")


def coerce_zakat_type(value: Any) -> ZakatType:
    if isinstance(value, ZakatType):
        return value
    if not isinstance(value, str):
        raise ValidationError(f"Jenis zakat tidak valid. Pilihan: {ZakatType.choices()}.")
    return parse_zakat_type(value)


def coerce_report_id(value: Any) -> int:
    """Report ids arrive as ints, JSON floats or digit strings."""
    if value is None or isinstance(value, bool):
        raise ValidationError("ID laporan zakat harus diisi.")
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    raise ValidationError(f"ID laporan zakat tidak valid: {value}.")

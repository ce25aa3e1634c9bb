# Файл: src/stk_payments/utils/phone.py
"""
Приведение телефонных номеров к каноническому виду 2547XXXXXXXX.

Пользователь вводит номер как угодно (0712 345 678, +254-712-345678, 712345678),
а шлюз в колбэке присылает его числом, иногда с хвостом ``.0``.
"""
import re

from stk_payments.exceptions import ValidationError

COUNTRY_CODE = "254"
SUBSCRIBER_PREFIX = "7"
EXPECTED_FORMATS = "07XXXXXXXX or 2547XXXXXXXX"

_NON_DIGITS = re.compile(r"\D")


def normalize_phone_number(raw: str) -> str:
    """
    0712345678 -> 254712345678
    712345678 -> 254712345678
    254712345678 -> 254712345678 (без изменений)
    """
    cleaned = _NON_DIGITS.sub("", raw or "")
    if not cleaned:
        raise ValidationError("Phone number is required")

    if cleaned.startswith(COUNTRY_CODE) and len(cleaned) == 12:
        return cleaned
    if cleaned.startswith("0") and len(cleaned) == 10:
        return COUNTRY_CODE + cleaned[1:]
    if cleaned.startswith(SUBSCRIBER_PREFIX) and len(cleaned) == 9:
        return COUNTRY_CODE + cleaned

    raise ValidationError(
        f"Invalid phone number format. Expected {EXPECTED_FORMATS}, got {raw}"
    )


def normalize_gateway_phone_number(value: str | int | float) -> str:
    """Вариант для колбэка: шлюз сериализует номер как число (254712345678.0)."""
    if isinstance(value, float) and value.is_integer():
        text = str(int(value))
    else:
        text = str(value).strip()
    if text.endswith(".0"):
        text = text[:-2]
    return normalize_phone_number(text)


def format_phone_display(phone: str) -> str:
    if phone.startswith(COUNTRY_CODE) and len(phone) == 12:
        return "0" + phone[len(COUNTRY_CODE):]
    return phone

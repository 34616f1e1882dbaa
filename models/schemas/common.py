import re

from marshmallow import ValidationError

E164 = re.compile(r"\A\+\d{10,15}\Z")
_PHONE_CHARS = re.compile(r"[^\d\s\-\(\)\+\.]")


def normalize_email(value):
    return value.strip().lower() if isinstance(value, str) else value


def format_phone_to_e164(phone):
    """
    Best-effort E.164 formatting.
    10 digits are taken as US/Canada (+1), 11 digits starting with 1 get a '+',
    other 10-15 digit numbers are assumed to already carry a country code.
    Anything else is returned unchanged so validation can reject it.
    """
    if phone is None or not str(phone).strip():
        return None
    phone = str(phone).strip()
    digits = re.sub(r"\D", "", phone)
    # letters or too many digits: leave as is
    if _PHONE_CHARS.search(phone) or len(digits) > 15:
        return phone
    if len(digits) == 10:
        return f"+1{digits}"
    if len(digits) == 11 and digits.startswith("1"):
        return f"+{digits}"
    if 10 <= len(digits) <= 15:
        return f"+{digits}"
    return phone


def validate_phone(value):
    if value is not None and not E164.match(value):
        raise ValidationError("Phone must be a valid phone number.")


def validate_password_length(value, min_length: int):
    if value is None or len(value) < min_length:
        raise ValidationError(f"Password is too short (minimum is {min_length} characters).")


def validate_name(value):
    if value is None or not value.strip():
        raise ValidationError("Name can't be blank.")

import re

_E164 = re.compile(r"^\+\d{10,15}$")
_NON_DIGITS = re.compile(r"\D")


def normalize_to_e164(phone: str | None) -> str | None:
    """
    Canonicalize a phone number to E.164, assuming North America for bare
    10-digit numbers. Returns None when the input can't be a phone number.

        "(408) 555-0123"  -> "+14085550123"
        "1 408 555 0123"  -> "+14085550123"
        "+44 20 7946 0958" -> "+442079460958"
    """
    if not phone:
        return None
    compact = re.sub(r"\s+", "", str(phone))
    if _E164.match(compact):
        return compact
    digits = _NON_DIGITS.sub("", compact)
    if len(digits) == 10:
        return f"+1{digits}"
    if len(digits) == 11 and digits.startswith("1"):
        return f"+{digits}"
    if 10 <= len(digits) <= 15:
        return f"+{digits}"
    return None

"""Payload validation for /explain.

Only presence and size are checked. The text is never parsed as HL7: any
non-empty text within the size bound is forwarded to the model as-is.
"""

from typing import Optional


class PayloadValidationError(Exception):
    """Raised when the submitted payload is missing or too large."""

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(detail)


def validate_payload(text: Optional[str], max_chars: int) -> str:
    """Return text unchanged if it may be forwarded to the model.

    Args:
        text: The raw ``hl7`` field from the request body (may be None).
        max_chars: Maximum allowed length in characters.

    Raises:
        PayloadValidationError: If text is absent, blank, or longer than
            max_chars.
    """
    if text is None or not text.strip():
        raise PayloadValidationError("HL7 message is missing.")

    if len(text) > max_chars:
        raise PayloadValidationError(
            "HL7 message is too large ({} characters, maximum is {}).".format(
                len(text), max_chars
            )
        )

    return text

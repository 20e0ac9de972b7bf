from typing import Any, Optional

from exceptions import ValidationError


class TextValidator:
    """Checks for the free-text fields of books and members."""

    @staticmethod
    def clean(text: Optional[Any]) -> str:
        if text is None:
            return ""
        return str(text).strip()

    @staticmethod
    def is_blank(text: Optional[Any]) -> bool:
        return not TextValidator.clean(text)

    @staticmethod
    def require(text: Optional[Any], message: str) -> str:
        cleaned = TextValidator.clean(text)
        if not cleaned:
            raise ValidationError(message)
        return cleaned


class NumberValidator:
    """Integer coercion for copy counts and loan lengths.
    Accepts ints and integral strings/floats ("3", 3.0); rejects bools.
    """

    @staticmethod
    def to_int(value: Any, field_name: str) -> int:
        if isinstance(value, bool):
            raise ValidationError(f"{field_name} must be a whole number")
        if isinstance(value, int):
            return value
        if isinstance(value, float):
            if not value.is_integer():
                raise ValidationError(f"{field_name} must be a whole number")
            return int(value)
        text = TextValidator.clean(value)
        try:
            return int(text)
        except ValueError:
            raise ValidationError(f"{field_name} must be a whole number") from None

    @staticmethod
    def copies(value: Any) -> int:
        count = NumberValidator.to_int(value, "Copies")
        if count < 0:
            raise ValidationError("Copies cannot be negative")
        return count

    @staticmethod
    def loan_days(value: Any) -> int:
        days = NumberValidator.to_int(value, "Loan days")
        if days < 1:
            raise ValidationError("Loan days must be at least 1")
        return days

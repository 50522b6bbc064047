"""
Validation utilities and validators.
Centralized validation logic following single responsibility principle.
"""
from decimal import Decimal
from core.exceptions import ValidationError as AppValidationError

MAX_AMOUNT = Decimal('99999999.99')


class AmountValidator:
    """Validates money amounts"""

    @staticmethod
    def validate_amount(amount, field_name: str = "amount", allow_zero: bool = True):
        """Validate a non-negative amount within bounds"""
        if amount is None:
            raise AppValidationError(
                message=f"{field_name} is required",
                code="AMOUNT_REQUIRED"
            )
        amount = Decimal(str(amount))
        if amount < 0 or (not allow_zero and amount == 0):
            raise AppValidationError(
                message=f"{field_name} must be a positive number",
                code="INVALID_AMOUNT",
                details={"field": field_name}
            )
        if amount > MAX_AMOUNT:
            raise AppValidationError(
                message=f"{field_name} exceeds maximum allowed",
                code="AMOUNT_TOO_LARGE",
                details={"field": field_name}
            )
        return amount


class DateRangeValidator:
    """Validates date ranges"""

    @staticmethod
    def validate_range(start_date, end_date=None, start_field="start_date", end_field="end_date"):
        if start_date is None:
            raise AppValidationError(
                message=f"{start_field} is required",
                code="INVALID_START_DATE"
            )
        if end_date and end_date < start_date:
            raise AppValidationError(
                message=f"{end_field} cannot be before {start_field}",
                code="INVALID_END_DATE",
                details={start_field: str(start_date), end_field: str(end_date)}
            )


class ShareValidator:
    """Validates co-ownership shares"""

    @staticmethod
    def validate_shares(shares):
        if shares is None or shares < 0:
            raise AppValidationError(
                message="Shares must be zero or a positive number",
                code="INVALID_SHARES"
            )

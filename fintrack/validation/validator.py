"""
Form Validation

Checks what the user typed into the account and transaction forms before
anything is sent to the ledger.

Errors block the save; warnings are shown but the user may still save.
Validation NEVER silently fixes input. It reports issues for the user to
correct.
"""

from datetime import date, timedelta
from decimal import Decimal, InvalidOperation
from typing import Optional

from pydantic import BaseModel, Field

from fintrack.config import AppSettings, get_settings
from fintrack.models.ledger import BankAccount, find_category


class ValidationIssue(BaseModel):
    """A single problem found in a form."""

    field: str
    issue_type: str = Field(description="missing, invalid_value, out_of_range, ...")
    message: str
    severity: str = Field(default="error", description="error or warning")


class ValidationResult(BaseModel):
    """All issues found in one form submission."""

    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def errors(self) -> list[ValidationIssue]:
        return [i for i in self.issues if i.severity == "error"]

    @property
    def warnings(self) -> list[ValidationIssue]:
        return [i for i in self.issues if i.severity == "warning"]

    @property
    def has_errors(self) -> bool:
        return len(self.errors) > 0

    @property
    def error_count(self) -> int:
        return len(self.errors)

    @property
    def is_valid(self) -> bool:
        return not self.has_errors


def parse_amount(value) -> Optional[Decimal]:
    """Parse user input into a Decimal; None if it is not a finite number."""
    if value is None:
        return None
    if isinstance(value, Decimal):
        amount = value
    else:
        text = str(value).strip().replace(",", "")
        if not text:
            return None
        try:
            amount = Decimal(text)
        except InvalidOperation:
            return None
    if not amount.is_finite():
        return None
    return amount


class FormValidator:
    """Validates account and transaction form input."""

    def __init__(self, settings: Optional[AppSettings] = None):
        self._settings = settings or get_settings().app

    def validate_transaction(
        self,
        amount,
        account_id: Optional[str],
        category_id: Optional[str],
        txn_date: Optional[date],
        accounts: list[BankAccount],
        note: str = "",
        today: Optional[date] = None,
    ) -> ValidationResult:
        issues = []
        today = today or date.today()

        parsed = parse_amount(amount)
        if parsed is None:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="missing" if not str(amount or "").strip() else "invalid_value",
                message="Please enter the amount as a number.",
            ))
        elif parsed <= 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="The amount must be greater than zero.",
            ))
        elif parsed > Decimal(str(self._settings.max_transaction_amount)):
            issues.append(ValidationIssue(
                field="amount",
                issue_type="out_of_range",
                message="The amount is unusually large. Please check it.",
            ))

        if not account_id:
            issues.append(ValidationIssue(
                field="account_id",
                issue_type="missing",
                message="Please choose an account.",
            ))
        elif not any(a.id == account_id for a in accounts):
            issues.append(ValidationIssue(
                field="account_id",
                issue_type="invalid_value",
                message="The selected account no longer exists.",
            ))

        if not category_id:
            issues.append(ValidationIssue(
                field="category_id",
                issue_type="missing",
                message="Please choose a category.",
            ))
        elif find_category(category_id) is None:
            issues.append(ValidationIssue(
                field="category_id",
                issue_type="invalid_value",
                message="Unknown category.",
            ))

        if txn_date is None:
            issues.append(ValidationIssue(
                field="date",
                issue_type="missing",
                message="Please choose a date.",
            ))
        elif txn_date > today + timedelta(days=self._settings.future_date_tolerance_days):
            issues.append(ValidationIssue(
                field="date",
                issue_type="future_date",
                message="This date is far in the future.",
                severity="warning",
            ))

        if len(note) > 500:
            issues.append(ValidationIssue(
                field="note",
                issue_type="too_long",
                message="The note is limited to 500 characters.",
            ))

        return ValidationResult(issues=issues)

    def validate_account(self, name: str, bank_name: str, balance) -> ValidationResult:
        issues = []

        if not (name or "").strip():
            issues.append(ValidationIssue(
                field="name",
                issue_type="missing",
                message="Please enter an account name.",
            ))
        elif len(name.strip()) > 100:
            issues.append(ValidationIssue(
                field="name",
                issue_type="too_long",
                message="The account name is limited to 100 characters.",
            ))

        if len((bank_name or "").strip()) > 100:
            issues.append(ValidationIssue(
                field="bank_name",
                issue_type="too_long",
                message="The bank name is limited to 100 characters.",
            ))

        if parse_amount(balance) is None:
            issues.append(ValidationIssue(
                field="balance",
                issue_type="invalid_value",
                message="Please enter the balance as a number.",
            ))

        return ValidationResult(issues=issues)

    @staticmethod
    def get_user_friendly_summary(result: ValidationResult) -> str:
        """One message listing everything the user needs to fix."""
        if not result.issues:
            return ""
        return "\n".join(f"- {issue.message}" for issue in result.issues)

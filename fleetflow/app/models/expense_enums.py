"""
Expense log enumerations.
"""

import enum


class ExpenseCategory(str, enum.Enum):
    """Expense category enumeration."""
    FUEL = "FUEL"
    MISC = "MISC"


class FuelType(str, enum.Enum):
    """Fuel type enumeration."""
    DIESEL = "DIESEL"
    PETROL = "PETROL"
    CNG = "CNG"
    ELECTRIC = "ELECTRIC"


class MiscExpenseType(str, enum.Enum):
    """Miscellaneous expense type enumeration."""
    TOLL = "TOLL"
    PARKING = "PARKING"
    CLEANING = "CLEANING"
    PERMITS = "PERMITS"
    FINES = "FINES"
    OTHER = "OTHER"


class PaymentMethod(str, enum.Enum):
    """How the expense was paid."""
    CASH = "CASH"
    CARD = "CARD"
    UPI = "UPI"
    COMPANY_CARD = "COMPANY_CARD"
    FUEL_CARD = "FUEL_CARD"

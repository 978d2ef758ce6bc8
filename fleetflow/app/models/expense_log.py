"""
Expense log database model.

Append-only record of fuel and miscellaneous expenses.
"""

from sqlalchemy import Column, Integer, String, Float, Text, ForeignKey, DateTime, Enum
from sqlalchemy.orm import relationship
from fleetflow.app.core.clock import utcnow
from fleetflow.app.db.session import Base
from fleetflow.app.models.expense_enums import ExpenseCategory, FuelType, MiscExpenseType, PaymentMethod


class ExpenseLog(Base):
    """
    Expense log model.

    Creating one updates the vehicle's odometer and fuel efficiency and, for
    fuel linked to a trip, the trip's fuel totals, in the same transaction.
    """
    __tablename__ = "expense_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    log_number = Column(String(20), unique=True, nullable=False, index=True)

    trip_id = Column(Integer, ForeignKey('trips.id'), nullable=True, index=True)
    vehicle_id = Column(Integer, ForeignKey('vehicles.id'), nullable=False, index=True)
    driver_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)

    expense_category = Column(Enum(ExpenseCategory), default=ExpenseCategory.FUEL, nullable=False, index=True)

    # Fuel details
    fuel_type = Column(Enum(FuelType), nullable=True)
    liters = Column(Float, nullable=True)
    cost_per_liter = Column(Float, nullable=True)
    fuel_station = Column(String(150), nullable=True)

    # Misc details
    misc_expense_type = Column(Enum(MiscExpenseType), nullable=True)
    misc_description = Column(String(500), nullable=True)

    total_cost = Column(Float, nullable=False)
    expense_date = Column(DateTime, default=utcnow, nullable=False, index=True)
    location = Column(String(255), nullable=True)
    odometer_reading = Column(Float, nullable=False)
    payment_method = Column(Enum(PaymentMethod), default=PaymentMethod.CASH, nullable=False)

    # Efficiency metrics
    distance_covered = Column(Float, nullable=True)  # km since last fill
    fuel_efficiency = Column(Float, nullable=True)  # km/L

    notes = Column(String(500), nullable=True)
    created_by_id = Column(Integer, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)

    vehicle = relationship("Vehicle", foreign_keys=[vehicle_id], lazy="raise")
    driver = relationship("User", foreign_keys=[driver_id], lazy="raise")
    trip = relationship("Trip", foreign_keys=[trip_id], lazy="raise")

    def __repr__(self):
        return f"<ExpenseLog(id={self.id}, number='{self.log_number}', category='{self.expense_category.value}')>"

# backend/models/movement.py
import enum

from sqlalchemy import Column, Integer, String, Float, Boolean, ForeignKey, DateTime, Enum, CheckConstraint, func
from sqlalchemy.orm import relationship
from database import Base


class MovementType(str, enum.Enum):
    ENTRADA = "entrada"  # stock-in
    SAIDA = "saida"      # stock-out


class Movement(Base):
    __tablename__ = "movements"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)

    type = Column(
        Enum(MovementType, values_callable=lambda e: [m.value for m in e], name="movementtype"),
        nullable=False,
        index=True,
    )

    # Quantity as entered, expressed in `unit` (converted to the product unit when applied)
    quantity = Column(Float, CheckConstraint("quantity > 0"), nullable=False)
    unit = Column(String, nullable=False)

    employee_id = Column(Integer, ForeignKey("employees.id", ondelete="SET NULL"), nullable=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    notes = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    # Soft delete: rows stay for audit, they just stop counting towards stock
    deleted = Column(Boolean, nullable=False, default=False, index=True)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    # Set on automatic compensation entries, points at the deleted movement
    compensation_for_id = Column(Integer, ForeignKey("movements.id", ondelete="SET NULL"), nullable=True)

    product = relationship("Product", back_populates="movements", foreign_keys=[product_id])
    employee = relationship("Employee")
    user = relationship("User")
    compensation_for = relationship("Movement", remote_side=[id])

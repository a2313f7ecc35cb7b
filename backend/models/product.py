# backend/models/product.py
from sqlalchemy import Column, Integer, String, Float, ForeignKey, DateTime, CheckConstraint, func
from sqlalchemy.orm import relationship
from database import Base

# Model Product
# A single stock item. `quantity` is a cached running stock level: it must
# always equal initial_quantity plus the signed, unit-converted sum of the
# product's non-deleted movements. Only services.stock_service writes it.
class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String, unique=True, nullable=False, index=True)
    name = Column(String, nullable=False, index=True)
    description = Column(String, nullable=True)

    # Stored unit, e.g. "un", "kg", "l", "cx"
    unit = Column(String, nullable=False, default="un")

    quantity = Column(Float, CheckConstraint("quantity >= 0"), nullable=False, default=0)
    initial_quantity = Column(Float, nullable=False, default=0)
    min_quantity = Column(Float, CheckConstraint("min_quantity >= 0"), nullable=False, default=0)

    category_id = Column(Integer, ForeignKey("categories.id", ondelete="SET NULL"), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    category = relationship("Category", back_populates="products")
    movements = relationship(
        "Movement",
        back_populates="product",
        cascade="all, delete-orphan",
        passive_deletes=True,
        foreign_keys="Movement.product_id",
    )

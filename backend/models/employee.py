# backend/models/employee.py
import enum

from sqlalchemy import Column, Integer, String, DateTime, Enum, func
from database import Base


class EmployeeStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


# Colaborador: person responsible for stock-outs
class Employee(Base):
    __tablename__ = "employees"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String, unique=True, nullable=False, index=True)
    name = Column(String, nullable=False, index=True)
    status = Column(
        Enum(EmployeeStatus, values_callable=lambda e: [m.value for m in e], name="employeestatus"),
        nullable=False,
        default=EmployeeStatus.ACTIVE,
    )
    created_at = Column(DateTime(timezone=True), server_default=func.now())

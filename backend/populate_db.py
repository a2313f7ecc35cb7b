import os
import random
import sys

# Add 'backend' folder to Python path
sys.path.append(os.path.abspath(os.path.dirname(__file__)))

from sqlalchemy import func

from database import SessionLocal, init_db
from models.category import Category
from models.employee import Employee, EmployeeStatus
from models.movement import MovementType
from models.product import Product
from models.users import User
from services.errors import InsufficientStock
from services.stock_service import create_product, register_movement
from utils.hashing import get_password_hash

# Configuration
ADMIN_EMAIL = os.getenv("SEED_ADMIN_EMAIL", "admin@stashkeeper.local")
ADMIN_PASSWORD = os.getenv("SEED_ADMIN_PASSWORD", "admin123")
MOVEMENTS_PER_PRODUCT = 6
# End Configuration

CATEGORIES = {
    "Limpeza": "Produtos de limpeza e higiene",
    "Escritório": "Material de escritório",
    "Manutenção": "Ferramentas e materiais de manutenção",
}

EMPLOYEES = [
    ("C001", "Ana Souza", EmployeeStatus.ACTIVE),
    ("C002", "Bruno Lima", EmployeeStatus.ACTIVE),
    ("C003", "Carla Mendes", EmployeeStatus.ACTIVE),
    ("C004", "Diego Rocha", EmployeeStatus.INACTIVE),
]

# code, name, unit, opening stock, minimum, category
PRODUCTS = [
    ("1001", "Detergente neutro", "l", 40, 10, "Limpeza"),
    ("1002", "Sabão em pó", "kg", 25, 5, "Limpeza"),
    ("1003", "Pano de chão", "un", 60, 15, "Limpeza"),
    ("2001", "Papel A4 (resma)", "cx", 30, 8, "Escritório"),
    ("2002", "Caneta esferográfica azul", "un", 200, 50, "Escritório"),
    ("3001", "Fita isolante", "m", 150, 20, "Manutenção"),
    ("3002", "Parafuso 4x40", "un", 500, 100, "Manutenção"),
]

# Units a movement may be entered in, per product unit
ENTRY_UNITS = {"l": ["l", "ml"], "kg": ["kg", "g"], "m": ["m", "cm"]}


def ensure_admin(db):
    admin = db.query(User).filter(func.lower(User.email) == ADMIN_EMAIL.lower()).first()
    if admin:
        return admin
    admin = User(email=ADMIN_EMAIL.lower(), password_hash=get_password_hash(ADMIN_PASSWORD),
                 role="admin", first_name="Admin", last_name="StashKeeper")
    db.add(admin)
    db.commit()
    db.refresh(admin)
    print(f"👤 Created admin {ADMIN_EMAIL}")
    return admin


def seed_categories(db):
    result = {}
    for name, description in CATEGORIES.items():
        category = db.query(Category).filter(Category.name == name).first()
        if not category:
            category = Category(name=name, description=description)
            db.add(category)
            db.commit()
            db.refresh(category)
        result[name] = category
    return result


def seed_employees(db):
    result = []
    for code, name, status in EMPLOYEES:
        employee = db.query(Employee).filter(Employee.code == code).first()
        if not employee:
            employee = Employee(code=code, name=name, status=status)
            db.add(employee)
            db.commit()
            db.refresh(employee)
        result.append(employee)
    return result


def seed_products(db, categories):
    result = []
    for code, name, unit, quantity, minimum, category in PRODUCTS:
        product = db.query(Product).filter(Product.code == code).first()
        if not product:
            product = create_product(
                db, code=code, name=name, unit=unit, quantity=quantity,
                min_quantity=minimum, category_id=categories[category].id,
            )
        result.append(product)
    return result


def seed_movements(db, products, employees, admin):
    active = [e for e in employees if e.status == EmployeeStatus.ACTIVE]
    count = 0
    for product in products:
        for _ in range(MOVEMENTS_PER_PRODUCT):
            unit = random.choice(ENTRY_UNITS.get(product.unit, [product.unit]))
            big = unit in ("ml", "g", "cm")
            quantity = random.randint(50, 900) if big else random.randint(1, 12)
            movement_type = random.choice([MovementType.ENTRADA, MovementType.SAIDA, MovementType.SAIDA])
            try:
                register_movement(
                    db,
                    product_id=product.id,
                    type=movement_type,
                    quantity=quantity,
                    unit=unit,
                    employee_id=random.choice(active).id if movement_type == MovementType.SAIDA else None,
                    user_id=admin.id,
                    notes="Movimentação de demonstração",
                )
                count += 1
            except InsufficientStock:
                continue
    return count


def main():
    init_db()
    session = SessionLocal()
    try:
        admin = ensure_admin(session)
        categories = seed_categories(session)
        employees = seed_employees(session)
        products = seed_products(session, categories)
        print(f"📦 {len(categories)} categories, {len(employees)} employees, {len(products)} products")
        created = seed_movements(session, products, employees, admin)
        print(f"✅ Registered {created} movements.")
    finally:
        session.close()


if __name__ == "__main__":
    main()

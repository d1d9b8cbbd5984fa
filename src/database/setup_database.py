"""
Database Setup Script
Creates all tables and seeds an org chart, a project and a starter chart of accounts
"""

from datetime import datetime

from src.config.database import Base, SessionLocal, engine
from src.models import (  # noqa: F401
    user, department, project, travel_request, approval, claim,
    attachment, bailout, notification, audit_log, chart_of_account
)
from src.models.chart_of_account import ChartOfAccount, COAType
from src.models.department import Department
from src.models.project import Project
from src.models.user import User, UserRole
from src.utils.security import get_password_hash


DEMO_PASSWORD = "password123"

DEMO_USERS = [
    # (key, name, email, employee_id, role, supervisor key, phone)
    ("admin", "System Administrator", "admin@company.com", "EMP001", UserRole.ADMIN, None, "+62 811 0000 001"),
    ("director", "Operations Director", "director@company.com", "EMP002", UserRole.DIRECTOR, None, "+62 811 0000 002"),
    ("manager", "Sales Manager", "manager@company.com", "EMP003", UserRole.MANAGER, "director", "+62 811 0000 003"),
    ("finance", "Finance Officer", "finance@company.com", "EMP004", UserRole.FINANCE, "director", "+62 811 0000 004"),
    ("chief", "Sales Chief", "chief@company.com", "EMP005", UserRole.SALES_CHIEF, "manager", "+62 811 0000 005"),
    ("supervisor", "Team Supervisor", "supervisor@company.com", "EMP006", UserRole.SUPERVISOR, "manager", "+62 811 0000 006"),
    ("employee", "Field Employee", "employee@company.com", "EMP007", UserRole.EMPLOYEE, "supervisor", "+62 811 0000 007"),
    ("sales", "Sales Employee", "sales@company.com", "EMP008", UserRole.SALES_EMPLOYEE, "chief", "+62 811 0000 008"),
]

DEMO_ACCOUNTS = [
    # (code, name, type, category, parent code)
    ("6000", "Operating Expenses", COAType.EXPENSE, "Operating", None),
    ("6100", "Travel Expenses", COAType.EXPENSE, "Travel", "6000"),
    ("6110", "Transportation", COAType.EXPENSE, "Travel", "6100"),
    ("6120", "Accommodation", COAType.EXPENSE, "Travel", "6100"),
    ("6200", "Entertainment", COAType.EXPENSE, "Entertainment", "6000"),
    ("6300", "Communication", COAType.EXPENSE, "Operating", "6000"),
    ("1300", "Employee Advances", COAType.ASSET, "Receivables", None),
]


def create_tables():
    """Create all database tables"""
    print("Creating database tables...")
    Base.metadata.create_all(bind=engine)
    print("✓ Database tables created successfully")


def seed_organisation(db):
    """Departments and one user per role"""
    if db.query(User).first():
        print("✓ Users already exist, skipping...")
        return

    sales = Department(code="SALES", name="Sales", description="Sales and key accounts")
    ops = Department(code="OPS", name="Operations")
    db.add_all([sales, ops])
    db.flush()

    users = {}
    for key, name, email, employee_id, role, supervisor_key, phone in DEMO_USERS:
        member = User(
            name=name,
            email=email,
            employee_id=employee_id,
            hashed_password=get_password_hash(DEMO_PASSWORD),
            role=role,
            phone_number=phone,
            department_id=ops.id if key in ("finance", "director", "admin") else sales.id,
            supervisor_id=users[supervisor_key].id if supervisor_key else None
        )
        db.add(member)
        db.flush()
        users[key] = member

    sales.manager_id = users["manager"].id
    sales.director_id = users["director"].id
    ops.director_id = users["director"].id

    db.commit()
    print(f"✓ Created {len(users)} users (password: {DEMO_PASSWORD})")


def seed_projects(db):
    if db.query(Project).first():
        return
    db.add(Project(code="PRJ-ACME", name="ACME Rollout", client_name="ACME Corp", description="Regional rollout"))
    db.commit()
    print("✓ Created demo project")


def seed_chart_of_accounts(db):
    if db.query(ChartOfAccount).first():
        return
    admin = db.query(User).filter(User.role == UserRole.ADMIN).first()
    created = {}
    for code, name, account_type, category, parent_code in DEMO_ACCOUNTS:
        account = ChartOfAccount(
            code=code,
            name=name,
            account_type=account_type,
            category=category,
            parent_id=created[parent_code].id if parent_code else None,
            created_by_id=admin.id if admin else None,
            created_at=datetime.utcnow()
        )
        db.add(account)
        db.flush()
        created[code] = account
    db.commit()
    print(f"✓ Created {len(created)} ledger accounts")


def main():
    create_tables()
    db = SessionLocal()
    try:
        seed_organisation(db)
        seed_projects(db)
        seed_chart_of_accounts(db)
    finally:
        db.close()
    print("\nDatabase setup complete.")


if __name__ == "__main__":
    main()

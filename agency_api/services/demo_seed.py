# agency_api/services/demo_seed.py
"""Demo data for `flask seed-demo`: users, their employee profiles, categories, a client and a project."""
from __future__ import annotations

import logging
from datetime import date, timedelta

from agency_api.extensions import db
from agency_api.models.category import Category
from agency_api.models.client import Client
from agency_api.models.employee import Employee
from agency_api.models.project import Project
from agency_api.models.task import Task
from agency_api.services.auth_service import DEMO_USERS, ensure_demo_users

log = logging.getLogger(__name__)

DEFAULT_CATEGORIES = {
    "project": ["Web Development", "Branding", "Marketing Campaign", "Video Production"],
    "task": ["Design", "Development", "Content", "Review"],
    "leave": [
        {"name": "Annual Leave", "max_days": 21, "requires_approval": True},
        {"name": "Sick Leave", "max_days": 10, "requires_approval": True},
        {"name": "Personal Leave", "max_days": 5, "requires_approval": True},
        {"name": "Unpaid Leave", "requires_approval": True},
    ],
    "payment": ["Bank Transfer", "Credit Card", "Cash", "Check", "PayPal"],
    "finance": [
        {"name": "Client Payment", "txn_type": "income", "subcategories": ["Project Fee", "Retainer"]},
        {"name": "Salary", "txn_type": "expense", "subcategories": ["Base", "Overtime", "Bonus"]},
        {"name": "Office Supplies", "txn_type": "expense", "subcategories": ["Stationery", "Equipment"]},
        {"name": "Travel", "txn_type": "expense", "subcategories": ["Transport", "Meals"]},
    ],
    "jobrole": ["Designer", "Developer", "Project Coordinator", "HR Manager", "General Manager", "Administrator"],
    "department": ["Creative", "Engineering", "Operations", "Human Resources", "Management"],
}

_PROFILE = {
    "admin": ("Administrator", "Management"),
    "general_manager": ("General Manager", "Management"),
    "project_coordinator": ("Project Coordinator", "Operations"),
    "employee": ("Developer", "Engineering"),
    "hr": ("HR Manager", "Human Resources"),
}


def ensure_categories() -> int:
    created = 0
    for ctype, entries in DEFAULT_CATEGORIES.items():
        for entry in entries:
            entry = entry if isinstance(entry, dict) else {"name": entry}
            if Category.query.filter_by(type=ctype, name=entry["name"]).first():
                continue
            db.session.add(Category(type=ctype, **entry))
            created += 1
    db.session.commit()
    return created


def ensure_employee_profiles() -> dict:
    """One Employee row per demo user; returns {role: Employee}."""
    out = {}
    users = ensure_demo_users()
    for n, (u, _) in enumerate(users, start=1):
        emp = Employee.query.filter_by(user_id=u.id).first()
        if not emp:
            demo = next(d for d in DEMO_USERS if d["email"] == u.email)
            job_role, dept = _PROFILE[u.role]
            emp = Employee(user_id=u.id, code=f"EMP-DEMO-{n}", email=u.email,
                           first_name=demo["first_name"], last_name=demo["last_name"],
                           job_role=job_role, department=dept, join_date=date.today() - timedelta(days=365))
            db.session.add(emp)
        out[u.role] = emp
    db.session.commit()
    return out


def seed_demo() -> dict:
    cats = ensure_categories()
    staff = ensure_employee_profiles()

    client = Client.query.filter_by(email="contact@acme.example").first()
    if not client:
        client = Client(name="Acme Corp", email="contact@acme.example", company="Acme Corporation")
        db.session.add(client)
        db.session.flush()

    project = Project.query.filter_by(name="Acme Website Redesign").first()
    if not project:
        today = date.today()
        project = Project(name="Acme Website Redesign", client_id=client.id, client_name=client.name,
                          category="Web Development", start_date=today, end_date=today + timedelta(days=60),
                          coordinator_id=staff["project_coordinator"].id, budget=25000)
        db.session.add(project)
        db.session.flush()
        main = Task(project_id=project.id, title="Build landing page", priority="high",
                    due_date=today + timedelta(days=14), assigned_to_id=staff["employee"].id,
                    category="Development", estimated_hours=16)
        db.session.add(main)
        db.session.flush()
        db.session.add(Task(project_id=project.id, title="Hero section copy", priority="medium",
                            task_type="sub", parent_task_id=main.id, category="Content",
                            due_date=today + timedelta(days=7), assigned_to_id=staff["employee"].id,
                            estimated_hours=3))
    db.session.commit()
    log.info("demo data ensured (%d new categories)", cats)
    return {"categories_created": cats, "employees": len(staff), "client_id": client.id,
            "project_id": project.id}

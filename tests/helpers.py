from datetime import date

from agency_api.extensions import db
from agency_api.models.client import Client
from agency_api.models.project import Project


def make_client_project(staff, name="Acme Corp"):
    c = Client(name=name, email=f"billing@{name.split()[0].lower()}.example")
    db.session.add(c)
    db.session.flush()
    p = Project(name=f"{name} website", client_id=c.id, client_name=c.name, category="Web Development",
                start_date=date(2024, 1, 1), end_date=date(2024, 6, 30),
                coordinator_id=staff["project_coordinator"].id)
    db.session.add(p)
    db.session.commit()
    return c, p


def invoice_body(client, project, **over):
    body = {
        "client_id": client.id,
        "project_id": project.id,
        "date_issued": "2024-02-01",
        "due_date": "2024-03-01",
        "tax_rate": 10,
        "items": [
            {"description": "Design", "quantity": 2, "unit_price": 100},
            {"description": "Hosting", "quantity": 1, "unit_price": 50},
        ],
    }
    body.update(over)
    return body

import logging
import os
from datetime import timedelta

import click
from flask import Flask
from flask_cors import CORS

from agency_api.extensions import db, migrate, jwt, init_db
from agency_api.common.errors import register_error_handlers
from agency_api.models import load_all


def create_app(config_object: str | None = None):
    app = Flask(__name__)

    # Basic inline config (defaults)
    app.config["JWT_SECRET_KEY"] = os.getenv("JWT_SECRET_KEY", "dev-jwt-secret-change-me-before-deploying")
    app.config["JWT_ACCESS_TOKEN_EXPIRES"] = timedelta(hours=2)
    app.config["JWT_REFRESH_TOKEN_EXPIRES"] = timedelta(days=7)
    app.config["JWT_DECODE_LEEWAY"] = 120  # 2 minutes grace for clock skew
    app.config["SQLALCHEMY_DATABASE_URI"] = os.getenv("DATABASE_URL", "sqlite:///agency_dev.db")
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False

    app.config["DEMO_PASSWORD"] = os.getenv("DEMO_PASSWORD", "demo123")
    app.config["STANDARD_CHECK_IN"] = os.getenv("STANDARD_CHECK_IN", "09:00")
    app.config["DEFAULT_CURRENCY"] = os.getenv("DEFAULT_CURRENCY", "USD")
    app.config["INVOICE_PREFIX"] = os.getenv("INVOICE_PREFIX", "INV")

    # Try loading external config, but don't crash if missing
    if config_object:
        try:
            app.config.from_object(config_object)
        except ImportError as e:
            app.logger.warning("Could not import config object %r: %s", config_object, e)

    if not app.debug and not app.testing:
        app.logger.setLevel(os.getenv("LOG_LEVEL", "INFO"))
    logging.getLogger("agency_api").setLevel(os.getenv("LOG_LEVEL", "INFO"))

    # CORS (dev)
    CORS(app, resources={r"/api/*": {"origins": "*"}})

    # Extensions
    init_db(app)
    register_error_handlers(app)
    jwt.init_app(app)
    migrate.init_app(app, db)

    # Ensure models are loaded so metadata is complete
    with app.app_context():
        load_all()

    # Blueprints
    from agency_api.blueprints.auth import bp as auth_bp
    from agency_api.blueprints.users import bp as users_bp
    from agency_api.blueprints.employees import bp as employees_bp
    from agency_api.blueprints.clients import bp as clients_bp
    from agency_api.blueprints.projects import bp as projects_bp
    from agency_api.blueprints.tasks import bp as tasks_bp
    from agency_api.blueprints.work_submissions import bp as work_submissions_bp
    from agency_api.blueprints.attendance import bp as attendance_bp
    from agency_api.blueprints.leave import bp as leave_bp
    from agency_api.blueprints.invoices import bp as invoices_bp
    from agency_api.blueprints.finance import bp as finance_bp
    from agency_api.blueprints.categories import bp as categories_bp
    from agency_api.blueprints.notifications import bp as notifications_bp
    from agency_api.blueprints.dashboard import bp as dashboard_bp
    from agency_api.blueprints.meta import bp as meta_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(employees_bp)
    app.register_blueprint(clients_bp)
    app.register_blueprint(projects_bp)
    app.register_blueprint(tasks_bp)
    app.register_blueprint(work_submissions_bp)
    app.register_blueprint(attendance_bp)
    app.register_blueprint(leave_bp)
    app.register_blueprint(invoices_bp)
    app.register_blueprint(finance_bp)
    app.register_blueprint(categories_bp)
    app.register_blueprint(notifications_bp)
    app.register_blueprint(dashboard_bp)
    app.register_blueprint(meta_bp)

    register_cli(app)
    return app


def register_cli(app):
    # ----------------- CLI COMMANDS -----------------

    @app.cli.command("init-db")
    def init_db_cmd():
        """Create all tables (use `flask db upgrade` once migrations exist)."""
        db.create_all()
        click.echo("Tables created.")

    @app.cli.command("seed-demo")
    def seed_demo_cmd():
        """Seed the five demo users, their employee profiles, categories and a sample project."""
        from agency_api.services.demo_seed import seed_demo
        db.create_all()
        out = seed_demo()
        click.echo(
            "Seeded/ensured: admin@agency.com, gm@agency.com, coordinator@agency.com, "
            f"employee@agency.com, hr@agency.com / {app.config['DEMO_PASSWORD']}; "
            f"{out['categories_created']} new categories; project #{out['project_id']}"
        )

    auth_cli = click.Group("auth", help="Persisted demo session (currentUser).")

    @auth_cli.command("login")
    @click.option("--email", prompt=True)
    @click.option("--password", prompt=True, hide_input=True)
    def auth_login(email, password):
        from agency_api.common.errors import AuthError
        from agency_api.services.auth_service import auth_service
        try:
            user = auth_service.login(email, password)
        except AuthError as e:
            raise click.ClickException(e.message)
        click.echo(f"Signed in as {user['email']} ({user['role']})")

    @auth_cli.command("logout")
    def auth_logout():
        from agency_api.services.auth_service import auth_service
        auth_service.logout()
        click.echo("Signed out.")

    @auth_cli.command("whoami")
    def auth_whoami():
        from agency_api.services.auth_service import auth_service
        user = auth_service.get_current_user()
        if not user:
            click.echo("Not signed in.")
            return
        click.echo(f"{user['first_name']} {user['last_name']} <{user['email']}> role={user['role']}")

    invoices_cli = click.Group("invoices", help="Invoice maintenance.")

    @invoices_cli.command("mark-overdue")
    def invoices_mark_overdue():
        from agency_api.services.invoicing import mark_overdue
        rows = mark_overdue()
        db.session.commit()
        click.echo(f"{len(rows)} invoice(s) marked overdue")

    app.cli.add_command(auth_cli)
    app.cli.add_command(invoices_cli)

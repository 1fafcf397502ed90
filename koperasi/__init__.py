from dotenv import load_dotenv

load_dotenv()  # akan membaca file .env di root project
from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_wtf import CSRFProtect


from .config_db import load_env_once, resolve_database_uri, resolve_secret_key

db = SQLAlchemy()
migrate = Migrate()
csrf = CSRFProtect()


def format_rupiah(value):
    try:
        amount = float(value or 0)
    except (TypeError, ValueError):
        return "Rp 0"
    sign = "-" if amount < 0 else ""
    return f"{sign}Rp {abs(amount):,.0f}".replace(",", ".")


def create_app(config_overrides=None):
    app = Flask(__name__)

    # Load .env dan resolve DSN/SECRET
    load_env_once()
    app.config["SQLALCHEMY_DATABASE_URI"] = resolve_database_uri()
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
    app.config["SECRET_KEY"] = resolve_secret_key()
    app.config["WTF_CSRF_TIME_LIMIT"] = None
    # jumlah percobaan ulang transaksi saat terjadi konflik versi dokumen
    app.config.setdefault("LEDGER_TRANSACTION_RETRIES", 3)
    if config_overrides:
        app.config.update(config_overrides)

    db.init_app(app)
    migrate.init_app(app, db)
    csrf.init_app(app)
    app.jinja_env.filters["rupiah"] = format_rupiah

    from koperasi.routes import bp
    from koperasi.cli import register_commands
    from koperasi.store import install_change_feed

    csrf.exempt(bp)
    app.register_blueprint(bp)
    register_commands(app)
    install_change_feed()

    @app.shell_context_processor
    def _ctx():
        # supaya model langsung tersedia di flask shell
        from koperasi import models

        ctx = {"db": db}
        for name in dir(models):
            if not name.startswith("_"):
                ctx[name] = getattr(models, name)
        return ctx

    return app

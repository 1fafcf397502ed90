# tests/conftest.py
import os
import pytest
from sqlalchemy.pool import StaticPool

# --- Paksa environment test yang aman ---
os.environ.setdefault("FLASK_ENV", "test")
os.environ.setdefault("SECRET_KEY", "test")
# Gunakan SQLite in-memory agar tidak butuh MySQL saat CI
os.environ["SQLALCHEMY_DATABASE_URI"] = "sqlite:///:memory:"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"

# Kosongkan env MYSQL_* supaya kode tidak memaksa DSN MySQL
for k in ("MYSQL_HOST", "MYSQL_PORT", "MYSQL_USER", "MYSQL_PASSWORD", "MYSQL_DATABASE"):
    os.environ[k] = ""

from koperasi import create_app, db  # noqa: E402
from koperasi.accounts import find_by_code, seed_default_chart  # noqa: E402
from koperasi.settings import KoperasiSettings  # noqa: E402


@pytest.fixture()
def app():
    a = create_app(
        {
            "TESTING": True,
            "WTF_CSRF_ENABLED": False,
            "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
            "SQLALCHEMY_ENGINE_OPTIONS": {
                "connect_args": {"check_same_thread": False},
                "poolclass": StaticPool,
            },
        }
    )
    with a.app_context():
        db.create_all()
        yield a
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def runner(app):
    return app.test_cli_runner()


@pytest.fixture()
def settings():
    return KoperasiSettings()


@pytest.fixture()
def coa(app):
    """Bagan akun bawaan; akses akun lewat kode, mis. ``coa["1-1100"]``."""
    seed_default_chart()

    class _Chart:
        def __getitem__(self, kode):
            account = find_by_code(kode)
            assert account is not None, kode
            return account

    return _Chart()

import os
from urllib.parse import quote_plus
from typing import Optional

from dotenv import load_dotenv, dotenv_values

_ENV_LOADED = False
_DOTENV_VALUES = {}


def load_env_once(dotenv_path: Optional[str] = None) -> None:
    """
    Load .env sekali saja; nilai mentah file disimpan terpisah agar bisa
    dibedakan dari variabel yang di-set lewat shell.
    """
    global _ENV_LOADED, _DOTENV_VALUES
    if _ENV_LOADED:
        return
    path = dotenv_path or os.path.join(os.getcwd(), ".env")
    load_dotenv(path)
    _DOTENV_VALUES = dotenv_values(path)
    _ENV_LOADED = True


def _first_nonempty(*vals: Optional[str]) -> Optional[str]:
    for v in vals:
        if v:
            v = v.strip()
            if v:
                return v
    return None


def env_value(key: str, default: Optional[str] = None) -> Optional[str]:
    # Prioritas: ENV -> .env mentah -> default
    return _first_nonempty(os.environ.get(key), _DOTENV_VALUES.get(key)) or default


def env_number(key: str, default: float) -> float:
    raw = env_value(key)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _normalize_pg(url: Optional[str]) -> Optional[str]:
    if url and url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql://", 1)
    return url


def _mysql_from_parts() -> Optional[str]:
    """
    Rakit DSN MySQL dari MYSQL_USER/MYSQL_USERNAME, MYSQL_PASSWORD,
    MYSQL_HOST (127.0.0.1), MYSQL_PORT (3306), MYSQL_DB/MYSQL_DATABASE
    dan MYSQL_CHARSET (utf8mb4).
    """
    user = _first_nonempty(env_value("MYSQL_USER"), env_value("MYSQL_USERNAME"))
    db = _first_nonempty(env_value("MYSQL_DB"), env_value("MYSQL_DATABASE"))
    if not (user and db):
        return None

    pwd = env_value("MYSQL_PASSWORD", "")
    host = env_value("MYSQL_HOST", "127.0.0.1")
    port = env_value("MYSQL_PORT", "3306")
    charset = env_value("MYSQL_CHARSET", "utf8mb4")
    return f"mysql+pymysql://{user}:{quote_plus(pwd or '')}@{host}:{port}/{db}?charset={charset}"


def resolve_database_uri() -> str:
    """
    Urutan:
      1) SQLALCHEMY_DATABASE_URI (ENV lalu .env)
      2) DATABASE_URL (.env lalu ENV)
      3) MYSQL_* (ENV/.env)
      4) sqlite:///instance/koperasi.db
    """
    url = _first_nonempty(
        os.environ.get("SQLALCHEMY_DATABASE_URI"),
        _DOTENV_VALUES.get("SQLALCHEMY_DATABASE_URI"),
    )
    if url:
        return _normalize_pg(url)

    url = _first_nonempty(_DOTENV_VALUES.get("DATABASE_URL"), os.environ.get("DATABASE_URL"))
    if url:
        return _normalize_pg(url)

    url = _mysql_from_parts()
    if url:
        return url

    inst = os.path.abspath(os.path.join(os.getcwd(), "instance"))
    os.makedirs(inst, exist_ok=True)
    return f"sqlite:///{os.path.join(inst, 'koperasi.db')}"


def resolve_secret_key() -> str:
    return _first_nonempty(os.environ.get("SECRET_KEY"),
                           _DOTENV_VALUES.get("SECRET_KEY"),
                           "dev-secret-key")  # jangan pakai di production

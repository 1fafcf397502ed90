import logging
import math
from dataclasses import dataclass, field, fields, asdict, replace

from flask import current_app

from koperasi import db
from koperasi.config_db import env_number, env_value
from koperasi.errors import ValidationError
from koperasi.models import Pengaturan
from koperasi.store import atomic

_EXTENSION_KEY = "koperasi_settings"

DEFAULT_MENU_ACCESS = {
    "admin": ["dashboard", "anggota", "simpanan", "murabahah", "akuntansi", "laporan", "proses_bulanan", "pengaturan"],
    "pengurus": ["dashboard", "anggota", "simpanan", "murabahah", "akuntansi", "laporan", "proses_bulanan"],
    "anggota": ["portal", "simulasi"],
}


@dataclass(frozen=True)
class KoperasiSettings:
    simpanan_pokok: float = 150000.0
    simpanan_wajib: float = 50000.0
    margin_tenor_6: float = 10.0
    margin_tenor_12: float = 15.0
    margin_tenor_18: float = 20.0
    margin_tenor_24: float = 30.0
    plafon_pembiayaan_gaji: float = 5.0
    maksimal_cicilan_gaji: float = 3.0
    akun_piutang_gaji: str = "1-1400"
    akun_simpanan_wajib: str = "2-1100"
    akun_piutang_murabahah: str = "1-1200"
    akun_pendapatan_margin: str = "4-1000"
    menu_access: dict = field(default_factory=lambda: dict(DEFAULT_MENU_ACCESS))

    @property
    def batch_account_codes(self):
        return {
            "piutang_gaji": self.akun_piutang_gaji,
            "simpanan_wajib": self.akun_simpanan_wajib,
            "piutang_murabahah": self.akun_piutang_murabahah,
            "pendapatan_margin": self.akun_pendapatan_margin,
        }

    def to_dict(self):
        return asdict(self)


NUMERIC_FIELDS = tuple(f.name for f in fields(KoperasiSettings) if f.type is float)
CODE_FIELDS = (
    "akun_piutang_gaji",
    "akun_simpanan_wajib",
    "akun_piutang_murabahah",
    "akun_pendapatan_margin",
)


def default_settings():
    """Nilai bawaan, bisa ditimpa lewat ENV (mis. KOPERASI_SIMPANAN_WAJIB)."""
    base = KoperasiSettings()
    overrides = {}
    for name in NUMERIC_FIELDS:
        overrides[name] = env_number(f"KOPERASI_{name.upper()}", getattr(base, name))
    for name in CODE_FIELDS:
        overrides[name] = env_value(f"KOPERASI_{name.upper()}", getattr(base, name))
    return replace(base, **overrides)


def _from_row(row):
    values = {name: getattr(row, name) for name in NUMERIC_FIELDS + CODE_FIELDS}
    values["menu_access"] = dict(row.menu_access or DEFAULT_MENU_ACCESS)
    return KoperasiSettings(**values)


def _ensure_row():
    row = Pengaturan.query.order_by(Pengaturan.id.asc()).first()
    if row is None:
        logging.info("Dokumen pengaturan tidak ditemukan, membuat dengan nilai bawaan")
        defaults = default_settings()
        row = Pengaturan(**defaults.to_dict())
        db.session.add(row)
        db.session.flush()
    return row


def load_settings():
    with atomic():
        row = _ensure_row()
        settings = _from_row(row)
    current_app.extensions[_EXTENSION_KEY] = settings
    return settings


def reload_settings():
    settings = load_settings()
    logging.info("Pengaturan koperasi dimuat ulang")
    return settings


def get_settings():
    settings = current_app.extensions.get(_EXTENSION_KEY)
    if settings is None:
        settings = load_settings()
    return settings


def update_settings(changes):
    """Simpan perubahan parsial (merge) lalu muat ulang value object."""
    unknown = set(changes) - set(NUMERIC_FIELDS + CODE_FIELDS + ("menu_access",))
    if unknown:
        raise ValidationError(f"Pengaturan tidak dikenal: {', '.join(sorted(unknown))}.")

    cleaned = {}
    for name, value in changes.items():
        if name in NUMERIC_FIELDS:
            try:
                number = float(value)
            except (TypeError, ValueError):
                raise ValidationError(f"Nilai {name} harus berupa angka.") from None
            if not math.isfinite(number):
                raise ValidationError(f"Nilai {name} harus berupa angka.")
            if number < 0:
                raise ValidationError(f"Nilai {name} tidak boleh negatif.")
            if name == "maksimal_cicilan_gaji" and number == 0:
                raise ValidationError("Pembagi maksimal cicilan tidak boleh 0.")
            cleaned[name] = number
        elif name in CODE_FIELDS:
            code = (value or "").strip().upper()
            if not code:
                raise ValidationError(f"Kode akun {name} wajib diisi.")
            cleaned[name] = code
        else:
            if not isinstance(value, dict):
                raise ValidationError("menu_access harus berupa objek peran -> daftar menu.")
            cleaned[name] = value

    with atomic():
        row = _ensure_row()
        for name, value in cleaned.items():
            setattr(row, name, value)
    return reload_settings()

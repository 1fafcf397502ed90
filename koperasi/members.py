import logging
import math
from datetime import date, datetime

from koperasi import db
from koperasi.errors import ReferenceNotFound, ValidationError
from koperasi.models import (
    JENIS_SIMPANAN,
    STATUS_AKTIF,
    STATUS_TIDAK_AKTIF,
    UNIT_ORDER,
    Anggota,
    TransaksiSimpanan,
)
from koperasi.store import run_atomic
from koperasi.time_utils import local_today

TIPE_SETOR = "Setor"
TIPE_TARIK = "Tarik"

_MEMBER_FIELDS = (
    "nama",
    "nip",
    "unit",
    "tgl_gabung",
    "status",
    "simpanan_pokok",
    "simpanan_wajib",
    "simpanan_sukarela",
)


def _parse_date(value):
    if value in (None, ""):
        return None
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value).strip(), "%Y-%m-%d").date()
    except ValueError:
        raise ValidationError("Format tanggal tidak valid (gunakan YYYY-MM-DD).") from None


def get_member(anggota_id):
    anggota = db.session.get(Anggota, anggota_id)
    if anggota is None:
        raise ReferenceNotFound(f"Anggota ID {anggota_id} tidak ditemukan.")
    return anggota


def _apply_member_fields(anggota, data):
    for name in _MEMBER_FIELDS:
        if name not in data:
            continue
        value = data[name]
        if name in ("nama", "nip"):
            value = (value or "").strip()
            if not value:
                raise ValidationError(f"Kolom {name} wajib diisi.")
        elif name == "unit":
            if value not in UNIT_ORDER:
                raise ValidationError(f"Unit tidak dikenal: {value}.")
        elif name == "status":
            if value not in (STATUS_AKTIF, STATUS_TIDAK_AKTIF):
                raise ValidationError(f"Status anggota tidak dikenal: {value}.")
        elif name == "tgl_gabung":
            value = _parse_date(value) or local_today()
        else:
            try:
                value = round(float(value or 0), 2)
            except (TypeError, ValueError):
                raise ValidationError(f"Nilai {name} harus berupa angka.") from None
            if not math.isfinite(value):
                raise ValidationError(f"Nilai {name} harus berupa angka.")
            if value < 0:
                raise ValidationError(f"Nilai {name} tidak boleh negatif.")
        setattr(anggota, name, value)


def _create_member(data, settings):
    data = dict(data)
    data.setdefault("simpanan_pokok", settings.simpanan_pokok)
    data.setdefault("tgl_gabung", None)
    if not (data.get("nip") or "").strip():
        raise ValidationError("NIP wajib diisi.")
    if Anggota.query.filter_by(nip=data["nip"].strip()).first():
        raise ValidationError(f"NIP {data['nip'].strip()} sudah terdaftar.")

    anggota = Anggota(status=STATUS_AKTIF, unit="Supporting")
    _apply_member_fields(anggota, data)
    db.session.add(anggota)
    db.session.flush()
    return anggota


def create_member(data, settings):
    anggota = run_atomic(_create_member, data, settings)
    logging.info("Anggota %s (%s) didaftarkan", anggota.nama, anggota.nip)
    return anggota


def _update_member(anggota_id, data):
    anggota = get_member(anggota_id)
    new_nip = (data.get("nip") or "").strip()
    if new_nip and new_nip != anggota.nip:
        if Anggota.query.filter_by(nip=new_nip).first():
            raise ValidationError(f"NIP {new_nip} sudah terdaftar.")
    # saldo simpanan hanya berubah lewat transaksi
    editable = {k: v for k, v in data.items() if not k.startswith("simpanan_")}
    _apply_member_fields(anggota, editable)
    return anggota


def update_member(anggota_id, data):
    return run_atomic(_update_member, anggota_id, data)


def deactivate_member(anggota_id):
    return run_atomic(_update_member, anggota_id, {"status": STATUS_TIDAK_AKTIF})


def list_members(status=None):
    query = Anggota.query
    if status:
        query = query.filter(Anggota.status == status)
    return query.order_by(Anggota.nama.asc()).all()


def _post_savings_transaction(anggota_id, jenis, tipe, jumlah, keterangan, periode=None):
    anggota = get_member(anggota_id)
    field = JENIS_SIMPANAN[jenis]
    saldo = getattr(anggota, field) or 0.0
    if tipe == TIPE_TARIK:
        if jumlah > saldo:
            raise ValidationError(f"Saldo {jenis} tidak mencukupi untuk penarikan.")
        saldo -= jumlah
    else:
        saldo += jumlah
    setattr(anggota, field, round(saldo, 2))

    transaksi = TransaksiSimpanan(
        anggota_id=anggota.id,
        jenis=jenis,
        tipe=tipe,
        jumlah=jumlah,
        keterangan=keterangan,
        periode=periode,
    )
    db.session.add(transaksi)
    db.session.flush()
    return transaksi


def record_savings_transaction(anggota, jenis, tipe, jumlah, keterangan, periode=None):
    """Varian tanpa transaksi sendiri, untuk dipakai di dalam unit kerja lain."""
    return _post_savings_transaction(anggota.id, jenis, tipe, jumlah, keterangan, periode)


def post_savings_transaction(anggota_id, jenis, tipe, jumlah, keterangan=""):
    if jenis not in JENIS_SIMPANAN:
        raise ValidationError(f"Jenis simpanan tidak dikenal: {jenis}.")
    if tipe not in (TIPE_SETOR, TIPE_TARIK):
        raise ValidationError("Tipe transaksi harus Setor atau Tarik.")
    try:
        jumlah = round(float(jumlah), 2)
    except (TypeError, ValueError):
        raise ValidationError("Jumlah transaksi harus berupa angka.") from None
    if not math.isfinite(jumlah):
        raise ValidationError("Jumlah transaksi harus berupa angka.")
    if jumlah <= 0:
        raise ValidationError("Jumlah transaksi harus lebih dari 0.")

    transaksi = run_atomic(
        _post_savings_transaction, anggota_id, jenis, tipe, jumlah, (keterangan or "").strip()
    )
    logging.info("Transaksi %s %s sebesar %s untuk anggota %s", tipe, jenis, jumlah, anggota_id)
    return transaksi


def savings_history(anggota_id):
    anggota = get_member(anggota_id)
    return anggota.transaksi.order_by(TransaksiSimpanan.tanggal.desc(), TransaksiSimpanan.id.desc()).all()

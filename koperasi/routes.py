import logging
from datetime import datetime

import pandas as pd
from flask import Blueprint, jsonify, make_response, request
from sqlalchemy.exc import SQLAlchemyError

from koperasi import db
from koperasi import accounts as accounts_service
from koperasi import journal as journal_service
from koperasi import members as members_service
from koperasi import murabahah as murabahah_service
from koperasi import reports
from koperasi.batch import ROW_KEYS, preview_autodebet, run_monthly_batch
from koperasi.errors import KoperasiError, ReferenceNotFound, ValidationError
from koperasi.financing import compute_financing, simulate_eligibility
from koperasi.forms import (
    AccountForm,
    ContractForm,
    FinancingForm,
    MemberForm,
    SavingsTransactionForm,
    SimulationForm,
    first_error,
)
from koperasi.models import LaporanArsip
from koperasi.settings import get_settings, reload_settings, update_settings
from koperasi.time_utils import parse_period_token

bp = Blueprint("main", __name__)

ARSIP_HEADERS = {
    "nip": "NIP",
    "nama": "Nama",
    "unit": "Unit",
    "simpananWajib": "Simpanan Wajib",
    "angsuranKe": "Angsuran Ke",
    "cicilanPokok": "Cicilan Pokok",
    "cicilanMargin": "Cicilan Margin",
    "cicilanMurabahah": "Cicilan Murabahah",
    "totalPotongan": "Total Potongan",
}


@bp.errorhandler(KoperasiError)
def _handle_koperasi_error(error):
    return jsonify({"success": False, "message": error.message}), error.status_code


@bp.errorhandler(SQLAlchemyError)
def _handle_database_error(error):
    db.session.rollback()
    logging.exception("Kesalahan database saat memproses %s %s", request.method, request.path)
    return jsonify({"success": False, "message": "Terjadi kesalahan pada database."}), 500


def _payload():
    if not request.is_json:
        raise ValidationError("Gunakan JSON payload.")
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Payload JSON harus berupa objek.")
    return payload


def _validated(form):
    if not form.validate():
        raise ValidationError(first_error(form))
    return {key: value for key, value in form.data.items() if value is not None}


def _ok(data=None, status=200, **extra):
    body = {"success": True}
    if data is not None:
        body["data"] = data
    body.update(extra)
    return jsonify(body), status


@bp.route("/api/akun", methods=["GET"])
def daftar_akun():
    rows = []
    for account, level in accounts_service.account_tree():
        item = account.to_dict()
        item["level"] = level
        rows.append(item)
    return _ok(rows)


@bp.route("/api/akun", methods=["POST"])
def tambah_akun():
    _payload()
    data = _validated(AccountForm())
    account = accounts_service.create_account(
        data["kode"], data["nama"], data["tipe"], data.get("parent_kode")
    )
    return _ok(account.to_dict(), 201, message=f"Akun {account.kode} berhasil dibuat.")


@bp.route("/api/akun/<int:account_id>", methods=["PUT"])
def ubah_akun(account_id):
    payload = _payload()
    account = accounts_service.update_account(
        account_id,
        nama=payload.get("nama"),
        tipe=payload.get("tipe"),
        parent_kode=payload.get("parent_kode") or None,
        clear_parent="parent_kode" in payload and not payload.get("parent_kode"),
    )
    return _ok(account.to_dict(), message="Akun berhasil diperbarui.")


@bp.route("/api/akun/<int:account_id>/kode", methods=["POST"])
def ganti_kode_akun(account_id):
    payload = _payload()
    account = accounts_service.rename_account(account_id, payload.get("kode"))
    return _ok(account.to_dict(), message=f"Kode akun menjadi {account.kode}.")


@bp.route("/api/akun/<int:account_id>", methods=["DELETE"])
def hapus_akun(account_id):
    kode = accounts_service.delete_account(account_id)
    return _ok(message=f"Akun {kode} berhasil dihapus.")


@bp.route("/api/akun/seed", methods=["POST"])
def seed_akun():
    created = accounts_service.seed_default_chart()
    return _ok({"created": created}, message=f"{created} akun bawaan ditambahkan.")


@bp.route("/api/jurnal", methods=["GET"])
def daftar_jurnal():
    limit = request.args.get("limit", type=int)
    sumber = request.args.get("sumber") or None
    entries = journal_service.list_entries(limit=limit, sumber=sumber)
    return _ok([entry.to_dict() for entry in entries])


@bp.route("/api/jurnal/<int:entry_id>", methods=["GET"])
def detail_jurnal(entry_id):
    return _ok(journal_service.get_entry(entry_id).to_dict())


@bp.route("/api/jurnal", methods=["POST"])
def simpan_jurnal():
    payload = _payload()
    entry = journal_service.post_entry(
        payload.get("deskripsi") or payload.get("memo"),
        payload.get("lines") or [],
        tanggal=payload.get("tanggal") or None,
    )
    return _ok(entry.to_dict(), 201, message=f"Jurnal {entry.reference} berhasil disimpan.")


@bp.route("/api/jurnal/<int:entry_id>", methods=["PUT"])
def koreksi_jurnal(entry_id):
    payload = _payload()
    entry = journal_service.post_entry(
        payload.get("deskripsi") or payload.get("memo"),
        payload.get("lines") or [],
        entry_id=entry_id,
        tanggal=payload.get("tanggal") or None,
    )
    return _ok(entry.to_dict(), message=f"Jurnal {entry.reference} berhasil dikoreksi.")


@bp.route("/api/jurnal/<int:entry_id>", methods=["DELETE"])
def hapus_jurnal(entry_id):
    reference = journal_service.delete_entry(entry_id)
    return _ok(message=f"Jurnal {reference} berhasil dihapus.")


@bp.route("/api/autodebet/preview", methods=["GET"])
def preview_proses_bulanan():
    rows = preview_autodebet(get_settings())
    total = round(sum(row["totalPotongan"] for row in rows), 2)
    return _ok(rows, total_potongan=total)


@bp.route("/api/autodebet", methods=["POST"])
def jalankan_proses_bulanan():
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        raise ValidationError("Payload JSON harus berupa objek.")
    as_of = None
    if payload.get("periode"):
        as_of = parse_period_token(payload["periode"])
        if as_of is None:
            raise ValidationError("Format periode tidak valid (gunakan YYYY-MM).")
    entry, arsip = run_monthly_batch(get_settings(), as_of=as_of)
    return _ok(
        {"jurnal": entry.to_dict(), "arsip": arsip.to_dict(include_rows=False)},
        201,
        message=f"Proses autodebet periode {arsip.periode} selesai.",
    )


@bp.route("/api/pembiayaan/hitung", methods=["POST"])
def hitung_pembiayaan():
    _payload()
    data = _validated(FinancingForm())
    if data.get("uang_muka", 0.0) >= data["harga_pokok"]:
        raise ValidationError("Uang muka harus lebih kecil dari harga pokok.")
    quote = compute_financing(
        data["harga_pokok"], data["tenor"], data.get("uang_muka", 0.0), settings=get_settings()
    )
    return _ok(quote._asdict())


@bp.route("/api/pembiayaan/simulasi", methods=["POST"])
def simulasi_pembiayaan():
    _payload()
    data = _validated(SimulationForm())
    result = simulate_eligibility(
        data["gaji"],
        data.get("cicilan_berjalan", 0.0),
        data["harga_barang"],
        data["tenor"],
        settings=get_settings(),
    )
    body = result._asdict()
    body["quote"] = result.quote._asdict()
    return _ok(body)


@bp.route("/api/murabahah", methods=["GET"])
def daftar_murabahah():
    contracts = murabahah_service.list_contracts(
        status=request.args.get("status") or None,
        anggota_id=request.args.get("anggota_id", type=int),
    )
    return _ok([kontrak.to_dict() for kontrak in contracts])


@bp.route("/api/murabahah", methods=["POST"])
def tambah_murabahah():
    _payload()
    data = _validated(ContractForm())
    kontrak = murabahah_service.create_contract(data, get_settings())
    return _ok(kontrak.to_dict(), 201, message="Kontrak murabahah berhasil dibuat.")


@bp.route("/api/murabahah/<int:kontrak_id>", methods=["GET"])
def detail_murabahah(kontrak_id):
    return _ok(murabahah_service.get_contract(kontrak_id).to_dict())


@bp.route("/api/murabahah/<int:kontrak_id>", methods=["PUT"])
def ubah_murabahah(kontrak_id):
    kontrak = murabahah_service.update_contract(kontrak_id, _payload(), get_settings())
    return _ok(kontrak.to_dict(), message="Kontrak murabahah berhasil diperbarui.")


@bp.route("/api/murabahah/<int:kontrak_id>/status", methods=["POST"])
def ubah_status_murabahah(kontrak_id):
    payload = _payload()
    kontrak = murabahah_service.transition_contract(kontrak_id, payload.get("status"))
    return _ok(kontrak.to_dict(), message=f"Status kontrak menjadi {kontrak.status}.")


@bp.route("/api/murabahah/<int:kontrak_id>/riwayat", methods=["GET"])
def riwayat_murabahah(kontrak_id):
    rows = murabahah_service.contract_history(kontrak_id)
    return _ok([row.to_dict() for row in rows])


@bp.route("/api/anggota", methods=["GET"])
def daftar_anggota():
    members = members_service.list_members(status=request.args.get("status") or None)
    return _ok([anggota.to_dict() for anggota in members])


@bp.route("/api/anggota", methods=["POST"])
def tambah_anggota():
    _payload()
    data = _validated(MemberForm())
    anggota = members_service.create_member(data, get_settings())
    return _ok(anggota.to_dict(), 201, message=f"Anggota {anggota.nama} berhasil didaftarkan.")


@bp.route("/api/anggota/<int:anggota_id>", methods=["GET"])
def detail_anggota(anggota_id):
    return _ok(members_service.get_member(anggota_id).to_dict())


@bp.route("/api/anggota/<int:anggota_id>", methods=["PUT"])
def ubah_anggota(anggota_id):
    anggota = members_service.update_member(anggota_id, _payload())
    return _ok(anggota.to_dict(), message="Data anggota berhasil diperbarui.")


@bp.route("/api/anggota/<int:anggota_id>/nonaktif", methods=["POST"])
def nonaktifkan_anggota(anggota_id):
    anggota = members_service.deactivate_member(anggota_id)
    return _ok(anggota.to_dict(), message=f"Anggota {anggota.nama} dinonaktifkan.")


@bp.route("/api/anggota/<int:anggota_id>/simpanan", methods=["GET"])
def riwayat_simpanan(anggota_id):
    rows = members_service.savings_history(anggota_id)
    return _ok([row.to_dict() for row in rows])


@bp.route("/api/anggota/<int:anggota_id>/simpanan", methods=["POST"])
def transaksi_simpanan(anggota_id):
    _payload()
    data = _validated(SavingsTransactionForm())
    transaksi = members_service.post_savings_transaction(
        anggota_id, data["jenis"], data["tipe"], data["jumlah"], data.get("keterangan", "")
    )
    anggota = members_service.get_member(anggota_id)
    return _ok(
        {"transaksi": transaksi.to_dict(), "anggota": anggota.to_dict()},
        201,
        message="Transaksi simpanan berhasil disimpan.",
    )


@bp.route("/api/laporan/neraca", methods=["GET"])
def laporan_neraca():
    return _ok(reports.balance_sheet())


@bp.route("/api/laporan/laba-rugi", methods=["GET"])
def laporan_laba_rugi():
    return _ok(reports.income_statement())


@bp.route("/api/laporan/neraca-saldo", methods=["GET"])
def laporan_neraca_saldo():
    return _ok(reports.trial_balance())


@bp.route("/api/arsip", methods=["GET"])
def daftar_arsip():
    rows = LaporanArsip.query.order_by(LaporanArsip.tanggal_dibuat.desc()).all()
    return _ok([arsip.to_dict(include_rows=False) for arsip in rows])


def _get_arsip(arsip_id):
    arsip = db.session.get(LaporanArsip, arsip_id)
    if arsip is None:
        raise ReferenceNotFound(f"Arsip laporan ID {arsip_id} tidak ditemukan.")
    return arsip


@bp.route("/api/arsip/<int:arsip_id>", methods=["GET"])
def detail_arsip(arsip_id):
    return _ok(_get_arsip(arsip_id).to_dict())


@bp.route("/api/arsip/<int:arsip_id>/csv", methods=["GET"])
def unduh_arsip(arsip_id):
    arsip = _get_arsip(arsip_id)
    df = pd.DataFrame(arsip.data_laporan or [], columns=list(ROW_KEYS))
    df = df.rename(columns=ARSIP_HEADERS)

    response = make_response(df.to_csv(index=False))
    filename = f"autodebet_{arsip.periode or datetime.now().strftime('%Y%m%d')}.csv"
    response.headers["Content-Disposition"] = f"attachment; filename={filename}"
    response.headers["Content-Type"] = "text/csv; charset=utf-8"
    return response


@bp.route("/api/pengaturan", methods=["GET"])
def lihat_pengaturan():
    return _ok(get_settings().to_dict())


@bp.route("/api/pengaturan", methods=["PUT"])
def ubah_pengaturan():
    settings = update_settings(_payload())
    return _ok(settings.to_dict(), message="Pengaturan berhasil disimpan.")


@bp.route("/api/pengaturan/reload", methods=["POST"])
def muat_ulang_pengaturan():
    return _ok(reload_settings().to_dict(), message="Pengaturan dimuat ulang.")

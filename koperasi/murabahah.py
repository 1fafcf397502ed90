import logging
import math

from koperasi import db
from koperasi.errors import ReferenceNotFound, ValidationError
from koperasi.financing import compute_financing
from koperasi.members import _parse_date, get_member
from koperasi.models import (
    KONTRAK_AKAD,
    KONTRAK_APPROVED,
    KONTRAK_BERJALAN,
    KONTRAK_DRAFT,
    KONTRAK_LUNAS,
    KONTRAK_MACET,
    KONTRAK_REVIEW,
    KONTRAK_STATUSES,
    KontrakMurabahah,
    TransaksiMurabahah,
)
from koperasi.store import run_atomic
from koperasi.time_utils import local_today

ALLOWED_TRANSITIONS = {
    KONTRAK_DRAFT: {KONTRAK_REVIEW},
    KONTRAK_REVIEW: {KONTRAK_APPROVED},
    KONTRAK_APPROVED: {KONTRAK_AKAD},
    KONTRAK_AKAD: {KONTRAK_BERJALAN},
    KONTRAK_BERJALAN: {KONTRAK_LUNAS, KONTRAK_MACET},
    KONTRAK_LUNAS: set(),
    KONTRAK_MACET: set(),
}


def get_contract(kontrak_id):
    kontrak = db.session.get(KontrakMurabahah, kontrak_id)
    if kontrak is None:
        raise ReferenceNotFound(f"Kontrak murabahah ID {kontrak_id} tidak ditemukan.")
    return kontrak


def _clean_terms(data):
    nama_barang = (data.get("nama_barang") or "").strip()
    try:
        harga_pokok = round(float(data.get("harga_pokok") or 0), 2)
        uang_muka = round(float(data.get("uang_muka") or 0), 2)
        tenor = int(data.get("tenor") or 0)
    except (TypeError, ValueError):
        raise ValidationError("Harga, uang muka dan tenor harus berupa angka.") from None
    if not (math.isfinite(harga_pokok) and math.isfinite(uang_muka)):
        raise ValidationError("Harga, uang muka dan tenor harus berupa angka.")

    if not nama_barang:
        raise ValidationError("Nama barang wajib diisi.")
    if harga_pokok <= 0:
        raise ValidationError("Harga pokok harus lebih dari 0.")
    if tenor <= 0:
        raise ValidationError("Tenor harus lebih dari 0 bulan.")
    if uang_muka < 0 or uang_muka >= harga_pokok:
        raise ValidationError("Uang muka harus di antara 0 dan harga pokok.")
    return nama_barang, harga_pokok, uang_muka, tenor


def _apply_pricing(kontrak, harga_pokok, uang_muka, tenor, settings):
    quote = compute_financing(harga_pokok, tenor, uang_muka, settings=settings)
    kontrak.harga_pokok = harga_pokok
    kontrak.uang_muka = uang_muka
    kontrak.tenor = tenor
    kontrak.margin = quote.margin
    kontrak.harga_jual = quote.harga_jual
    kontrak.cicilan_per_bulan = quote.cicilan_per_bulan
    return quote


def _clean_status(status, default):
    status = status or default
    if status not in KONTRAK_STATUSES:
        raise ValidationError(f"Status kontrak tidak dikenal: {status}.")
    return status


def _create_contract(data, settings):
    anggota = get_member(int(data.get("anggota_id") or 0))
    nama_barang, harga_pokok, uang_muka, tenor = _clean_terms(data)
    kontrak = KontrakMurabahah(
        anggota_id=anggota.id,
        nama_barang=nama_barang,
        tanggal_akad=_parse_date(data.get("tanggal_akad")) or local_today(),
        status=_clean_status(data.get("status"), KONTRAK_REVIEW),
        cicilan_terbayar=0,
    )
    _apply_pricing(kontrak, harga_pokok, uang_muka, tenor, settings)
    db.session.add(kontrak)
    db.session.flush()
    return kontrak


def create_contract(data, settings):
    kontrak = run_atomic(_create_contract, data, settings)
    logging.info(
        "Kontrak murabahah %s untuk anggota %s dibuat (harga jual %s, tenor %s)",
        kontrak.id,
        kontrak.anggota_id,
        kontrak.harga_jual,
        kontrak.tenor,
    )
    return kontrak


def _update_contract(kontrak_id, data, settings):
    kontrak = get_contract(kontrak_id)
    merged = {
        "nama_barang": kontrak.nama_barang,
        "harga_pokok": kontrak.harga_pokok,
        "uang_muka": kontrak.uang_muka,
        "tenor": kontrak.tenor,
    }
    merged.update({k: v for k, v in data.items() if k in merged})
    nama_barang, harga_pokok, uang_muka, tenor = _clean_terms(merged)
    if tenor < (kontrak.cicilan_terbayar or 0):
        raise ValidationError("Tenor tidak boleh lebih kecil dari jumlah cicilan yang sudah dibayar.")
    kontrak.nama_barang = nama_barang
    _apply_pricing(kontrak, harga_pokok, uang_muka, tenor, settings)
    if data.get("tanggal_akad"):
        kontrak.tanggal_akad = _parse_date(data["tanggal_akad"])
    if data.get("status"):
        # form edit boleh menimpa status secara manual
        kontrak.status = _clean_status(data["status"], kontrak.status)
    return kontrak


def update_contract(kontrak_id, data, settings):
    return run_atomic(_update_contract, kontrak_id, data, settings)


def _transition_contract(kontrak_id, status):
    kontrak = get_contract(kontrak_id)
    status = _clean_status(status, None)
    if status not in ALLOWED_TRANSITIONS[kontrak.status]:
        raise ValidationError(f"Status kontrak tidak bisa berpindah dari {kontrak.status} ke {status}.")
    kontrak.status = status
    return kontrak


def transition_contract(kontrak_id, status):
    kontrak = run_atomic(_transition_contract, kontrak_id, status)
    logging.info("Status kontrak %s menjadi %s", kontrak.id, kontrak.status)
    return kontrak


def record_installment(kontrak, pokok, margin, keterangan, periode=None):
    """Catat satu angsuran di dalam transaksi yang sedang berjalan."""
    kontrak.cicilan_terbayar = (kontrak.cicilan_terbayar or 0) + 1
    transaksi = TransaksiMurabahah(
        kontrak_id=kontrak.id,
        angsuran_ke=kontrak.cicilan_terbayar,
        pokok=round(pokok, 2),
        margin=round(margin, 2),
        jumlah=round(pokok + margin, 2),
        keterangan=keterangan,
        periode=periode,
    )
    db.session.add(transaksi)
    if kontrak.cicilan_terbayar >= kontrak.tenor:
        kontrak.status = KONTRAK_LUNAS
    return transaksi


def list_contracts(status=None, anggota_id=None):
    query = KontrakMurabahah.query
    if status:
        query = query.filter(KontrakMurabahah.status == status)
    if anggota_id:
        query = query.filter(KontrakMurabahah.anggota_id == anggota_id)
    return query.order_by(KontrakMurabahah.tanggal_akad.desc(), KontrakMurabahah.id.desc()).all()


def contract_history(kontrak_id):
    kontrak = get_contract(kontrak_id)
    return kontrak.transaksi.order_by(TransaksiMurabahah.tanggal.desc(), TransaksiMurabahah.id.desc()).all()

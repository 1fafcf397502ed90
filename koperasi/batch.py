"""
Proses bulanan autodebet: potong gaji untuk simpanan wajib dan angsuran
murabahah seluruh anggota aktif.

Satu kali proses menghasilkan, dalam satu transaksi database:
- transaksi Setor simpanan wajib untuk setiap anggota aktif,
- satu angsuran untuk setiap kontrak berjalan milik anggota tersebut,
- satu jurnal autodebet yang seimbang,
- satu arsip laporan berisi rincian potongan per anggota.

Periode (``YYYY-MM``) hanya bisa diproses sekali; kolom ``periode`` pada
jurnal dan arsip bersifat unik sehingga dua proses yang berjalan bersamaan
tidak bisa sama-sama tersimpan.
"""
import logging
from collections import OrderedDict
from datetime import datetime

from sqlalchemy.exc import IntegrityError

from koperasi import db, format_rupiah
from koperasi.errors import BatchAlreadyRun, ConfigurationError, ValidationError
from koperasi.journal import SUMBER_AUTODEBET, ParsedLine, record_entry
from koperasi.members import TIPE_SETOR, record_savings_transaction
from koperasi.models import (
    KONTRAK_BERJALAN,
    STATUS_AKTIF,
    UNIT_ORDER,
    Account,
    Anggota,
    JournalEntry,
    KontrakMurabahah,
    LaporanArsip,
)
from koperasi.murabahah import record_installment
from koperasi.store import run_atomic
from koperasi.time_utils import local_now, period_label, period_token

ROW_KEYS = (
    "nip",
    "nama",
    "unit",
    "simpananWajib",
    "angsuranKe",
    "cicilanPokok",
    "cicilanMargin",
    "cicilanMurabahah",
    "totalPotongan",
)


def _unit_rank(unit):
    try:
        return UNIT_ORDER.index(unit)
    except ValueError:
        return len(UNIT_ORDER)


def _load_candidates():
    members = Anggota.query.filter(Anggota.status == STATUS_AKTIF).all()
    contracts = (
        KontrakMurabahah.query.filter(KontrakMurabahah.status == KONTRAK_BERJALAN)
        .order_by(KontrakMurabahah.id.asc())
        .all()
    )
    by_member = {}
    for kontrak in contracts:
        by_member.setdefault(kontrak.anggota_id, []).append(kontrak)
    return members, by_member


def _build_row(anggota, contracts, simpanan_wajib):
    pokok = sum(kontrak.cicilan_pokok for kontrak in contracts)
    margin = sum(kontrak.cicilan_margin for kontrak in contracts)
    angsuran = [(kontrak.cicilan_terbayar or 0) + 1 for kontrak in contracts]
    if not angsuran:
        angsuran_ke = ""
    elif len(angsuran) == 1:
        angsuran_ke = angsuran[0]
    else:
        angsuran_ke = ", ".join(str(value) for value in angsuran)

    cicilan_pokok = round(pokok, 2)
    cicilan_margin = round(margin, 2)
    cicilan_murabahah = round(cicilan_pokok + cicilan_margin, 2)
    return OrderedDict(
        [
            ("nip", anggota.nip),
            ("nama", anggota.nama),
            ("unit", anggota.unit),
            ("simpananWajib", round(simpanan_wajib, 2)),
            ("angsuranKe", angsuran_ke),
            ("cicilanPokok", cicilan_pokok),
            ("cicilanMargin", cicilan_margin),
            ("cicilanMurabahah", cicilan_murabahah),
            ("totalPotongan", round(simpanan_wajib + cicilan_murabahah, 2)),
        ]
    )


def _sort_rows(rows):
    rows.sort(key=lambda row: (_unit_rank(row["unit"]), (row["nama"] or "").lower()))
    return rows


def preview_autodebet(settings):
    """Rincian potongan bulan ini tanpa menulis apa pun ke database."""
    members, by_member = _load_candidates()
    rows = [_build_row(anggota, by_member.get(anggota.id, []), settings.simpanan_wajib) for anggota in members]
    return _sort_rows([dict(row) for row in rows])


def _resolve_batch_accounts(settings):
    resolved = {}
    missing = []
    for role, kode in settings.batch_account_codes.items():
        account = Account.query.filter_by(kode=kode).first()
        if account is None:
            missing.append(kode)
        resolved[role] = account
    if missing:
        raise ConfigurationError(
            f"Akun untuk proses autodebet tidak ditemukan: {', '.join(missing)}. Periksa pengaturan akun."
        )
    return resolved


def _ensure_not_processed(token):
    if JournalEntry.query.filter_by(periode=token).first() is not None:
        raise BatchAlreadyRun(token)
    if LaporanArsip.query.filter_by(periode=token).first() is not None:
        raise BatchAlreadyRun(token)


def _run_monthly_batch(settings, token, as_of):
    _ensure_not_processed(token)
    members, by_member = _load_candidates()
    accounts = _resolve_batch_accounts(settings)
    if not members:
        raise ValidationError("Tidak ada anggota aktif yang bisa diproses.")

    label = period_label(token)
    rows = []
    total_wajib = 0.0
    total_pokok = 0.0
    total_margin = 0.0
    for anggota in members:
        contracts = by_member.get(anggota.id, [])
        row = _build_row(anggota, contracts, settings.simpanan_wajib)

        if settings.simpanan_wajib > 0:
            record_savings_transaction(
                anggota,
                "Simpanan Wajib",
                TIPE_SETOR,
                row["simpananWajib"],
                f"Autodebet simpanan wajib {label}",
                periode=token,
            )
        for kontrak in contracts:
            record_installment(
                kontrak,
                kontrak.cicilan_pokok,
                kontrak.cicilan_margin,
                f"Autodebet angsuran {label}",
                periode=token,
            )

        total_wajib += row["simpananWajib"]
        total_pokok += row["cicilanPokok"]
        total_margin += row["cicilanMargin"]
        rows.append(dict(row))

    credits = [
        (accounts["simpanan_wajib"], round(total_wajib, 2)),
        (accounts["piutang_murabahah"], round(total_pokok, 2)),
        (accounts["pendapatan_margin"], round(total_margin, 2)),
    ]
    credits = [(account, amount) for account, amount in credits if amount > 0]
    grand_total = round(sum(amount for _, amount in credits), 2)
    if grand_total <= 0:
        raise ValidationError("Total potongan periode ini 0, tidak ada yang perlu dijurnal.")

    lines = [ParsedLine(accounts["piutang_gaji"].id, grand_total, 0.0)]
    lines.extend(ParsedLine(account.id, 0.0, amount) for account, amount in credits)
    entry = record_entry(
        f"Autodebet potong gaji periode {label}",
        lines,
        tanggal=as_of,
        sumber=SUMBER_AUTODEBET,
        periode=token,
        reference_prefix="AD",
    )

    arsip = LaporanArsip(
        nama_laporan=f"Laporan Autodebet {label}",
        periode=token,
        jurnal_id=entry.id,
        data_laporan=_sort_rows(rows),
    )
    db.session.add(arsip)
    db.session.flush()
    return entry, arsip


def run_monthly_batch(settings, as_of=None):
    """
    Jalankan autodebet untuk periode ``as_of`` (bawaan: bulan berjalan).

    Mengembalikan ``(entry, arsip)``. Kegagalan di langkah mana pun
    membatalkan seluruh perubahan.
    """
    as_of = as_of or local_now()
    if not isinstance(as_of, datetime):
        as_of = datetime.combine(as_of, local_now().time())
    token = period_token(as_of)
    try:
        entry, arsip = run_atomic(_run_monthly_batch, settings, token, as_of)
    except IntegrityError:
        # proses lain sudah menyimpan periode yang sama lebih dulu
        db.session.rollback()
        logging.warning("Autodebet periode %s ditolak: periode sudah tersimpan", token)
        raise BatchAlreadyRun(token) from None

    logging.info(
        "Autodebet periode %s selesai: %s anggota, total potongan %s (jurnal %s)",
        token,
        len(arsip.data_laporan),
        format_rupiah(entry.total_debit),
        entry.reference,
    )
    return entry, arsip

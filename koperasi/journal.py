"""
Jurnal umum: posting, koreksi dan penghapusan entri beserta saldo akun.

Setiap mutasi entri menyesuaikan saldo semua akun yang terlibat dalam
transaksi yang sama dengan penulisan entri itu sendiri, sehingga buku besar
tidak pernah menyimpan entri tanpa efek saldonya (atau sebaliknya).
"""
import logging
import math
from collections import namedtuple
from datetime import datetime

from koperasi import db
from koperasi.errors import ReferenceNotFound, ValidationError
from koperasi.models import Account, JournalEntry, JournalLine
from koperasi.store import run_atomic
from koperasi.time_utils import local_now

SUMBER_MANUAL = "manual"
SUMBER_AUTODEBET = "autodebet"

ParsedLine = namedtuple("ParsedLine", "akun_id debit kredit")


def _parse_amount(raw, idx):
    if raw in (None, ""):
        return 0.0
    try:
        value = float(raw)
    except (TypeError, ValueError):
        raise ValidationError(f"Nominal tidak valid (baris {idx}).") from None
    if not math.isfinite(value):
        raise ValidationError(f"Nominal tidak valid (baris {idx}).")
    if value < 0:
        raise ValidationError(f"Debit/kredit tidak boleh negatif (baris {idx}).")
    return round(value, 2)


def validate_lines(deskripsi, lines):
    """
    Prasyarat posting: deskripsi terisi, minimal dua baris terisi, tiap baris
    hanya debit atau kredit, dan total debit == total kredit > 0.

    Baris kosong (tanpa akun dan tanpa nominal) diabaikan.
    """
    if not (deskripsi or "").strip():
        raise ValidationError("Deskripsi jurnal tidak boleh kosong.")

    if lines and not isinstance(lines, (list, tuple)):
        raise ValidationError("Baris jurnal harus berupa daftar.")

    parsed = []
    for idx, raw in enumerate(lines or [], start=1):
        if isinstance(raw, ParsedLine):
            raw = raw._asdict()
        if not isinstance(raw, dict):
            raise ValidationError(f"Format baris jurnal tidak valid (baris {idx}).")
        account_id = raw.get("akun_id", raw.get("account_id"))
        debit = _parse_amount(raw.get("debit"), idx)
        kredit = _parse_amount(raw.get("kredit", raw.get("credit")), idx)
        if account_id in (None, ""):
            if debit or kredit:
                raise ValidationError(f"Akun wajib dipilih (baris {idx}).")
            continue
        if debit == 0 and kredit == 0:
            continue
        if debit > 0 and kredit > 0:
            raise ValidationError(f"Debit dan kredit tidak boleh diisi bersamaan (baris {idx}).")
        try:
            account_id = int(account_id)
        except (TypeError, ValueError):
            raise ValidationError(f"Akun tidak valid (baris {idx}).") from None
        parsed.append(ParsedLine(account_id, debit, kredit))

    if len(parsed) < 2:
        raise ValidationError("Jurnal harus memiliki setidaknya dua baris (debit dan kredit) yang valid.")

    total_debit = round(sum(line.debit for line in parsed), 2)
    total_kredit = round(sum(line.kredit for line in parsed), 2)
    if total_debit != total_kredit:
        raise ValidationError("Jurnal tidak seimbang! Total debit harus sama dengan total kredit.")
    if total_debit <= 0:
        raise ValidationError("Total jurnal harus lebih besar dari 0.")
    return parsed


def apply_line(account, debit, kredit, reverse=False):
    """
    Terapkan efek satu baris jurnal ke saldo akun.

    Saldo disimpan debit-positif, jadi pergeseran mentahnya selalu
    ``debit - kredit``. Dilihat dari sisi saldo normal hasilnya sama dengan
    aturan buku besar: akun bersaldo normal Debit naik sebesar debit - kredit,
    akun bersaldo normal Kredit naik sebesar kredit - debit.
    """
    delta = (debit or 0.0) - (kredit or 0.0)
    if reverse:
        delta = -delta
    account.saldo_debit = round((account.saldo_debit or 0.0) + delta, 2)


def _generate_journal_reference(prefix="JV"):
    base = f"{prefix}{local_now().strftime('%Y%m%d%H%M%S')}"
    candidate = base
    counter = 1
    while JournalEntry.query.filter_by(reference=candidate).first():
        candidate = f"{base}-{counter}"
        counter += 1
    return candidate


def _load_accounts(account_ids):
    if not account_ids:
        return {}
    accounts = Account.query.filter(Account.id.in_(account_ids)).all()
    return {account.id: account for account in accounts}


def get_entry(entry_id):
    entry = db.session.get(JournalEntry, entry_id)
    if entry is None:
        raise ReferenceNotFound(f"Entri jurnal ID {entry_id} tidak ditemukan.")
    return entry


def record_entry(deskripsi, parsed_lines, entry_id=None, tanggal=None,
                 sumber=SUMBER_MANUAL, periode=None, reference_prefix="JV"):
    """
    Tulis entri dan efek saldonya di dalam transaksi yang sedang berjalan.

    ``parsed_lines`` harus sudah lolos :func:`validate_lines`. Dipakai oleh
    :func:`post_entry` dan oleh proses autodebet yang punya transaksi sendiri.
    """
    entry = get_entry(entry_id) if entry_id is not None else None
    if entry is not None and entry.sumber != SUMBER_MANUAL:
        raise ValidationError(
            f"Jurnal {entry.reference} dibuat otomatis oleh sistem dan tidak bisa diubah."
        )

    new_ids = {line.akun_id for line in parsed_lines}
    old_ids = {line.akun_id for line in entry.lines} if entry is not None else set()
    accounts = _load_accounts(new_ids | old_ids)
    missing = sorted(new_ids - set(accounts))
    if missing:
        raise ReferenceNotFound(f"Akun ID {missing[0]} tidak ditemukan.")

    if entry is not None:
        for line in entry.lines:
            apply_line(accounts[line.akun_id], line.debit, line.kredit, reverse=True)
        entry.lines.clear()
        entry.deskripsi = deskripsi.strip()
        if tanggal is not None:
            entry.tanggal = tanggal
    else:
        entry = JournalEntry(
            reference=_generate_journal_reference(reference_prefix),
            tanggal=tanggal or local_now(),
            deskripsi=deskripsi.strip(),
            sumber=sumber,
            periode=periode,
        )
        db.session.add(entry)

    for urutan, line in enumerate(parsed_lines):
        account = accounts[line.akun_id]
        apply_line(account, line.debit, line.kredit)
        entry.lines.append(
            JournalLine(
                akun_id=account.id,
                akun_kode=account.kode,
                akun_nama=account.nama,
                debit=line.debit,
                kredit=line.kredit,
                urutan=urutan,
            )
        )
    db.session.flush()
    return entry


def post_entry(deskripsi, lines, entry_id=None, tanggal=None):
    """
    Simpan jurnal manual baru, atau koreksi entri ``entry_id``.

    Koreksi membalik efek semua baris lama lalu menerapkan baris baru, dalam
    satu transaksi. Akun atau entri yang tidak ditemukan membatalkan seluruh
    transaksi.
    """
    parsed = validate_lines(deskripsi, lines)
    if isinstance(tanggal, str):
        tanggal = _parse_tanggal(tanggal)
    entry = run_atomic(record_entry, deskripsi, parsed, entry_id, tanggal)
    logging.info(
        "Jurnal %s %s (%s baris)",
        entry.reference,
        "dikoreksi" if entry_id is not None else "disimpan",
        len(parsed),
    )
    return entry


def _parse_tanggal(raw):
    for fmt in ("%Y-%m-%dT%H:%M:%S", "%Y-%m-%dT%H:%M", "%Y-%m-%d"):
        try:
            return datetime.strptime(raw.strip(), fmt)
        except ValueError:
            continue
    raise ValidationError("Format tanggal jurnal tidak valid (gunakan YYYY-MM-DD).")


def _delete_entry(entry_id):
    entry = get_entry(entry_id)
    if entry.sumber != SUMBER_MANUAL:
        raise ValidationError(
            f"Jurnal {entry.reference} dibuat otomatis oleh sistem dan tidak bisa dihapus."
        )
    accounts = _load_accounts({line.akun_id for line in entry.lines})
    for line in entry.lines:
        apply_line(accounts[line.akun_id], line.debit, line.kredit, reverse=True)
    reference = entry.reference
    db.session.delete(entry)
    return reference


def delete_entry(entry_id):
    reference = run_atomic(_delete_entry, entry_id)
    logging.info("Jurnal %s dihapus dan saldo akun dikembalikan", reference)
    return reference


def list_entries(limit=None, sumber=None):
    query = JournalEntry.query
    if sumber:
        query = query.filter(JournalEntry.sumber == sumber)
    query = query.order_by(JournalEntry.tanggal.desc(), JournalEntry.id.desc())
    if limit:
        query = query.limit(limit)
    return query.all()

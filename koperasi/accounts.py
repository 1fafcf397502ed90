import logging

from koperasi import db
from koperasi.errors import AccountInUse, ReferenceNotFound, ValidationError
from koperasi.models import AKUN_TIPE, Account, JournalLine
from koperasi.store import run_atomic

DEFAULT_CHART = [
    ("1-0000", "ASET", "Aset", None),
    ("1-1000", "Aset Lancar", "Aset", "1-0000"),
    ("1-1100", "Kas & Bank", "Aset", "1-1000"),
    ("1-1200", "Piutang Murabahah", "Aset", "1-1000"),
    ("1-1300", "Persediaan Murabahah", "Aset", "1-1000"),
    ("1-1400", "Piutang Potong Gaji", "Aset", "1-1000"),
    ("2-0000", "LIABILITAS", "Liabilitas", None),
    ("2-1000", "Simpanan Anggota", "Liabilitas", "2-0000"),
    ("2-1100", "Simpanan Wajib", "Liabilitas", "2-1000"),
    ("2-1200", "Simpanan Sukarela", "Liabilitas", "2-1000"),
    ("2-2000", "Margin Murabahah Ditangguhkan", "Liabilitas", "2-0000"),
    ("3-0000", "EKUITAS", "Ekuitas", None),
    ("3-1000", "Simpanan Pokok", "Ekuitas", "3-0000"),
    ("3-2000", "SHU Ditahan", "Ekuitas", "3-0000"),
    ("3-3000", "SHU Tahun Berjalan", "Ekuitas", "3-0000"),
    ("4-0000", "PENDAPATAN", "Pendapatan", None),
    ("4-1000", "Pendapatan Margin Murabahah", "Pendapatan", "4-0000"),
    ("5-0000", "BEBAN", "Beban", None),
    ("5-1000", "Beban Operasional", "Beban", "5-0000"),
    ("5-2000", "Beban Adm Bank", "Beban", "5-0000"),
]


def _clean_code(value):
    return (value or "").strip().upper()


def _clean_type(value):
    raw = (value or "").strip()
    for tipe in AKUN_TIPE:
        if tipe.lower() == raw.lower():
            return tipe
    raise ValidationError(f"Tipe akun tidak valid: {raw or '-'}.")


def get_account(account_id):
    account = db.session.get(Account, account_id)
    if account is None:
        raise ReferenceNotFound(f"Akun ID {account_id} tidak ditemukan.")
    return account


def find_by_code(kode):
    return Account.query.filter_by(kode=_clean_code(kode)).first()


def _resolve_parent(parent_kode, tipe):
    parent_kode = _clean_code(parent_kode)
    if not parent_kode:
        return None
    parent = find_by_code(parent_kode)
    if parent is None:
        raise ValidationError(f"Akun induk {parent_kode} tidak ditemukan.")
    if parent.tipe != tipe:
        raise ValidationError(
            f"Akun induk {parent_kode} bertipe {parent.tipe}, tidak sama dengan {tipe}."
        )
    return parent


def _create_account(kode, nama, tipe, parent_kode=None):
    kode = _clean_code(kode)
    nama = (nama or "").strip()
    if not kode or not nama:
        raise ValidationError("Kode dan nama akun wajib diisi.")
    tipe = _clean_type(tipe)
    if find_by_code(kode):
        raise ValidationError(f"Kode akun {kode} sudah digunakan.")

    account = Account(
        kode=kode,
        nama=nama,
        tipe=tipe,
        parent=_resolve_parent(parent_kode, tipe),
        saldo_debit=0.0,
    )
    db.session.add(account)
    db.session.flush()
    return account


def create_account(kode, nama, tipe, parent_kode=None):
    account = run_atomic(_create_account, kode, nama, tipe, parent_kode)
    logging.info("Akun %s dibuat (%s, saldo normal %s)", account.kode, account.tipe, account.saldo_normal)
    return account


def _is_descendant(candidate, ancestor):
    node = candidate
    while node is not None:
        if node.id == ancestor.id:
            return True
        node = node.parent
    return False


def _update_account(account_id, nama=None, tipe=None, parent_kode=None, clear_parent=False):
    account = get_account(account_id)
    if nama is not None:
        nama = nama.strip()
        if not nama:
            raise ValidationError("Nama akun wajib diisi.")
        account.nama = nama
    if tipe is not None:
        tipe = _clean_type(tipe)
        if tipe != account.tipe and account.children:
            raise ValidationError("Tipe akun induk tidak bisa diubah selama masih memiliki sub-akun.")
        account.tipe = tipe
    if clear_parent:
        account.parent = None
    elif parent_kode is not None:
        parent = _resolve_parent(parent_kode, account.tipe)
        if parent is not None and _is_descendant(parent, account):
            raise ValidationError("Akun induk tidak boleh berasal dari turunan akun ini sendiri.")
        account.parent = parent
    elif account.parent is not None and account.parent.tipe != account.tipe:
        raise ValidationError("Tipe akun harus sama dengan tipe akun induk.")
    # nama yang di-cache pada baris jurnal ikut diperbarui
    if nama is not None:
        JournalLine.query.filter_by(akun_id=account.id).update(
            {JournalLine.akun_nama: account.nama}, synchronize_session=False
        )
    return account


def update_account(account_id, nama=None, tipe=None, parent_kode=None, clear_parent=False):
    return run_atomic(_update_account, account_id, nama, tipe, parent_kode, clear_parent)


def _rename_account(account_id, new_kode):
    account = get_account(account_id)
    new_kode = _clean_code(new_kode)
    if not new_kode:
        raise ValidationError("Kode akun baru wajib diisi.")
    if new_kode == account.kode:
        return account
    if find_by_code(new_kode):
        raise ValidationError(f"Kode akun {new_kode} sudah digunakan.")
    old_kode = account.kode
    account.kode = new_kode
    JournalLine.query.filter_by(akun_id=account.id).update(
        {JournalLine.akun_kode: new_kode}, synchronize_session=False
    )
    logging.info("Kode akun %s diganti menjadi %s", old_kode, new_kode)
    return account


def rename_account(account_id, new_kode):
    """Ganti kode akun; sub-akun tetap terhubung karena merujuk ID, bukan kode."""
    return run_atomic(_rename_account, account_id, new_kode)


def _delete_account(account_id):
    account = get_account(account_id)
    if JournalLine.query.filter_by(akun_id=account.id).count():
        raise AccountInUse(f"Akun {account.kode} masih dipakai pada jurnal dan tidak bisa dihapus.")
    if account.children:
        raise AccountInUse(f"Akun {account.kode} masih memiliki sub-akun.")
    db.session.delete(account)
    return account.kode


def delete_account(account_id):
    kode = run_atomic(_delete_account, account_id)
    logging.info("Akun %s dihapus", kode)
    return kode


def _seed_default_chart(chart):
    created = 0
    for kode, nama, tipe, parent_kode in chart:
        if find_by_code(kode):
            continue
        _create_account(kode, nama, tipe, parent_kode)
        created += 1
    return created


def seed_default_chart(chart=None):
    return run_atomic(_seed_default_chart, chart or DEFAULT_CHART)


def account_tree():
    """Daftar akun urut depth-first beserta level indentasinya."""
    accounts = Account.query.order_by(Account.kode.asc()).all()
    children = {}
    for account in accounts:
        children.setdefault(account.parent_id, []).append(account)

    rows = []

    def walk(parent_id, level):
        for account in children.get(parent_id, []):
            rows.append((account, level))
            walk(account.id, level + 1)

    walk(None, 0)
    return rows

"""
Proyeksi saldo dari jurnal untuk laporan keuangan.

Saldo laporan selalu dihitung ulang dari seluruh baris jurnal (tidak
disimpan), dengan konvensi yang sama seperti saldo akun: debit-positif.
Nilai yang ditampilkan dikonversi ke sisi saldo normal tiap akun.
"""
from collections import defaultdict

from sqlalchemy import func

from koperasi import db
from koperasi.models import Account, JournalLine, to_normal_side

NERACA_TIPE = ("Aset", "Liabilitas", "Ekuitas")
LABA_RUGI_TIPE = ("Pendapatan", "Beban")


def project_balances():
    """Saldo debit-positif per ID akun; akun tanpa mutasi bernilai 0."""
    balances = {account_id: 0.0 for (account_id,) in db.session.query(Account.id).all()}
    rows = (
        db.session.query(
            JournalLine.akun_id,
            func.coalesce(func.sum(JournalLine.debit), 0.0),
            func.coalesce(func.sum(JournalLine.kredit), 0.0),
        )
        .group_by(JournalLine.akun_id)
        .all()
    )
    for akun_id, total_debit, total_kredit in rows:
        balances[akun_id] = round(balances.get(akun_id, 0.0) + total_debit - total_kredit, 2)
    return balances


def rollup(balances, accounts=None):
    """
    Total per akun termasuk seluruh turunannya (rekursif, bukan hanya anak
    langsung).
    """
    accounts = accounts if accounts is not None else Account.query.all()
    children = defaultdict(list)
    for account in accounts:
        children[account.parent_id].append(account.id)

    totals = {}

    def subtree(account_id):
        if account_id not in totals:
            total = balances.get(account_id, 0.0)
            for child_id in children.get(account_id, []):
                total += subtree(child_id)
            totals[account_id] = round(total, 2)
        return totals[account_id]

    for account in accounts:
        subtree(account.id)
    return totals


def _row(account, tipe, balances, totals, level, is_header):
    return {
        "id": account.id,
        "kode": account.kode,
        "nama": account.nama,
        "level": level,
        "is_header": is_header,
        "saldo": round(to_normal_side(tipe, balances.get(account.id, 0.0)), 2),
        "total": round(to_normal_side(tipe, totals.get(account.id, 0.0)), 2),
    }


def _section_rows(accounts, balances, totals, tipe):
    """Baris laporan depth-first untuk satu tipe akun, nilai sisi normal."""
    members = [account for account in accounts if account.tipe == tipe]
    ids = {account.id for account in members}
    by_parent = defaultdict(list)
    roots = []
    for account in sorted(members, key=lambda a: a.kode):
        if account.parent_id in ids:
            by_parent[account.parent_id].append(account)
        else:
            roots.append(account)

    rows = []

    def walk(account, level):
        rows.append(_row(account, tipe, balances, totals, level, bool(by_parent.get(account.id))))
        for child in by_parent.get(account.id, []):
            walk(child, level + 1)

    for root in roots:
        walk(root, 0)
    section_total = sum(to_normal_side(tipe, totals.get(root.id, 0.0)) for root in roots)
    return rows, round(section_total, 2)


def _projection():
    accounts = Account.query.order_by(Account.kode.asc()).all()
    balances = project_balances()
    return accounts, balances, rollup(balances, accounts)


def income_statement():
    accounts, balances, totals = _projection()
    sections = {}
    for tipe in LABA_RUGI_TIPE:
        rows, total = _section_rows(accounts, balances, totals, tipe)
        sections[tipe] = {"rows": rows, "total": total}
    shu = round(sections["Pendapatan"]["total"] - sections["Beban"]["total"], 2)
    return {
        "pendapatan": sections["Pendapatan"],
        "beban": sections["Beban"],
        "shu": shu,
    }


def balance_sheet():
    """
    Neraca. SHU tahun berjalan yang belum ditutup ke ekuitas ditampilkan
    terpisah supaya Aset = Liabilitas + Ekuitas + SHU.
    """
    accounts, balances, totals = _projection()
    sections = {}
    for tipe in NERACA_TIPE:
        rows, total = _section_rows(accounts, balances, totals, tipe)
        sections[tipe] = {"rows": rows, "total": total}

    shu = income_statement()["shu"]
    total_pasiva = round(sections["Liabilitas"]["total"] + sections["Ekuitas"]["total"] + shu, 2)
    return {
        "aset": sections["Aset"],
        "liabilitas": sections["Liabilitas"],
        "ekuitas": sections["Ekuitas"],
        "shu_berjalan": shu,
        "total_aset": sections["Aset"]["total"],
        "total_pasiva": total_pasiva,
        "is_balanced": round(sections["Aset"]["total"] - total_pasiva, 2) == 0,
    }


def trial_balance():
    """Neraca saldo per akun (tanpa rollup), saldo diletakkan di sisi debit/kredit."""
    balances = project_balances()
    rows = []
    total_debit = 0.0
    total_kredit = 0.0
    for account in Account.query.order_by(Account.kode.asc()).all():
        saldo = balances.get(account.id, 0.0)
        debit = saldo if saldo > 0 else 0.0
        kredit = -saldo if saldo < 0 else 0.0
        total_debit += debit
        total_kredit += kredit
        rows.append(
            {
                "kode": account.kode,
                "nama": account.nama,
                "tipe": account.tipe,
                "debit": round(debit, 2),
                "kredit": round(kredit, 2),
            }
        )
    total_debit = round(total_debit, 2)
    total_kredit = round(total_kredit, 2)
    return {
        "rows": rows,
        "total_debit": total_debit,
        "total_kredit": total_kredit,
        "is_balanced": total_debit == total_kredit,
    }

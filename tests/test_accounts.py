import pytest

from koperasi import db
from koperasi.accounts import (
    DEFAULT_CHART,
    account_tree,
    create_account,
    delete_account,
    find_by_code,
    rename_account,
    seed_default_chart,
    update_account,
)
from koperasi.errors import AccountInUse, ValidationError
from koperasi.journal import post_entry
from koperasi.models import SALDO_DEBIT, SALDO_KREDIT, JournalLine


def test_seed_default_chart_is_idempotent(app):
    assert seed_default_chart() == len(DEFAULT_CHART)
    assert seed_default_chart() == 0
    assert find_by_code("1-1100").parent_kode == "1-1000"


def test_normal_side_follows_account_type(coa):
    assert coa["1-1100"].saldo_normal == SALDO_DEBIT
    assert coa["5-1000"].saldo_normal == SALDO_DEBIT
    assert coa["2-1100"].saldo_normal == SALDO_KREDIT
    assert coa["3-1000"].saldo_normal == SALDO_KREDIT
    assert coa["4-1000"].saldo_normal == SALDO_KREDIT


def test_create_account_normalizes_code_and_type(coa):
    account = create_account(" 1-1500 ", "Piutang Lain", "aset", "1-1000")

    assert account.kode == "1-1500"
    assert account.tipe == "Aset"
    assert account.parent_kode == "1-1000"
    assert account.saldo == 0


def test_create_account_rejects_duplicate_code(coa):
    with pytest.raises(ValidationError):
        create_account("1-1100", "Kas Kedua", "Aset")


def test_create_account_rejects_unknown_parent(coa):
    with pytest.raises(ValidationError):
        create_account("1-9000", "Aset Lain", "Aset", "9-9999")


def test_create_account_rejects_parent_of_other_type(coa):
    with pytest.raises(ValidationError):
        create_account("2-9000", "Hutang Lain", "Liabilitas", "1-1000")


def test_update_account_refreshes_cached_name_on_lines(coa):
    post_entry(
        "Setoran modal",
        [
            {"akun_id": coa["1-1100"].id, "debit": 100000},
            {"akun_id": coa["3-1000"].id, "kredit": 100000},
        ],
    )

    update_account(coa["1-1100"].id, nama="Kas Besar")

    line = JournalLine.query.filter_by(akun_id=coa["1-1100"].id).one()
    assert line.akun_nama == "Kas Besar"


def test_update_account_rejects_cycle(coa):
    with pytest.raises(ValidationError):
        update_account(coa["1-0000"].id, parent_kode="1-1100")


def test_rename_refreshes_cached_code_on_lines(coa):
    kas_id = coa["1-1100"].id
    post_entry(
        "Setoran modal",
        [
            {"akun_id": coa["1-1100"].id, "debit": 100000},
            {"akun_id": coa["3-1000"].id, "kredit": 100000},
        ],
    )

    rename_account(kas_id, "1-1101")

    db.session.expire_all()
    line = JournalLine.query.filter_by(akun_id=kas_id).one()
    assert line.akun_kode == "1-1101"
    other = JournalLine.query.filter_by(akun_id=coa["3-1000"].id).one()
    assert other.akun_kode == "3-1000"


def test_rename_keeps_children_attached(coa):
    parent = coa["1-1000"]
    child_ids = sorted(child.id for child in parent.children)

    rename_account(parent.id, "1-1001")

    db.session.expire_all()
    renamed = find_by_code("1-1001")
    assert renamed.id == parent.id
    assert sorted(child.id for child in renamed.children) == child_ids
    assert find_by_code("1-1100").parent_kode == "1-1001"
    assert find_by_code("1-1000") is None


def test_delete_account_referenced_by_journal_is_rejected(coa):
    post_entry(
        "Beban listrik",
        [
            {"akun_id": coa["5-1000"].id, "debit": 25000},
            {"akun_id": coa["1-1100"].id, "kredit": 25000},
        ],
    )

    with pytest.raises(AccountInUse):
        delete_account(coa["5-1000"].id)
    assert find_by_code("5-1000") is not None


def test_delete_account_with_children_is_rejected(coa):
    with pytest.raises(AccountInUse):
        delete_account(coa["1-1000"].id)


def test_delete_unused_leaf_account(coa):
    kode = delete_account(coa["5-2000"].id)

    assert kode == "5-2000"
    assert find_by_code("5-2000") is None


def test_account_tree_is_depth_first(coa):
    rows = [(account.kode, level) for account, level in account_tree()]

    assert rows[0] == ("1-0000", 0)
    assert rows[1] == ("1-1000", 1)
    assert rows[2] == ("1-1100", 2)
    assert ("2-0000", 0) in rows

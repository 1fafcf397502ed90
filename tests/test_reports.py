from koperasi.accounts import create_account
from koperasi.journal import post_entry
from koperasi.reports import balance_sheet, income_statement, project_balances, rollup, trial_balance


def _post(coa, deskripsi, debit_kode, credit_kode, amount):
    return post_entry(
        deskripsi,
        [
            {"akun_id": coa[debit_kode].id, "debit": amount},
            {"akun_id": coa[credit_kode].id, "kredit": amount},
        ],
    )


def test_project_balances_seeds_every_account_at_zero(coa):
    balances = project_balances()

    assert balances[coa["1-1100"].id] == 0
    assert set(balances.values()) == {0}


def test_projection_matches_stored_balances(coa):
    _post(coa, "Modal", "1-1100", "3-1000", 2_000_000)
    _post(coa, "Beban", "5-1000", "1-1100", 150_000)

    balances = project_balances()

    for kode in ("1-1100", "3-1000", "5-1000"):
        assert balances[coa[kode].id] == coa[kode].saldo_debit


def test_rollup_includes_grandchildren(coa):
    create_account("1-1110", "Kas Kecil", "Aset", "1-1100")
    _post(coa, "Modal", "1-1110", "3-1000", 300_000)
    _post(coa, "Modal bank", "1-1100", "3-1000", 700_000)

    totals = rollup(project_balances())

    assert totals[coa["1-1110"].id] == 300_000
    assert totals[coa["1-1100"].id] == 1_000_000
    # akar dua tingkat di atas tetap memuat cucu
    assert totals[coa["1-0000"].id] == 1_000_000
    assert totals[coa["3-0000"].id] == -1_000_000


def test_income_statement_computes_shu(coa):
    _post(coa, "Margin", "1-1100", "4-1000", 400_000)
    _post(coa, "Operasional", "5-1000", "1-1100", 150_000)

    report = income_statement()

    assert report["pendapatan"]["total"] == 400_000
    assert report["beban"]["total"] == 150_000
    assert report["shu"] == 250_000


def test_balance_sheet_balances_with_current_shu(coa):
    _post(coa, "Modal", "1-1100", "3-1000", 1_000_000)
    _post(coa, "Simpanan wajib", "1-1100", "2-1100", 200_000)
    _post(coa, "Margin", "1-1100", "4-1000", 50_000)

    report = balance_sheet()

    assert report["total_aset"] == 1_250_000
    assert report["liabilitas"]["total"] == 200_000
    assert report["ekuitas"]["total"] == 1_000_000
    assert report["shu_berjalan"] == 50_000
    assert report["is_balanced"] is True
    kas = next(row for row in report["aset"]["rows"] if row["kode"] == "1-1100")
    assert kas["saldo"] == 1_250_000
    assert kas["level"] == 2


def test_trial_balance_is_balanced(coa):
    _post(coa, "Modal", "1-1100", "3-1000", 1_000_000)
    _post(coa, "Beban", "5-1000", "1-1100", 20_000)

    report = trial_balance()

    assert report["total_debit"] == report["total_kredit"] == 1_000_000
    assert report["is_balanced"] is True

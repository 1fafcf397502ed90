from koperasi.accounts import DEFAULT_CHART
from koperasi.members import create_member
from koperasi.models import Account, LaporanArsip


def test_seed_coa_command(runner):
    result = runner.invoke(args=["seed-coa"])

    assert result.exit_code == 0
    assert f"{len(DEFAULT_CHART)} akun" in result.output
    assert Account.query.count() == len(DEFAULT_CHART)


def test_run_autodebet_command_for_given_period(runner, coa, settings):
    create_member({"nama": "Eka", "nip": "6001", "unit": "SMP"}, settings)

    result = runner.invoke(args=["run-autodebet", "--period", "2024-07"])

    assert result.exit_code == 0, result.output
    assert "2024-07" in result.output
    assert LaporanArsip.query.filter_by(periode="2024-07").count() == 1

    again = runner.invoke(args=["run-autodebet", "--period", "2024-07"])
    assert again.exit_code != 0
    assert "sudah pernah dijalankan" in again.output


def test_run_autodebet_rejects_bad_period(runner, coa):
    result = runner.invoke(args=["run-autodebet", "--period", "07/2024"])

    assert result.exit_code != 0


def test_reload_settings_command(runner):
    result = runner.invoke(args=["reload-settings"])

    assert result.exit_code == 0
    assert "1-1400" in result.output

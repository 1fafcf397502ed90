from datetime import date

import pytest

from koperasi.errors import ReferenceNotFound, ValidationError
from koperasi.members import (
    create_member,
    deactivate_member,
    get_member,
    list_members,
    post_savings_transaction,
    savings_history,
    update_member,
)
from koperasi.models import STATUS_AKTIF, STATUS_TIDAK_AKTIF


def _create(settings, **overrides):
    data = {"nama": "Siti", "nip": "3001", "unit": "SD", "tgl_gabung": "2023-07-01"}
    data.update(overrides)
    return create_member(data, settings)


def test_create_member_uses_configured_principal_savings(app, settings):
    anggota = _create(settings)

    assert anggota.status == STATUS_AKTIF
    assert anggota.simpanan_pokok == settings.simpanan_pokok
    assert anggota.tgl_gabung == date(2023, 7, 1)


def test_duplicate_nip_is_rejected(app, settings):
    _create(settings)

    with pytest.raises(ValidationError):
        _create(settings, nama="Siti Lain")


def test_unknown_unit_is_rejected(app, settings):
    with pytest.raises(ValidationError):
        _create(settings, unit="Kantin")


def test_update_member_ignores_savings_fields(app, settings):
    anggota = _create(settings)

    update_member(anggota.id, {"nama": "Siti Aminah", "simpanan_wajib": 999_999})

    refreshed = get_member(anggota.id)
    assert refreshed.nama == "Siti Aminah"
    assert refreshed.simpanan_wajib == 0


def test_deactivate_and_filter_by_status(app, settings):
    anggota = _create(settings)
    _create(settings, nama="Tono", nip="3002")

    deactivate_member(anggota.id)

    assert [a.nama for a in list_members(status=STATUS_AKTIF)] == ["Tono"]
    assert [a.nama for a in list_members(status=STATUS_TIDAK_AKTIF)] == ["Siti"]


def test_savings_deposit_and_withdrawal(app, settings):
    anggota = _create(settings)

    post_savings_transaction(anggota.id, "Simpanan Sukarela", "Setor", 100_000, "Setoran awal")
    post_savings_transaction(anggota.id, "Simpanan Sukarela", "Tarik", 40_000)

    refreshed = get_member(anggota.id)
    assert refreshed.simpanan_sukarela == 60_000
    history = savings_history(anggota.id)
    assert sorted(t.tipe for t in history) == ["Setor", "Tarik"]


def test_withdrawal_cannot_overdraw(app, settings):
    anggota = _create(settings)

    with pytest.raises(ValidationError):
        post_savings_transaction(anggota.id, "Simpanan Sukarela", "Tarik", 1)

    assert savings_history(anggota.id) == []


@pytest.mark.parametrize(
    "jenis, tipe, jumlah",
    [
        ("Simpanan Lain", "Setor", 10),
        ("Simpanan Wajib", "Pinjam", 10),
        ("Simpanan Wajib", "Setor", 0),
        ("Simpanan Sukarela", "Setor", "inf"),
        ("Simpanan Sukarela", "Setor", "nan"),
    ],
)
def test_invalid_savings_transactions_are_rejected(app, settings, jenis, tipe, jumlah):
    anggota = _create(settings)

    with pytest.raises(ValidationError):
        post_savings_transaction(anggota.id, jenis, tipe, jumlah)


def test_savings_for_missing_member(app):
    with pytest.raises(ReferenceNotFound):
        post_savings_transaction(404, "Simpanan Wajib", "Setor", 10)

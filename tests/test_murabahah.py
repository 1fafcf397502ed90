import pytest

from koperasi.errors import ValidationError
from koperasi.members import create_member
from koperasi.models import KONTRAK_BERJALAN, KONTRAK_LUNAS, KONTRAK_REVIEW
from koperasi.murabahah import (
    contract_history,
    create_contract,
    list_contracts,
    record_installment,
    transition_contract,
    update_contract,
)
from koperasi.store import atomic


@pytest.fixture()
def anggota(app, settings):
    return create_member({"nama": "Rina", "nip": "4001", "unit": "SMP"}, settings)


def _contract(anggota, settings, **overrides):
    data = {
        "anggota_id": anggota.id,
        "nama_barang": "Motor",
        "harga_pokok": 10_000_000,
        "uang_muka": 0,
        "tenor": 12,
        "tanggal_akad": "2024-03-01",
    }
    data.update(overrides)
    return create_contract(data, settings)


def test_create_contract_prices_from_settings(anggota, settings):
    kontrak = _contract(anggota, settings)

    assert kontrak.status == KONTRAK_REVIEW
    assert kontrak.margin == 1_500_000
    assert kontrak.harga_jual == 11_500_000
    assert kontrak.cicilan_per_bulan == 958_333.33


def test_create_contract_validates_terms(anggota, settings):
    with pytest.raises(ValidationError):
        _contract(anggota, settings, harga_pokok=0)
    with pytest.raises(ValidationError):
        _contract(anggota, settings, tenor=0)
    with pytest.raises(ValidationError):
        _contract(anggota, settings, uang_muka=10_000_000)
    with pytest.raises(ValidationError):
        _contract(anggota, settings, harga_pokok="1e309")
    with pytest.raises(ValidationError):
        _contract(anggota, settings, status="Dibatalkan")


def test_update_contract_recomputes_pricing(anggota, settings):
    kontrak = _contract(anggota, settings)

    updated = update_contract(kontrak.id, {"tenor": 6, "status": KONTRAK_BERJALAN}, settings)

    assert updated.margin == 1_000_000
    assert updated.cicilan_per_bulan == 1_833_333.33
    assert updated.status == KONTRAK_BERJALAN


def test_transition_only_moves_forward(anggota, settings):
    kontrak = _contract(anggota, settings)

    for status in ("Approved", "Akad", "Berjalan"):
        kontrak = transition_contract(kontrak.id, status)
    assert kontrak.status == KONTRAK_BERJALAN

    with pytest.raises(ValidationError):
        transition_contract(kontrak.id, "Review")


def test_transition_cannot_skip_steps(anggota, settings):
    kontrak = _contract(anggota, settings)

    with pytest.raises(ValidationError):
        transition_contract(kontrak.id, KONTRAK_BERJALAN)


def test_record_installment_marks_contract_paid(anggota, settings):
    kontrak = _contract(anggota, settings, tenor=1, status=KONTRAK_BERJALAN)

    with atomic():
        record_installment(kontrak, kontrak.cicilan_pokok, kontrak.cicilan_margin, "Pelunasan")

    assert kontrak.status == KONTRAK_LUNAS
    history = contract_history(kontrak.id)
    assert [t.angsuran_ke for t in history] == [1]
    assert history[0].jumlah == 11_000_000


def test_list_contracts_filters_by_status(anggota, settings):
    _contract(anggota, settings)
    _contract(anggota, settings, nama_barang="Kulkas", status=KONTRAK_BERJALAN)

    assert [k.nama_barang for k in list_contracts(status=KONTRAK_BERJALAN)] == ["Kulkas"]
    assert len(list_contracts(anggota_id=anggota.id)) == 2

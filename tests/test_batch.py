from datetime import date, datetime

import pytest

from koperasi import db
from koperasi.batch import preview_autodebet, run_monthly_batch
from koperasi.errors import BatchAlreadyRun, ConfigurationError, ValidationError
from koperasi.journal import delete_entry, post_entry
from koperasi.members import create_member, deactivate_member
from koperasi.models import (
    KONTRAK_BERJALAN,
    KONTRAK_LUNAS,
    KontrakMurabahah,
    JournalEntry,
    LaporanArsip,
    TransaksiMurabahah,
    TransaksiSimpanan,
)
from koperasi.settings import KoperasiSettings

MAY = datetime(2024, 5, 25, 10, 0)


def _member(settings, nama, nip, unit):
    return create_member({"nama": nama, "nip": nip, "unit": unit}, settings)


def _contract(anggota, harga_pokok, uang_muka, tenor, margin, cicilan_terbayar=0, status=KONTRAK_BERJALAN):
    kontrak = KontrakMurabahah(
        anggota_id=anggota.id,
        nama_barang="Laptop",
        harga_pokok=harga_pokok,
        uang_muka=uang_muka,
        tenor=tenor,
        margin=margin,
        harga_jual=harga_pokok + margin,
        cicilan_per_bulan=(harga_pokok + margin - uang_muka) / tenor,
        tanggal_akad=date(2024, 1, 1),
        status=status,
        cicilan_terbayar=cicilan_terbayar,
    )
    db.session.add(kontrak)
    db.session.commit()
    return kontrak


@pytest.fixture()
def roster(coa, settings):
    budi = _member(settings, "Budi", "1001", "SMA")
    ani = _member(settings, "Ani", "1002", "PGTK")
    citra = _member(settings, "Citra", "1003", "SMA")
    _contract(budi, 1_200_000, 0, 12, 180_000)
    _contract(ani, 600_000, 0, 6, 60_000, cicilan_terbayar=5)
    return {"budi": budi, "ani": ani, "citra": citra}


def test_batch_posts_one_balanced_entry_and_archive(roster, coa, settings):
    entry, arsip = run_monthly_batch(settings, as_of=MAY)

    rows = arsip.data_laporan
    assert entry.periode == arsip.periode == "2024-05"
    assert entry.reference.startswith("AD")
    assert len(rows) == 3
    assert entry.total_debit == entry.total_kredit
    assert entry.total_debit == round(sum(row["totalPotongan"] for row in rows), 2)
    assert JournalEntry.query.count() == 1
    assert LaporanArsip.query.count() == 1

    db.session.expire_all()
    # 3 x 50.000 wajib + pokok (100.000 + 100.000) + margin (15.000 + 10.000)
    assert coa["1-1400"].saldo == 375_000
    assert coa["2-1100"].saldo == 150_000
    assert coa["1-1200"].saldo == -200_000
    assert coa["4-1000"].saldo == 25_000


def test_batch_rows_sorted_by_unit_then_name(roster, settings):
    _, arsip = run_monthly_batch(settings, as_of=MAY)

    assert [(row["unit"], row["nama"]) for row in arsip.data_laporan] == [
        ("PGTK", "Ani"),
        ("SMA", "Budi"),
        ("SMA", "Citra"),
    ]
    budi = arsip.data_laporan[1]
    assert budi["angsuranKe"] == 1
    assert budi["cicilanPokok"] == 100_000
    assert budi["cicilanMargin"] == 15_000
    assert budi["cicilanMurabahah"] == 115_000
    assert budi["totalPotongan"] == 165_000
    assert arsip.data_laporan[2]["angsuranKe"] == ""


def test_batch_updates_members_and_contracts(roster, settings):
    run_monthly_batch(settings, as_of=MAY)

    db.session.expire_all()
    budi = roster["budi"]
    assert budi.simpanan_wajib == 50_000
    assert TransaksiSimpanan.query.filter_by(anggota_id=budi.id, periode="2024-05").count() == 1
    kontrak = KontrakMurabahah.query.filter_by(anggota_id=budi.id).one()
    assert kontrak.cicilan_terbayar == 1
    assert kontrak.status == KONTRAK_BERJALAN
    assert TransaksiMurabahah.query.filter_by(kontrak_id=kontrak.id).one().angsuran_ke == 1


def test_batch_marks_contract_paid_on_last_installment(roster, settings):
    run_monthly_batch(settings, as_of=MAY)

    db.session.expire_all()
    kontrak = KontrakMurabahah.query.filter_by(anggota_id=roster["ani"].id).one()
    assert kontrak.cicilan_terbayar == 6
    assert kontrak.status == KONTRAK_LUNAS


def test_second_run_for_same_period_is_rejected(roster, settings):
    run_monthly_batch(settings, as_of=MAY)

    with pytest.raises(BatchAlreadyRun) as excinfo:
        run_monthly_batch(settings, as_of=datetime(2024, 5, 31))

    assert excinfo.value.period == "2024-05"
    assert JournalEntry.query.count() == 1
    db.session.expire_all()
    assert roster["budi"].simpanan_wajib == 50_000


def test_next_period_runs_again(roster, settings):
    run_monthly_batch(settings, as_of=MAY)
    entry, _ = run_monthly_batch(settings, as_of=date(2024, 6, 25))

    assert entry.periode == "2024-06"
    db.session.expire_all()
    assert roster["budi"].simpanan_wajib == 100_000


def test_missing_batch_account_aborts_without_writes(roster):
    settings = KoperasiSettings(akun_piutang_gaji="9-9999")

    with pytest.raises(ConfigurationError, match="9-9999"):
        run_monthly_batch(settings, as_of=MAY)

    db.session.expire_all()
    assert JournalEntry.query.count() == 0
    assert LaporanArsip.query.count() == 0
    assert TransaksiSimpanan.query.filter(TransaksiSimpanan.periode.isnot(None)).count() == 0
    assert roster["budi"].simpanan_wajib == 0


def test_zero_credit_lines_are_omitted(coa, settings):
    _member(settings, "Dewi", "2001", "SD")

    entry, _ = run_monthly_batch(settings, as_of=MAY)

    assert [line.akun_kode for line in entry.lines] == ["1-1400", "2-1100"]


def test_preview_matches_batch_without_writing(roster, settings):
    rows = preview_autodebet(settings)

    assert JournalEntry.query.count() == 0
    _, arsip = run_monthly_batch(settings, as_of=MAY)
    assert rows == arsip.data_laporan


def test_inactive_members_are_skipped(roster, settings):
    deactivate_member(roster["citra"].id)

    _, arsip = run_monthly_batch(settings, as_of=MAY)

    assert [row["nama"] for row in arsip.data_laporan] == ["Ani", "Budi"]


def test_autodebet_entry_cannot_be_edited_or_deleted(roster, coa, settings):
    entry, _ = run_monthly_batch(settings, as_of=MAY)

    with pytest.raises(ValidationError):
        delete_entry(entry.id)
    with pytest.raises(ValidationError):
        post_entry(
            "Ubah autodebet",
            [{"akun_id": coa["1-1100"].id, "debit": 1}, {"akun_id": coa["3-1000"].id, "kredit": 1}],
            entry_id=entry.id,
        )
    assert JournalEntry.query.count() == 1


def test_concurrent_run_loses_on_unique_period(roster, settings, monkeypatch):
    run_monthly_batch(settings, as_of=MAY)
    # proses kedua yang lolos pengecekan awal tetap ditolak oleh constraint unik
    monkeypatch.setattr("koperasi.batch._ensure_not_processed", lambda token: None)

    with pytest.raises(BatchAlreadyRun):
        run_monthly_batch(settings, as_of=MAY)

    assert JournalEntry.query.count() == 1
    assert LaporanArsip.query.count() == 1
    db.session.expire_all()
    assert roster["budi"].simpanan_wajib == 50_000

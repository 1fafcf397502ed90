from koperasi import db
from koperasi.time_utils import local_now


AKUN_TIPE = ("Aset", "Liabilitas", "Ekuitas", "Pendapatan", "Beban")
SALDO_DEBIT = "Debit"
SALDO_KREDIT = "Kredit"
_NORMAL_SIDE = {
    "Aset": SALDO_DEBIT,
    "Beban": SALDO_DEBIT,
    "Liabilitas": SALDO_KREDIT,
    "Ekuitas": SALDO_KREDIT,
    "Pendapatan": SALDO_KREDIT,
}

UNIT_ORDER = ("PGTK", "SD", "SMP", "SMA", "Supporting", "Manajemen")
STATUS_AKTIF = "Aktif"
STATUS_TIDAK_AKTIF = "Tidak Aktif"

JENIS_SIMPANAN = {
    "Simpanan Pokok": "simpanan_pokok",
    "Simpanan Wajib": "simpanan_wajib",
    "Simpanan Sukarela": "simpanan_sukarela",
}

KONTRAK_DRAFT = "Draft"
KONTRAK_REVIEW = "Review"
KONTRAK_APPROVED = "Approved"
KONTRAK_AKAD = "Akad"
KONTRAK_BERJALAN = "Berjalan"
KONTRAK_LUNAS = "Lunas"
KONTRAK_MACET = "Macet"
KONTRAK_STATUSES = (
    KONTRAK_DRAFT,
    KONTRAK_REVIEW,
    KONTRAK_APPROVED,
    KONTRAK_AKAD,
    KONTRAK_BERJALAN,
    KONTRAK_LUNAS,
    KONTRAK_MACET,
)


def normal_side(tipe):
    """Sisi saldo normal akun, ditentukan sepenuhnya oleh tipe akun."""
    try:
        return _NORMAL_SIDE[tipe]
    except KeyError:
        raise ValueError(f"Tipe akun tidak dikenal: {tipe!r}") from None


def to_normal_side(tipe, debit_balance):
    if normal_side(tipe) == SALDO_DEBIT:
        return debit_balance
    return -debit_balance


def _iso(value):
    return value.isoformat() if value else None


class Account(db.Model):
    __tablename__ = "chart_of_accounts"

    id = db.Column(db.Integer, primary_key=True)
    kode = db.Column(db.String(20), unique=True, nullable=False, index=True)
    nama = db.Column(db.String(150), nullable=False)
    tipe = db.Column(db.String(20), nullable=False)
    parent_id = db.Column(
        db.Integer,
        db.ForeignKey("chart_of_accounts.id", ondelete="RESTRICT"),
        nullable=True,
    )
    # saldo disimpan debit-positif; tampilan mengikuti saldo normal akun
    saldo_debit = db.Column(db.Float, nullable=False, default=0.0)
    created_at = db.Column(db.DateTime, nullable=False, default=local_now)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    parent = db.relationship("Account", remote_side=[id], backref=db.backref("children", lazy=True))

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def saldo_normal(self):
        return normal_side(self.tipe)

    @property
    def saldo(self):
        return round(to_normal_side(self.tipe, self.saldo_debit or 0.0), 2)

    @property
    def parent_kode(self):
        return self.parent.kode if self.parent else None

    def to_dict(self):
        return {
            "id": self.id,
            "kode": self.kode,
            "nama": self.nama,
            "tipe": self.tipe,
            "parent_kode": self.parent_kode,
            "saldo_normal": self.saldo_normal,
            "saldo": self.saldo,
        }

    def __repr__(self):
        return f"<Account {self.kode} - {self.nama}>"


class JournalEntry(db.Model):
    __tablename__ = "jurnal_umum"

    id = db.Column(db.Integer, primary_key=True)
    reference = db.Column(db.String(50), unique=True, nullable=False)
    tanggal = db.Column(db.DateTime, nullable=False, default=local_now)
    deskripsi = db.Column(db.String(255), nullable=False)
    sumber = db.Column(db.String(20), nullable=False, default="manual")
    # diisi hanya untuk jurnal autodebet; unik agar satu periode hanya sekali
    periode = db.Column(db.String(7), unique=True, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=local_now)
    updated_at = db.Column(db.DateTime, nullable=True, onupdate=local_now)

    lines = db.relationship(
        "JournalLine",
        backref="entry",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="JournalLine.urutan",
    )

    @property
    def total_debit(self):
        return round(sum(line.debit for line in self.lines), 2)

    @property
    def total_kredit(self):
        return round(sum(line.kredit for line in self.lines), 2)

    def to_dict(self):
        return {
            "id": self.id,
            "reference": self.reference,
            "tanggal": _iso(self.tanggal),
            "deskripsi": self.deskripsi,
            "sumber": self.sumber,
            "periode": self.periode,
            "lines": [line.to_dict() for line in self.lines],
            "total_debit": self.total_debit,
            "total_kredit": self.total_kredit,
        }

    def __repr__(self):
        return f"<JournalEntry {self.reference}>"


class JournalLine(db.Model):
    __tablename__ = "jurnal_umum_baris"

    id = db.Column(db.Integer, primary_key=True)
    entry_id = db.Column(db.Integer, db.ForeignKey("jurnal_umum.id", ondelete="CASCADE"), nullable=False)
    akun_id = db.Column(
        db.Integer,
        db.ForeignKey("chart_of_accounts.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    akun_kode = db.Column(db.String(20), nullable=False)
    akun_nama = db.Column(db.String(150), nullable=False)
    debit = db.Column(db.Float, nullable=False, default=0.0)
    kredit = db.Column(db.Float, nullable=False, default=0.0)
    urutan = db.Column(db.Integer, nullable=False, default=0)

    akun = db.relationship("Account", backref=db.backref("journal_lines", lazy="dynamic"))

    def to_dict(self):
        return {
            "akun_id": self.akun_id,
            "akun_kode": self.akun_kode,
            "akun_nama": self.akun_nama,
            "debit": self.debit,
            "kredit": self.kredit,
        }


class Anggota(db.Model):
    __tablename__ = "anggota"

    id = db.Column(db.Integer, primary_key=True)
    nama = db.Column(db.String(120), nullable=False)
    nip = db.Column(db.String(50), unique=True, nullable=False)
    unit = db.Column(db.String(30), nullable=False, default="Supporting")
    tgl_gabung = db.Column(db.Date, nullable=False)
    status = db.Column(db.String(20), nullable=False, default=STATUS_AKTIF, index=True)
    simpanan_pokok = db.Column(db.Float, nullable=False, default=0.0)
    simpanan_wajib = db.Column(db.Float, nullable=False, default=0.0)
    simpanan_sukarela = db.Column(db.Float, nullable=False, default=0.0)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    transaksi = db.relationship(
        "TransaksiSimpanan",
        backref="anggota",
        lazy="dynamic",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def total_simpanan(self):
        return round(self.simpanan_pokok + self.simpanan_wajib + self.simpanan_sukarela, 2)

    def to_dict(self):
        return {
            "id": self.id,
            "nama": self.nama,
            "nip": self.nip,
            "unit": self.unit,
            "tgl_gabung": _iso(self.tgl_gabung),
            "status": self.status,
            "simpanan_pokok": self.simpanan_pokok,
            "simpanan_wajib": self.simpanan_wajib,
            "simpanan_sukarela": self.simpanan_sukarela,
            "total_simpanan": self.total_simpanan,
        }

    def __repr__(self):
        return f"<Anggota {self.nip} {self.nama}>"


class TransaksiSimpanan(db.Model):
    __tablename__ = "anggota_transaksi"

    id = db.Column(db.Integer, primary_key=True)
    anggota_id = db.Column(db.Integer, db.ForeignKey("anggota.id", ondelete="CASCADE"), nullable=False, index=True)
    jenis = db.Column(db.String(30), nullable=False)
    tipe = db.Column(db.String(10), nullable=False)
    jumlah = db.Column(db.Float, nullable=False)
    tanggal = db.Column(db.DateTime, nullable=False, default=local_now)
    keterangan = db.Column(db.String(255), nullable=True)
    periode = db.Column(db.String(7), nullable=True)

    def to_dict(self):
        return {
            "id": self.id,
            "anggota_id": self.anggota_id,
            "jenis": self.jenis,
            "tipe": self.tipe,
            "jumlah": self.jumlah,
            "tanggal": _iso(self.tanggal),
            "keterangan": self.keterangan,
            "periode": self.periode,
        }


class KontrakMurabahah(db.Model):
    __tablename__ = "kontrak_murabahah"

    id = db.Column(db.Integer, primary_key=True)
    anggota_id = db.Column(db.Integer, db.ForeignKey("anggota.id", ondelete="RESTRICT"), nullable=False, index=True)
    nama_barang = db.Column(db.String(150), nullable=False)
    harga_pokok = db.Column(db.Float, nullable=False)
    margin = db.Column(db.Float, nullable=False, default=0.0)
    harga_jual = db.Column(db.Float, nullable=False)
    uang_muka = db.Column(db.Float, nullable=False, default=0.0)
    tenor = db.Column(db.Integer, nullable=False)
    cicilan_per_bulan = db.Column(db.Float, nullable=False)
    tanggal_akad = db.Column(db.Date, nullable=False)
    status = db.Column(db.String(20), nullable=False, default=KONTRAK_REVIEW, index=True)
    cicilan_terbayar = db.Column(db.Integer, nullable=False, default=0)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    anggota = db.relationship("Anggota", backref=db.backref("kontrak", lazy=True))
    transaksi = db.relationship(
        "TransaksiMurabahah",
        backref="kontrak",
        lazy="dynamic",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def cicilan_pokok(self):
        return (self.harga_pokok - (self.uang_muka or 0.0)) / self.tenor

    @property
    def cicilan_margin(self):
        return (self.margin or 0.0) / self.tenor

    @property
    def sisa_tenor(self):
        return max(self.tenor - (self.cicilan_terbayar or 0), 0)

    def to_dict(self):
        return {
            "id": self.id,
            "anggota_id": self.anggota_id,
            "nama_barang": self.nama_barang,
            "harga_pokok": self.harga_pokok,
            "margin": self.margin,
            "harga_jual": self.harga_jual,
            "uang_muka": self.uang_muka,
            "tenor": self.tenor,
            "cicilan_per_bulan": self.cicilan_per_bulan,
            "tanggal_akad": _iso(self.tanggal_akad),
            "status": self.status,
            "cicilan_terbayar": self.cicilan_terbayar,
            "sisa_tenor": self.sisa_tenor,
        }

    def __repr__(self):
        return f"<KontrakMurabahah {self.id} {self.nama_barang} ({self.status})>"


class TransaksiMurabahah(db.Model):
    __tablename__ = "kontrak_transaksi"

    id = db.Column(db.Integer, primary_key=True)
    kontrak_id = db.Column(
        db.Integer,
        db.ForeignKey("kontrak_murabahah.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    tanggal = db.Column(db.DateTime, nullable=False, default=local_now)
    angsuran_ke = db.Column(db.Integer, nullable=False)
    pokok = db.Column(db.Float, nullable=False, default=0.0)
    margin = db.Column(db.Float, nullable=False, default=0.0)
    jumlah = db.Column(db.Float, nullable=False)
    keterangan = db.Column(db.String(255), nullable=True)
    periode = db.Column(db.String(7), nullable=True)

    def to_dict(self):
        return {
            "id": self.id,
            "kontrak_id": self.kontrak_id,
            "tanggal": _iso(self.tanggal),
            "angsuran_ke": self.angsuran_ke,
            "pokok": self.pokok,
            "margin": self.margin,
            "jumlah": self.jumlah,
            "keterangan": self.keterangan,
            "periode": self.periode,
        }


class LaporanArsip(db.Model):
    __tablename__ = "laporan_arsip"

    id = db.Column(db.Integer, primary_key=True)
    nama_laporan = db.Column(db.String(150), nullable=False)
    tanggal_dibuat = db.Column(db.DateTime, nullable=False, default=local_now)
    periode = db.Column(db.String(7), unique=True, nullable=True)
    jurnal_id = db.Column(db.Integer, db.ForeignKey("jurnal_umum.id", ondelete="SET NULL"), nullable=True)
    data_laporan = db.Column(db.JSON, nullable=False, default=list)

    jurnal = db.relationship("JournalEntry")

    def to_dict(self, include_rows=True):
        data = {
            "id": self.id,
            "nama_laporan": self.nama_laporan,
            "tanggal_dibuat": _iso(self.tanggal_dibuat),
            "periode": self.periode,
            "jurnal_id": self.jurnal_id,
            "jumlah_baris": len(self.data_laporan or []),
        }
        if include_rows:
            data["data_laporan"] = list(self.data_laporan or [])
        return data


class Pengaturan(db.Model):
    __tablename__ = "pengaturan"

    id = db.Column(db.Integer, primary_key=True)
    simpanan_pokok = db.Column(db.Float, nullable=False)
    simpanan_wajib = db.Column(db.Float, nullable=False)
    margin_tenor_6 = db.Column(db.Float, nullable=False)
    margin_tenor_12 = db.Column(db.Float, nullable=False)
    margin_tenor_18 = db.Column(db.Float, nullable=False)
    margin_tenor_24 = db.Column(db.Float, nullable=False)
    plafon_pembiayaan_gaji = db.Column(db.Float, nullable=False)
    maksimal_cicilan_gaji = db.Column(db.Float, nullable=False)
    akun_piutang_gaji = db.Column(db.String(20), nullable=False)
    akun_simpanan_wajib = db.Column(db.String(20), nullable=False)
    akun_piutang_murabahah = db.Column(db.String(20), nullable=False)
    akun_pendapatan_margin = db.Column(db.String(20), nullable=False)
    menu_access = db.Column(db.JSON, nullable=False, default=dict)
    updated_at = db.Column(db.DateTime, nullable=False, default=local_now, onupdate=local_now)

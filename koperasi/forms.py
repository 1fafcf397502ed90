import math

from flask_wtf import FlaskForm
from wtforms import DateField, FloatField, IntegerField, SelectField, StringField
from wtforms.validators import DataRequired, InputRequired, Length, NumberRange, Optional

from koperasi.models import AKUN_TIPE, JENIS_SIMPANAN, UNIT_ORDER


class JsonForm(FlaskForm):
    # endpoint JSON; token CSRF tidak dikirim lewat body
    class Meta:
        csrf = False


class RupiahField(FloatField):
    """FloatField yang menolak inf dan nan."""

    def process_formdata(self, valuelist):
        super().process_formdata(valuelist)
        if self.data is not None and not math.isfinite(self.data):
            self.data = None
            raise ValueError("Nominal tidak valid.")


def first_error(form):
    for field_name, messages in form.errors.items():
        if messages:
            label = getattr(form, field_name).label.text if hasattr(form, field_name) else field_name
            return f"{label}: {messages[0]}"
    return "Data tidak valid."


class AccountForm(JsonForm):
    kode = StringField('Kode Akun', validators=[DataRequired(), Length(max=20)])
    nama = StringField('Nama Akun', validators=[DataRequired(), Length(max=150)])
    tipe = SelectField('Tipe', choices=[(t, t) for t in AKUN_TIPE], validators=[DataRequired()])
    parent_kode = StringField('Akun Induk', validators=[Optional(), Length(max=20)])


class MemberForm(JsonForm):
    nama = StringField('Nama', validators=[DataRequired(), Length(max=120)])
    nip = StringField('NIP', validators=[DataRequired(), Length(max=50)])
    unit = SelectField('Unit', choices=[(u, u) for u in UNIT_ORDER], validators=[DataRequired()])
    tgl_gabung = DateField('Tanggal Bergabung', validators=[Optional()])
    simpanan_pokok = RupiahField('Simpanan Pokok', validators=[Optional(), NumberRange(min=0)])


class SavingsTransactionForm(JsonForm):
    jenis = SelectField('Jenis Simpanan', choices=[(j, j) for j in JENIS_SIMPANAN], validators=[DataRequired()])
    tipe = SelectField('Tipe', choices=[('Setor', 'Setor'), ('Tarik', 'Tarik')], validators=[DataRequired()])
    jumlah = RupiahField('Jumlah', validators=[InputRequired(), NumberRange(min=0.01)])
    keterangan = StringField('Keterangan', validators=[Optional(), Length(max=255)])


class ContractForm(JsonForm):
    anggota_id = IntegerField('Anggota', validators=[InputRequired()])
    nama_barang = StringField('Nama Barang', validators=[DataRequired(), Length(max=150)])
    harga_pokok = RupiahField('Harga Pokok', validators=[InputRequired(), NumberRange(min=0.01)])
    uang_muka = RupiahField('Uang Muka', default=0.0, validators=[Optional(), NumberRange(min=0)])
    tenor = IntegerField('Tenor (bulan)', validators=[InputRequired(), NumberRange(min=1)])
    tanggal_akad = DateField('Tanggal Akad', validators=[Optional()])
    status = StringField('Status', validators=[Optional()])


class FinancingForm(JsonForm):
    harga_pokok = RupiahField('Harga Pokok', validators=[InputRequired(), NumberRange(min=0.01)])
    tenor = IntegerField('Tenor (bulan)', validators=[InputRequired(), NumberRange(min=1)])
    uang_muka = RupiahField('Uang Muka', default=0.0, validators=[Optional(), NumberRange(min=0)])


class SimulationForm(JsonForm):
    gaji = RupiahField('Gaji Bulanan', validators=[InputRequired(), NumberRange(min=0.01)])
    cicilan_berjalan = RupiahField('Cicilan Berjalan', default=0.0, validators=[Optional(), NumberRange(min=0)])
    harga_barang = RupiahField('Harga Barang', validators=[InputRequired(), NumberRange(min=0.01)])
    tenor = IntegerField('Tenor (bulan)', validators=[InputRequired(), NumberRange(min=1)])

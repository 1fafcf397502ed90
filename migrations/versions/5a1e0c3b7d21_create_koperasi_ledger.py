"""create koperasi ledger tables

Revision ID: 5a1e0c3b7d21
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5a1e0c3b7d21'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'chart_of_accounts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('kode', sa.String(length=20), nullable=False),
        sa.Column('nama', sa.String(length=150), nullable=False),
        sa.Column('tipe', sa.String(length=20), nullable=False),
        sa.Column('parent_id', sa.Integer(), nullable=True),
        sa.Column('saldo_debit', sa.Float(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['parent_id'], ['chart_of_accounts.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_chart_of_accounts_kode', 'chart_of_accounts', ['kode'], unique=True)

    op.create_table(
        'jurnal_umum',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('reference', sa.String(length=50), nullable=False),
        sa.Column('tanggal', sa.DateTime(), nullable=False),
        sa.Column('deskripsi', sa.String(length=255), nullable=False),
        sa.Column('sumber', sa.String(length=20), nullable=False, server_default='manual'),
        sa.Column('periode', sa.String(length=7), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('reference'),
        sa.UniqueConstraint('periode')
    )

    op.create_table(
        'jurnal_umum_baris',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('entry_id', sa.Integer(), nullable=False),
        sa.Column('akun_id', sa.Integer(), nullable=False),
        sa.Column('akun_kode', sa.String(length=20), nullable=False),
        sa.Column('akun_nama', sa.String(length=150), nullable=False),
        sa.Column('debit', sa.Float(), nullable=False, server_default='0'),
        sa.Column('kredit', sa.Float(), nullable=False, server_default='0'),
        sa.Column('urutan', sa.Integer(), nullable=False, server_default='0'),
        sa.ForeignKeyConstraint(['akun_id'], ['chart_of_accounts.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['entry_id'], ['jurnal_umum.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_jurnal_umum_baris_akun_id', 'jurnal_umum_baris', ['akun_id'])

    op.create_table(
        'anggota',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('nama', sa.String(length=120), nullable=False),
        sa.Column('nip', sa.String(length=50), nullable=False),
        sa.Column('unit', sa.String(length=30), nullable=False, server_default='Supporting'),
        sa.Column('tgl_gabung', sa.Date(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='Aktif'),
        sa.Column('simpanan_pokok', sa.Float(), nullable=False, server_default='0'),
        sa.Column('simpanan_wajib', sa.Float(), nullable=False, server_default='0'),
        sa.Column('simpanan_sukarela', sa.Float(), nullable=False, server_default='0'),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('nip')
    )
    op.create_index('ix_anggota_status', 'anggota', ['status'])

    op.create_table(
        'anggota_transaksi',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('anggota_id', sa.Integer(), nullable=False),
        sa.Column('jenis', sa.String(length=30), nullable=False),
        sa.Column('tipe', sa.String(length=10), nullable=False),
        sa.Column('jumlah', sa.Float(), nullable=False),
        sa.Column('tanggal', sa.DateTime(), nullable=False),
        sa.Column('keterangan', sa.String(length=255), nullable=True),
        sa.Column('periode', sa.String(length=7), nullable=True),
        sa.ForeignKeyConstraint(['anggota_id'], ['anggota.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_anggota_transaksi_anggota_id', 'anggota_transaksi', ['anggota_id'])

    op.create_table(
        'kontrak_murabahah',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('anggota_id', sa.Integer(), nullable=False),
        sa.Column('nama_barang', sa.String(length=150), nullable=False),
        sa.Column('harga_pokok', sa.Float(), nullable=False),
        sa.Column('margin', sa.Float(), nullable=False, server_default='0'),
        sa.Column('harga_jual', sa.Float(), nullable=False),
        sa.Column('uang_muka', sa.Float(), nullable=False, server_default='0'),
        sa.Column('tenor', sa.Integer(), nullable=False),
        sa.Column('cicilan_per_bulan', sa.Float(), nullable=False),
        sa.Column('tanggal_akad', sa.Date(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='Review'),
        sa.Column('cicilan_terbayar', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['anggota_id'], ['anggota.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_kontrak_murabahah_anggota_id', 'kontrak_murabahah', ['anggota_id'])
    op.create_index('ix_kontrak_murabahah_status', 'kontrak_murabahah', ['status'])

    op.create_table(
        'kontrak_transaksi',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('kontrak_id', sa.Integer(), nullable=False),
        sa.Column('tanggal', sa.DateTime(), nullable=False),
        sa.Column('angsuran_ke', sa.Integer(), nullable=False),
        sa.Column('pokok', sa.Float(), nullable=False, server_default='0'),
        sa.Column('margin', sa.Float(), nullable=False, server_default='0'),
        sa.Column('jumlah', sa.Float(), nullable=False),
        sa.Column('keterangan', sa.String(length=255), nullable=True),
        sa.Column('periode', sa.String(length=7), nullable=True),
        sa.ForeignKeyConstraint(['kontrak_id'], ['kontrak_murabahah.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_kontrak_transaksi_kontrak_id', 'kontrak_transaksi', ['kontrak_id'])

    op.create_table(
        'laporan_arsip',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('nama_laporan', sa.String(length=150), nullable=False),
        sa.Column('tanggal_dibuat', sa.DateTime(), nullable=False),
        sa.Column('periode', sa.String(length=7), nullable=True),
        sa.Column('jurnal_id', sa.Integer(), nullable=True),
        sa.Column('data_laporan', sa.JSON(), nullable=False),
        sa.ForeignKeyConstraint(['jurnal_id'], ['jurnal_umum.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('periode')
    )

    op.create_table(
        'pengaturan',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('simpanan_pokok', sa.Float(), nullable=False),
        sa.Column('simpanan_wajib', sa.Float(), nullable=False),
        sa.Column('margin_tenor_6', sa.Float(), nullable=False),
        sa.Column('margin_tenor_12', sa.Float(), nullable=False),
        sa.Column('margin_tenor_18', sa.Float(), nullable=False),
        sa.Column('margin_tenor_24', sa.Float(), nullable=False),
        sa.Column('plafon_pembiayaan_gaji', sa.Float(), nullable=False),
        sa.Column('maksimal_cicilan_gaji', sa.Float(), nullable=False),
        sa.Column('akun_piutang_gaji', sa.String(length=20), nullable=False),
        sa.Column('akun_simpanan_wajib', sa.String(length=20), nullable=False),
        sa.Column('akun_piutang_murabahah', sa.String(length=20), nullable=False),
        sa.Column('akun_pendapatan_margin', sa.String(length=20), nullable=False),
        sa.Column('menu_access', sa.JSON(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )


def downgrade():
    op.drop_table('pengaturan')
    op.drop_table('laporan_arsip')
    op.drop_index('ix_kontrak_transaksi_kontrak_id', table_name='kontrak_transaksi')
    op.drop_table('kontrak_transaksi')
    op.drop_index('ix_kontrak_murabahah_status', table_name='kontrak_murabahah')
    op.drop_index('ix_kontrak_murabahah_anggota_id', table_name='kontrak_murabahah')
    op.drop_table('kontrak_murabahah')
    op.drop_index('ix_anggota_transaksi_anggota_id', table_name='anggota_transaksi')
    op.drop_table('anggota_transaksi')
    op.drop_index('ix_anggota_status', table_name='anggota')
    op.drop_table('anggota')
    op.drop_index('ix_jurnal_umum_baris_akun_id', table_name='jurnal_umum_baris')
    op.drop_table('jurnal_umum_baris')
    op.drop_table('jurnal_umum')
    op.drop_index('ix_chart_of_accounts_kode', table_name='chart_of_accounts')
    op.drop_table('chart_of_accounts')

import click

from koperasi import format_rupiah
from koperasi.accounts import seed_default_chart
from koperasi.batch import run_monthly_batch
from koperasi.errors import KoperasiError
from koperasi.settings import get_settings, reload_settings
from koperasi.time_utils import parse_period_token


def register_commands(app):
    @app.cli.command("seed-coa")
    def seed_coa():
        """Tambahkan bagan akun bawaan (akun yang sudah ada dilewati)."""
        created = seed_default_chart()
        click.echo(f"{created} akun bawaan ditambahkan.")

    @app.cli.command("run-autodebet")
    @click.option("--period", "period", default=None, help="Periode YYYY-MM (bawaan: bulan ini).")
    def run_autodebet(period):
        """Jalankan proses bulanan autodebet potong gaji."""
        as_of = None
        if period:
            as_of = parse_period_token(period)
            if as_of is None:
                raise click.BadParameter("Gunakan format YYYY-MM.", param_hint="--period")
        try:
            entry, arsip = run_monthly_batch(get_settings(), as_of=as_of)
        except KoperasiError as exc:
            raise click.ClickException(exc.message) from exc
        click.echo(
            f"Autodebet {arsip.periode}: {len(arsip.data_laporan)} anggota, "
            f"total {format_rupiah(entry.total_debit)} (jurnal {entry.reference})."
        )

    @app.cli.command("reload-settings")
    def reload_settings_command():
        """Muat ulang pengaturan koperasi dari database."""
        settings = reload_settings()
        click.echo(
            f"Simpanan wajib {format_rupiah(settings.simpanan_wajib)}, "
            f"akun autodebet: {', '.join(settings.batch_account_codes.values())}."
        )

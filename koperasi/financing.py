from collections import namedtuple

FinancingQuote = namedtuple("FinancingQuote", "margin harga_jual cicilan_per_bulan margin_persen")
EligibilityResult = namedtuple(
    "EligibilityResult",
    "is_approved alasan quote max_harga_barang max_cicilan_bulanan total_cicilan_bulanan",
)


def margin_rate(tenor, settings):
    # batas atas inklusif: <=6, <=12, <=18, selebihnya
    if tenor <= 6:
        return settings.margin_tenor_6
    if tenor <= 12:
        return settings.margin_tenor_12
    if tenor <= 18:
        return settings.margin_tenor_18
    return settings.margin_tenor_24


def compute_financing(principal, tenor, down_payment=0, *, settings):
    """
    Hitung margin, harga jual dan cicilan bulanan akad murabahah.

    Tidak ada validasi di sini: pemanggil wajib memastikan ``principal > 0``
    dan ``tenor > 0``.
    """
    rate = margin_rate(tenor, settings)
    margin = principal * rate / 100
    harga_jual = principal + margin
    cicilan = (harga_jual - down_payment) / tenor
    return FinancingQuote(
        margin=round(margin, 2),
        harga_jual=round(harga_jual, 2),
        cicilan_per_bulan=round(cicilan, 2),
        margin_persen=rate,
    )


def simulate_eligibility(gaji, cicilan_berjalan, harga_barang, tenor, *, settings):
    quote = compute_financing(harga_barang, tenor, settings=settings)
    max_harga = gaji * settings.plafon_pembiayaan_gaji
    max_cicilan = gaji / settings.maksimal_cicilan_gaji
    total_cicilan = quote.cicilan_per_bulan + (cicilan_berjalan or 0)

    alasan = []
    if harga_barang > max_harga:
        alasan.append(
            f"Harga barang melebihi batas maksimal {settings.plafon_pembiayaan_gaji:g}x gaji."
        )
    if total_cicilan > max_cicilan:
        alasan.append(
            f"Total cicilan per bulan melebihi batas maksimal 1/{settings.maksimal_cicilan_gaji:g} gaji."
        )

    return EligibilityResult(
        is_approved=not alasan,
        alasan=alasan,
        quote=quote,
        max_harga_barang=round(max_harga, 2),
        max_cicilan_bulanan=round(max_cicilan, 2),
        total_cicilan_bulanan=round(total_cicilan, 2),
    )

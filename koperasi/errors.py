class KoperasiError(Exception):
    status_code = 500

    def __init__(self, message):
        super().__init__(message)
        self.message = message


class ValidationError(KoperasiError, ValueError):
    """Input ditolak sebelum menyentuh database."""

    status_code = 400


class ReferenceNotFound(KoperasiError):
    status_code = 404


class AccountInUse(KoperasiError):
    status_code = 409


class ConfigurationError(KoperasiError):
    status_code = 409


class ConcurrencyConflict(KoperasiError):
    status_code = 409


class BatchAlreadyRun(KoperasiError):
    status_code = 409

    def __init__(self, period):
        super().__init__(f"Proses autodebet periode {period} sudah pernah dijalankan.")
        self.period = period

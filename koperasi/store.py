"""
Akses transaksional ke database dan umpan perubahan dokumen.

Setiap operasi yang mengubah buku besar berjalan di dalam satu transaksi
session SQLAlchemy. Konflik penulisan dideteksi lewat kolom ``version_id``
(optimistic locking); transaksi yang kalah diulang dari awal.

Perubahan yang sudah di-commit dikirim ke pelanggan melalui sinyal blinker
``document_changed``. Urutan kirim mengikuti urutan commit, satu pesan per
dokumen per transaksi (penulisan terakhir yang menang). Pengiriman bersifat
at-least-once sehingga pelanggan harus idempoten.
"""
import logging
from collections import namedtuple
from contextlib import contextmanager

from blinker import Namespace
from flask import current_app
from sqlalchemy import event, inspect
from sqlalchemy.orm.exc import StaleDataError

from koperasi import db
from koperasi.errors import ConcurrencyConflict

_signals = Namespace()
document_changed = _signals.signal("document-changed")

DocumentChange = namedtuple("DocumentChange", "collection doc_id operation data")

_PENDING_KEY = "koperasi_pending_changes"
_installed = False


@contextmanager
def atomic(session=None):
    session = session or db.session
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise


def run_atomic(fn, *args, retries=None, **kwargs):
    """Jalankan ``fn`` dalam satu transaksi, ulangi bila versi dokumen berubah."""
    attempts = retries
    if attempts is None:
        attempts = current_app.config.get("LEDGER_TRANSACTION_RETRIES", 3)
    attempts = max(attempts, 1)
    for attempt in range(1, attempts + 1):
        try:
            with atomic():
                return fn(*args, **kwargs)
        except StaleDataError:
            logging.warning(
                "Konflik versi saat menjalankan %s (percobaan %s/%s)",
                getattr(fn, "__name__", fn),
                attempt,
                attempts,
            )
    raise ConcurrencyConflict(
        "Data berubah oleh proses lain selama transaksi berlangsung. Silakan ulangi."
    )


def _snapshot(obj):
    state = inspect(obj)
    return {attr.key: getattr(obj, attr.key) for attr in state.mapper.column_attrs}


def _collect(session, obj, operation):
    table = getattr(obj, "__tablename__", None)
    if table is None:
        return
    pending = session.info.setdefault(_PENDING_KEY, {})
    state = inspect(obj)
    key = (table, state.mapper.primary_key_from_instance(obj)[0])
    data = _snapshot(obj) if operation != "delete" else {}
    previous = pending.get(key)
    if previous is not None and previous.operation == "create" and operation == "update":
        operation = "create"
    pending[key] = DocumentChange(table, key[1], operation, data)


def _after_flush(session, _flush_context):
    for obj in session.new:
        _collect(session, obj, "create")
    for obj in session.dirty:
        if session.is_modified(obj, include_collections=False):
            _collect(session, obj, "update")
    for obj in session.deleted:
        _collect(session, obj, "delete")


def _after_commit(session):
    pending = session.info.pop(_PENDING_KEY, None)
    if not pending:
        return
    for change in pending.values():
        document_changed.send(
            change.collection,
            doc_id=change.doc_id,
            operation=change.operation,
            data=change.data,
        )


def _after_rollback(session):
    session.info.pop(_PENDING_KEY, None)


def install_change_feed():
    global _installed
    if _installed:
        return
    event.listen(db.session, "after_flush", _after_flush)
    event.listen(db.session, "after_commit", _after_commit)
    event.listen(db.session, "after_soft_rollback", lambda session, _tx: _after_rollback(session))
    _installed = True


def subscribe(collection, callback):
    """
    Daftarkan ``callback(change)`` untuk perubahan pada satu koleksi (nama tabel).
    Mengembalikan fungsi untuk berhenti berlangganan.
    """

    def _receiver(sender, **payload):
        try:
            callback(DocumentChange(sender, payload["doc_id"], payload["operation"], payload["data"]))
        except Exception:
            logging.exception("Pelanggan perubahan %s gagal memproses dokumen %s", sender, payload.get("doc_id"))

    document_changed.connect(_receiver, sender=collection, weak=False)

    def unsubscribe():
        document_changed.disconnect(_receiver, sender=collection)

    return unsubscribe

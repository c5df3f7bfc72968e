"""WhatsApp message formatting (Indonesian)."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from mailledger.parsing.models import ParsedTransaction, TransactionType

FOOTER = "_Diproses otomatis dari email_"


def format_rupiah(amount: Decimal) -> str:
    """Absolute amount with Indonesian separators: 1.250.000 or 1.250,5"""
    value = abs(amount)
    whole = int(value)
    text = f"{whole:,}".replace(",", ".")
    cents = format(value.quantize(Decimal("0.01")), "f").split(".")[1].rstrip("0")
    return f"{text},{cents}" if cents else text


def format_transaction_message(transaction: ParsedTransaction, account_id: str) -> str:
    income = transaction.transaction_type is TransactionType.INCOME
    emoji = "💰" if income else "💸"
    kind = "PEMASUKAN" if income else "PENGELUARAN"

    return "\n".join(
        [
            f"{emoji} *TRANSAKSI BARU*",
            "",
            f"📧 *Akun:* {account_id}",
            f"🏦 *Bank:* {transaction.bank or 'Tidak diketahui'}",
            f"📊 *Jenis:* {kind}",
            f"💵 *Jumlah:* Rp {format_rupiah(transaction.amount)}",
            f"🏷️ *Kategori:* {transaction.category}",
            f"📝 *Deskripsi:* {transaction.description}",
            f"📅 *Tanggal:* {transaction.date.isoformat()}",
            "",
            FOOTER,
        ]
    )


def format_batch_message(count: int, account_id: str, now: datetime) -> str:
    """Aggregate message naming only the count, never the transactions."""
    return "\n".join(
        [
            "📊 *LAPORAN TRANSAKSI*",
            "",
            f"📧 *Akun:* {account_id}",
            f"🔢 *Jumlah Transaksi:* {count}",
            f"⏰ *Waktu:* {now:%d/%m/%Y, %H.%M.%S}",
            "",
            f"{count} transaksi baru telah diproses dan ditambahkan ke database.",
            "",
            FOOTER,
        ]
    )

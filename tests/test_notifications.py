"""
Tests for WhatsApp notifications: mode selection, fan-out, formatting and
the WAHA client.
"""

import asyncio
import datetime as dt
import json
from decimal import Decimal

import httpx
import pytest

from mailledger.core.errors import ConfigurationFailure, NotificationFailure
from mailledger.notifications.batcher import (
    NotificationBatcher,
    NotificationMode,
    NotificationTargets,
    decide_mode,
    format_group_chat_id,
    format_phone_chat_id,
)
from mailledger.notifications.config import NotificationConfig
from mailledger.notifications.formatter import (
    FOOTER,
    format_batch_message,
    format_rupiah,
    format_transaction_message,
)
from mailledger.notifications.waha_client import WahaClient
from mailledger.parsing.models import ParsedTransaction, TransactionType
from tests.fixtures.sample_messages import RecordingNotifier

NOW = dt.datetime(2024, 1, 15, 9, 30, 5)


def make_tx(i: int = 1, amount: str = "-25000") -> ParsedTransaction:
    value = Decimal(amount) - i if Decimal(amount) < 0 else Decimal(amount) + i
    return ParsedTransaction(
        date=dt.date(2024, 1, 15),
        amount=value,
        category="Makanan",
        description=f"Pembayaran QRIS {i}",
        transaction_type=TransactionType.EXPENSE if value < 0 else TransactionType.INCOME,
        bank="Jago Fara",
    )


def make_config(**overrides) -> NotificationConfig:
    values = dict(
        enabled=True,
        phone_numbers=["08123456789", "+6281111"],
        group_id="120363",
        waha_base_url="http://waha.local",
        waha_api_key="secret",
    )
    values.update(overrides)
    return NotificationConfig(**values)


class TestModeSelection:
    """Tests for decide_mode."""

    @pytest.mark.parametrize(
        "count,expected",
        [
            (0, NotificationMode.NONE),
            (1, NotificationMode.INDIVIDUAL),
            (5, NotificationMode.INDIVIDUAL),
            (6, NotificationMode.BATCH),
            (40, NotificationMode.BATCH),
        ],
    )
    def test_threshold_five(self, count, expected):
        assert decide_mode(count, 5) is expected

    def test_zero_threshold_always_batches(self):
        assert decide_mode(1, 0) is NotificationMode.BATCH


class TestTargets:
    """Tests for chat id formatting and target resolution."""

    @pytest.mark.parametrize(
        "phone,chat_id",
        [
            ("08123456789", "628123456789@c.us"),
            ("+6281111", "6281111@c.us"),
            ("6281111", "6281111@c.us"),
            ("15551234", "15551234@c.us"),
            ("8123", "628123@c.us"),
        ],
    )
    def test_format_phone_chat_id(self, phone, chat_id):
        assert format_phone_chat_id(phone) == chat_id

    def test_blank_values(self):
        assert format_phone_chat_id(" ") is None
        assert format_group_chat_id("") is None

    def test_format_group_chat_id(self):
        assert format_group_chat_id("120363") == "120363@g.us"
        assert format_group_chat_id("120363@g.us") == "120363@g.us"

    def test_from_config_order_and_batch_target(self):
        targets = NotificationTargets.from_config(make_config())

        assert [t.chat_id for t in targets.all()] == [
            "628123456789@c.us",
            "6281111@c.us",
            "120363@g.us",
        ]
        assert targets.batch_target().kind == "group"

    def test_batch_target_falls_back_to_first_individual(self):
        targets = NotificationTargets.from_config(make_config(group_id=None))

        assert targets.batch_target().chat_id == "628123456789@c.us"

    def test_empty_targets(self):
        targets = NotificationTargets.from_config(make_config(phone_numbers=[], group_id=None))

        assert targets.is_empty
        assert targets.batch_target() is None


class TestNotificationBatcher:
    """Tests for NotificationBatcher.notify."""

    @pytest.mark.asyncio
    async def test_individual_mode_fans_out_in_order(self):
        notifier = RecordingNotifier()
        batcher = NotificationBatcher(notifier, make_config())

        mode = await batcher.notify([make_tx(1), make_tx(2)], "default")

        assert mode is NotificationMode.INDIVIDUAL
        assert [target for target, _ in notifier.sent] == [
            "628123456789@c.us",
            "6281111@c.us",
            "120363@g.us",
        ] * 2
        assert "Pembayaran QRIS 1" in notifier.sent[0][1]
        assert "Pembayaran QRIS 2" in notifier.sent[3][1]
        assert batcher.sent_count == 6

    @pytest.mark.asyncio
    async def test_five_transactions_stay_individual(self):
        notifier = RecordingNotifier()
        batcher = NotificationBatcher(notifier, make_config(phone_numbers=[], group_id="g"))

        mode = await batcher.notify([make_tx(i) for i in range(5)], "default")

        assert mode is NotificationMode.INDIVIDUAL
        assert len(notifier.sent) == 5

    @pytest.mark.asyncio
    async def test_six_transactions_send_one_summary_to_group(self):
        notifier = RecordingNotifier()
        batcher = NotificationBatcher(notifier, make_config(), clock=lambda: NOW)

        mode = await batcher.notify([make_tx(i) for i in range(6)], "default")

        assert mode is NotificationMode.BATCH
        assert len(notifier.sent) == 1
        target, text = notifier.sent[0]
        assert target == "120363@g.us"
        assert "6 transaksi baru" in text
        assert "Pembayaran QRIS" not in text

    @pytest.mark.asyncio
    async def test_batch_without_group_uses_first_individual(self):
        notifier = RecordingNotifier()
        batcher = NotificationBatcher(notifier, make_config(group_id=None), clock=lambda: NOW)

        await batcher.notify([make_tx(i) for i in range(6)], "default")

        assert [target for target, _ in notifier.sent] == ["628123456789@c.us"]

    @pytest.mark.asyncio
    async def test_target_failure_does_not_stop_others(self):
        notifier = RecordingNotifier(fail_targets={"6281111@c.us"})
        batcher = NotificationBatcher(notifier, make_config())

        mode = await batcher.notify([make_tx(1)], "default")

        assert mode is NotificationMode.INDIVIDUAL
        assert [target for target, _ in notifier.sent] == ["628123456789@c.us", "120363@g.us"]
        assert batcher.failed_count == 1
        assert batcher.sent_count == 2

    @pytest.mark.asyncio
    async def test_nothing_new_sends_nothing(self):
        notifier = RecordingNotifier()
        batcher = NotificationBatcher(notifier, make_config())

        assert await batcher.notify([], "default") is NotificationMode.NONE
        assert notifier.sent == []

    @pytest.mark.asyncio
    async def test_disabled_records_mode_without_sending(self):
        notifier = RecordingNotifier()
        batcher = NotificationBatcher(notifier, make_config(enabled=False))

        mode = await batcher.notify([make_tx(1)], "default")

        assert mode is NotificationMode.INDIVIDUAL
        assert notifier.sent == []
        assert not batcher.active

    @pytest.mark.asyncio
    async def test_no_client_is_inactive(self):
        batcher = NotificationBatcher(None, make_config())

        assert await batcher.notify([make_tx(1)], "default") is NotificationMode.INDIVIDUAL
        assert not batcher.active


class TestFormatter:
    """Tests for message formatting."""

    def test_format_rupiah(self):
        assert format_rupiah(Decimal("1250000")) == "1.250.000"
        assert format_rupiah(Decimal("-25000")) == "25.000"
        assert format_rupiah(Decimal("1250.5")) == "1.250,5"
        assert format_rupiah(Decimal("999")) == "999"

    def test_expense_message(self):
        tx = ParsedTransaction(
            date=dt.date(2024, 1, 15),
            amount=Decimal("-25000"),
            category="Makanan",
            description="Pembayaran QRIS Warung",
            transaction_type=TransactionType.EXPENSE,
            bank=None,
        )

        text = format_transaction_message(tx, "fara@gmail.com")

        assert text.startswith("💸 *TRANSAKSI BARU*")
        assert "PENGELUARAN" in text
        assert "Rp 25.000" in text
        assert "fara@gmail.com" in text
        assert "Tidak diketahui" in text
        assert "2024-01-15" in text
        assert text.endswith(FOOTER)

    def test_income_message(self):
        text = format_transaction_message(make_tx(0, amount="5000000"), "default")

        assert text.startswith("💰")
        assert "PEMASUKAN" in text
        assert "Rp 5.000.000" in text

    def test_batch_message(self):
        text = format_batch_message(12, "default", NOW)

        assert "*LAPORAN TRANSAKSI*" in text
        assert "15/01/2024, 09.30.05" in text
        assert "12 transaksi baru telah diproses dan ditambahkan ke database." in text


class WahaStub:
    """WAHA server behind a MockTransport."""

    def __init__(self, start_status=201, start_text="{}", fail_chat=None):
        self.start_status = start_status
        self.start_text = start_text
        self.fail_chat = fail_chat
        self.requests: list[httpx.Request] = []
        self.clients_created = 0

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/api/sessions/start":
            return httpx.Response(self.start_status, text=self.start_text)
        if request.url.path == "/api/sendText":
            body = json.loads(request.content)
            if body["chatId"] == self.fail_chat:
                return httpx.Response(500, text="boom")
            return httpx.Response(201, json={"id": "sent"})
        return httpx.Response(404)

    def factory(self) -> httpx.AsyncClient:
        self.clients_created += 1
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))

    def paths(self) -> list[str]:
        return [r.url.path for r in self.requests]


class TestWahaClient:
    """Tests for WahaClient against a stubbed WAHA server."""

    @pytest.mark.asyncio
    async def test_session_started_once_for_concurrent_sends(self):
        stub = WahaStub()
        client = WahaClient(make_config(), client_factory=stub.factory)

        await asyncio.gather(*(client.send(f"62{i}@c.us", "hi") for i in range(3)))

        assert stub.paths().count("/api/sessions/start") == 1
        assert stub.paths().count("/api/sendText") == 3
        assert stub.clients_created == 1
        await client.close()

    @pytest.mark.asyncio
    async def test_send_payload_and_headers(self):
        stub = WahaStub()
        client = WahaClient(make_config(session_name="bot"), client_factory=stub.factory)

        assert await client.send("62812@c.us", "halo") is True

        request = stub.requests[-1]
        assert request.headers["X-Api-Key"] == "secret"
        assert json.loads(request.content) == {"session": "bot", "chatId": "62812@c.us", "text": "halo"}

    @pytest.mark.asyncio
    async def test_already_started_session_is_ok(self):
        stub = WahaStub(start_status=422, start_text='{"message": "Session already started"}')
        client = WahaClient(make_config(), client_factory=stub.factory)

        assert await client.send("62812@c.us", "halo") is True

    @pytest.mark.asyncio
    async def test_session_start_failure_retries_next_time(self):
        stub = WahaStub(start_status=500, start_text="down")
        client = WahaClient(make_config(), client_factory=stub.factory)

        with pytest.raises(NotificationFailure):
            await client.send("62812@c.us", "halo")

        stub.start_status = 201
        assert await client.send("62812@c.us", "halo") is True
        assert stub.paths().count("/api/sessions/start") == 2

    @pytest.mark.asyncio
    async def test_send_failure_raises(self):
        stub = WahaStub(fail_chat="62812@c.us")
        client = WahaClient(make_config(), client_factory=stub.factory)

        with pytest.raises(NotificationFailure) as exc_info:
            await client.send("62812@c.us", "halo")

        assert exc_info.value.target == "62812@c.us"

    def test_missing_configuration(self):
        with pytest.raises(ConfigurationFailure):
            WahaClient(make_config(waha_base_url=None))

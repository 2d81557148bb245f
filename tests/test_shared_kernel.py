"""
Тесты общего ядра: Money, DateRange, шина событий, блокировки и файловое хранилище.
"""

import os
import threading
from datetime import date
from decimal import Decimal

import pytest
from pydantic import ValidationError

from tour_booking.shared_kernel import (
    ConflictException,
    ConsoleLogger,
    DateRange,
    DomainEvent,
    InMemoryEventBus,
    JsonFileStore,
    KeyedLock,
    Money,
    PersistenceException,
)
from tour_booking.shared_kernel import infrastructure as shared_infrastructure


class SomethingHappened(DomainEvent):
    name: str


class TestMoney:
    """Тесты для объекта-значения Money."""

    def test_add_same_currency(self):
        result = Money(amount=Decimal("10.50")) + Money(amount=Decimal("4.50"))
        assert result == Money(amount=Decimal("15.00"), currency="USD")

    def test_add_different_currency_fails(self):
        with pytest.raises(ValueError, match="разные валюты"):
            Money(amount=Decimal("1")) + Money(amount=Decimal("1"), currency="EUR")

    def test_multiply_by_int(self):
        assert (Money(amount=Decimal("50.00")) * 3).amount == Decimal("150.00")

    def test_multiply_rejects_bool_and_negative(self):
        with pytest.raises(TypeError):
            Money(amount=Decimal("1")) * True
        with pytest.raises(ValueError):
            Money(amount=Decimal("1")) * -2

    def test_negative_amount_rejected(self):
        with pytest.raises(ValidationError):
            Money(amount=Decimal("-1"))

    def test_money_is_immutable(self):
        money = Money(amount=Decimal("1"))
        with pytest.raises(ValidationError):
            money.amount = Decimal("2")


class TestDateRange:
    def test_days(self):
        period = DateRange(start_date=date(2024, 12, 20), end_date=date(2024, 12, 25))
        assert period.days == 5

    def test_end_must_follow_start(self):
        with pytest.raises(ValidationError):
            DateRange(start_date=date(2024, 12, 20), end_date=date(2024, 12, 20))


class TestDomainEvent:
    def test_event_type_defaults_to_class_name(self):
        event = SomethingHappened(name="x")
        assert event.event_type == "SomethingHappened"
        assert event.event_id is not None


class TestInMemoryEventBus:
    def test_publish_calls_subscribers(self):
        bus = InMemoryEventBus()
        received = []
        bus.subscribe(SomethingHappened, received.append)

        bus.publish(SomethingHappened(name="first"))

        assert [e.name for e in received] == ["first"]

    def test_handler_error_does_not_stop_other_handlers(self):
        bus = InMemoryEventBus()
        received = []

        def broken(event):
            raise RuntimeError("boom")

        bus.subscribe(SomethingHappened, broken)
        bus.subscribe(SomethingHappened, received.append)

        bus.publish(SomethingHappened(name="second"))

        assert len(received) == 1

    def test_publish_without_subscribers(self):
        InMemoryEventBus().publish(SomethingHappened(name="nobody"))


class TestKeyedLock:
    def test_busy_key_times_out_with_conflict(self):
        locks = KeyedLock("guide", timeout=0.05)
        with locks.hold("g-1"):
            with pytest.raises(ConflictException) as exc_info:
                with locks.hold("g-1"):
                    pass
        assert exc_info.value.resource == "guide:g-1"

    def test_different_keys_do_not_block(self):
        locks = KeyedLock("slot", timeout=0.05)
        with locks.hold("a"):
            with locks.hold("b"):
                pass

    def test_lock_is_released_after_exception(self):
        locks = KeyedLock("booking", timeout=0.05)
        with pytest.raises(RuntimeError):
            with locks.hold("b-1"):
                raise RuntimeError("fail")
        with locks.hold("b-1"):
            pass

    def test_serializes_increments(self):
        locks = KeyedLock("counter", timeout=5)
        counter = {"value": 0}

        def worker():
            for _ in range(200):
                with locks.hold("c"):
                    current = counter["value"]
                    counter["value"] = current + 1

        threads = [threading.Thread(target=worker) for _ in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert counter["value"] == 1000

    def test_idle_keys_are_dropped(self):
        locks = KeyedLock("booking", timeout=0.05)
        for key in range(50):
            with locks.hold(key):
                assert locks.active_keys() == 1
        assert locks.active_keys() == 0

    def test_key_survives_while_waited_on(self):
        locks = KeyedLock("booking", timeout=0.05)
        with locks.hold("b-1"):
            with pytest.raises(ConflictException):
                with locks.hold("b-1"):
                    pass
            assert locks.active_keys() == 1
        assert locks.active_keys() == 0


class TestJsonFileStore:
    def test_put_and_reload(self, tmp_path):
        path = tmp_path / "money.json"
        store = JsonFileStore(str(path), Money, key=lambda m: m.currency)
        store.put(Money(amount=Decimal("12.30"), currency="USD"))

        reloaded = JsonFileStore(str(path), Money, key=lambda m: m.currency)

        assert reloaded.get("USD") == Money(amount=Decimal("12.30"), currency="USD")
        assert len(reloaded.values()) == 1

    def test_write_failure_raises_persistence_and_keeps_memory(self, tmp_path, monkeypatch):
        path = tmp_path / "money.json"
        store = JsonFileStore(str(path), Money, key=lambda m: m.currency)
        store.put(Money(amount=Decimal("1"), currency="USD"))

        def failing_replace(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr(shared_infrastructure.os, "replace", failing_replace)

        with pytest.raises(PersistenceException):
            store.put(Money(amount=Decimal("2"), currency="USD"))
        with pytest.raises(PersistenceException):
            store.put(Money(amount=Decimal("3"), currency="EUR"))

        assert store.get("USD").amount == Decimal("1")
        assert store.get("EUR") is None

    def test_delete(self, tmp_path):
        path = tmp_path / "money.json"
        store = JsonFileStore(str(path), Money, key=lambda m: m.currency)
        store.put(Money(amount=Decimal("1"), currency="USD"))

        assert store.delete("USD") is not None
        assert store.delete("USD") is None
        assert os.path.exists(path)


class TestConsoleLogger:
    def test_context_is_written_as_json(self, caplog):
        logger = ConsoleLogger("tour_booking.test")
        with caplog.at_level("INFO", logger="tour_booking.test"):
            logger.info("Событие", booking_id="b-1", count=2)

        assert 'Событие | {"booking_id": "b-1", "count": 2}' in caplog.text

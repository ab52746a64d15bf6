"""
Unit tests for token and cost price persistence
"""
import math

import pytest

from wb_reports.database.models import CostPrice, PaymentStatus
from wb_reports.database.operations import (
    CostPriceStore,
    TokenRepository,
    parse_cost_price,
    parse_product_key,
)
from wb_reports.utils.exceptions import NotFoundError, ValidationError


@pytest.fixture
def tokens(db_session):
    return TokenRepository(db_session)


@pytest.fixture
def store(db_session):
    return CostPriceStore(db_session)


@pytest.fixture
def token(tokens):
    return tokens.create("Основной кабинет", "  wb-key-1  ", comment="main")


class TestTokenRepository:

    def test_create_strips_and_defaults(self, token):
        assert token.id
        assert token.name == "Основной кабинет"
        assert token.api_key == "wb-key-1"
        assert token.payment_status is PaymentStatus.FREE
        assert token.created_at is not None

    @pytest.mark.parametrize("name, api_key", [("", "key"), ("name", "   "), (None, None)])
    def test_create_requires_name_and_key(self, tokens, name, api_key):
        with pytest.raises(ValidationError) as exc_info:
            tokens.create(name, api_key)

        assert exc_info.value.message == "Название и API-ключ обязательны"

    def test_create_rejects_unknown_payment_status(self, tokens):
        with pytest.raises(ValidationError):
            tokens.create("name", "key", payment_status="lifetime")

    def test_list_and_get(self, tokens, token):
        other = tokens.create("Второй", "wb-key-2", payment_status="trial")

        assert {t.id for t in tokens.list_tokens()} == {token.id, other.id}
        assert tokens.get(other.id).payment_status is PaymentStatus.TRIAL

    def test_get_missing_raises_not_found(self, tokens):
        with pytest.raises(NotFoundError):
            tokens.get("missing-id")

    def test_partial_update(self, tokens, token):
        updated = tokens.update(token.id, name="  Новое имя ", api_key="", payment_status="pending")

        assert updated.name == "Новое имя"
        assert updated.api_key == "wb-key-1"
        assert updated.payment_status is PaymentStatus.PENDING
        assert updated.comment == "main"

    def test_delete_removes_cost_prices(self, tokens, store, token, db_session):
        store.save(token.id, {"1-B1": 10})

        tokens.delete(token.id)

        assert db_session.query(CostPrice).count() == 0
        with pytest.raises(NotFoundError):
            tokens.get(token.id)

    def test_to_dict_uses_camel_case(self, token):
        data = token.to_dict()

        assert data["apiKey"] == "wb-key-1"
        assert data["paymentStatus"] == "free"
        assert "apiKey" not in token.to_dict(include_key=False)


class TestCostPriceStore:

    def test_save_and_load(self, store, token):
        saved = store.save(token.id, {"123-2000000000011": 150.5, "124-": "99,9"})

        assert saved == 2
        assert store.load(token.id) == {"123-2000000000011": 150.5, "124-": 99.9}

    def test_save_upserts_existing_key(self, store, token, db_session):
        store.save(token.id, {"123-B": 100})
        store.save(token.id, {"123-B": 120}, updated_by="web")

        entries = db_session.query(CostPrice).all()
        assert len(entries) == 1
        assert entries[0].cost_price == 120
        assert entries[0].updated_by == "web"

    def test_invalid_entries_skipped(self, store, token):
        saved = store.save(token.id, {
            "no-dash": 10,
            "abc-123": 10,
            "0-123": 10,
            "5-B": -1,
            "6-B": "free",
            "7-B": True,
            "8-B": 0,
        })

        assert saved == 1
        assert store.load(token.id) == {"8-B": 0.0}

    def test_barcode_keeps_remaining_dashes(self, store, token, db_session):
        store.save(token.id, {"42-ABC-1-2": 7})

        entry = db_session.query(CostPrice).one()
        assert entry.nm_id == 42
        assert entry.barcode == "ABC-1-2"

    def test_prices_are_per_token(self, store, tokens, token):
        other = tokens.create("Другой", "wb-key-2")
        store.save(token.id, {"1-B": 10})
        store.save(other.id, {"1-B": 20})

        assert store.load(token.id) == {"1-B": 10.0}
        assert store.load(other.id) == {"1-B": 20.0}

    def test_load_without_token_is_empty(self, store):
        assert store.load("") == {}
        assert store.load("   ") == {}

    def test_delete(self, store, token):
        store.save(token.id, {"1-B": 10, "2-B": 20})

        assert store.delete(token.id, "1-B") is True
        assert store.delete(token.id, "1-B") is False
        assert store.load(token.id) == {"2-B": 20.0}


class TestParsing:

    def test_parse_product_key(self):
        assert parse_product_key("123-456") == (123, "456")
        assert parse_product_key("123-") == (123, "")
        assert parse_product_key("123") is None
        assert parse_product_key("-5-1") is None
        assert parse_product_key("") is None

    def test_parse_cost_price(self):
        assert parse_cost_price(10) == 10.0
        assert parse_cost_price("12,5") == 12.5
        assert parse_cost_price(-1) is None
        assert parse_cost_price(False) is None
        assert parse_cost_price(math.nan) is None
        assert parse_cost_price(None) is None

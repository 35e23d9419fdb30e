from datetime import datetime

import pytest

from sms_categorizer.models import TransactionType
from sms_categorizer.parsers.generic import GenericParser, infer_transaction_type

NOW = datetime(2024, 3, 15, 10, 30)


@pytest.fixture
def parser():
    return GenericParser()


def test_generic_parses_purchase(parser):
    body = "Compraste $25.000 en TIENDA LA ESQUINA. Tu banco"
    assert parser.can_parse_body(body)

    tx = parser.parse(body, NOW)
    assert tx is not None
    assert tx.type == TransactionType.DEBIT
    assert tx.amount == 25000.0
    assert tx.merchant == "TIENDA LA ESQUINA"
    assert tx.bank_name == "Otro"
    assert tx.description == "Transacción"


def test_generic_cop_suffix_amount(parser):
    tx = parser.parse("Se realizo un pago de 45.900 COP con su tarjeta 9876", NOW)
    assert tx is not None
    assert tx.amount == 45900.0
    assert tx.card_last4 == "9876"


def test_generic_income(parser):
    tx = parser.parse("Recibiste un abono por valor de $300.000 en tu cuenta", NOW)
    assert tx is not None
    assert tx.type == TransactionType.CREDIT
    assert tx.description == "Ingreso"


def test_generic_qr_description(parser):
    tx = parser.parse("Pago QR por $8.000 en CAFETERIA CENTRAL.", NOW)
    assert tx is not None
    assert tx.description == "Pago QR"


@pytest.mark.parametrize(
    "body",
    [
        "Tu resumen del mes: compras por $1.500.000",
        "Aprovecha: compra hoy con 20% y paga $50.000 menos",
        "Tu codigo de verificacion para el pago de $10.000 es 123456",
        "Durante el 2023 suman tus gastos $12.000.000 en compras",
    ],
)
def test_exclusions_win_over_keywords(parser, body):
    assert parser.is_excluded(body)
    assert not parser.can_parse_body(body)
    assert parser.parse(body, NOW) is None


def test_requires_keyword_and_amount(parser):
    assert not parser.can_parse_body("Hola, nos vemos a las 5")
    assert not parser.can_parse_body("Compra realizada exitosamente")
    assert not parser.can_parse_body("Tienes $20.000 disponibles")


def test_generic_never_claims_a_sender(parser):
    assert not parser.can_handle("Bancolombia")
    assert not parser.can_handle("Otro")


@pytest.mark.parametrize(
    "text, expected",
    [
        ("Recibiste una consignacion", TransactionType.CREDIT),
        ("Retiro en cajero", TransactionType.WITHDRAWAL),
        ("Transferiste a Pedro", TransactionType.TRANSFER),
        ("Compra en tienda", TransactionType.DEBIT),
    ],
)
def test_infer_transaction_type(text, expected):
    assert infer_transaction_type(text) == expected

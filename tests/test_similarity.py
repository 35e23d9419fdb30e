import pytest

from sms_categorizer.domain.merchants import find_containing_merchant, find_similar_merchant
from sms_categorizer.domain.similarity import longest_common_substring, similarity
from sms_categorizer.models import Category


@pytest.mark.parametrize(
    "texts, expected",
    [
        ([], ""),
        (["solo"], "solo"),
        (["abc", "xyz"], ""),
        (["Compra por $", "Pago por $"], " por $"),
        (["xx en yy", "zz en ww", "en"], "en"),
        (["abXcd", "cdYab"], "ab"),
        (["Saldo", "saldo"], "aldo"),
    ],
)
def test_longest_common_substring(texts, expected):
    assert longest_common_substring(texts) == expected


def test_longest_common_substring_on_long_texts():
    shared = " Pago aprobado "
    left = "q" * 1500 + shared + "w" * 1500
    right = "e" * 1500 + shared + "r" * 1500
    assert longest_common_substring([left, right]) == shared


def test_similarity_ignores_case():
    assert similarity("CARULLA", "carulla") == 1.0
    assert similarity("", "") == 1.0
    assert similarity("abc", "") == 0.0


def test_find_similar_merchant():
    category, score = find_similar_merchant("Carula", 0.85)
    assert category == Category.GROCERIES
    assert score == pytest.approx(6 / 7)
    assert find_similar_merchant("FERRETERIA LUNA", 0.85) is None
    assert find_similar_merchant("", 0.85) is None


def test_find_containing_merchant():
    assert find_containing_merchant("mas por menos") == Category.GROCERIES
    assert find_containing_merchant("Valdez") == Category.COFFEE
    assert find_containing_merchant("POR") is None
    assert find_containing_merchant("ALMACENES EXITO CALLE 80") is None

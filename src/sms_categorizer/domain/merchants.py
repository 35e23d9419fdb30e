"""Known Colombian merchants and category keywords seen in bank notifications."""
import re
import unicodedata
from types import MappingProxyType

from rapidfuzz import process
from rapidfuzz.distance import Levenshtein

from sms_categorizer.domain.similarity import normalize_merchant_name
from sms_categorizer.models import Category

_MERCHANT_GROUPS: dict[Category, tuple[str, ...]] = {
    Category.GROCERIES: (
        "EXITO", "ALMACENES EXITO", "CARULLA", "JUMBO", "D1", "TIENDAS D1",
        "ARA", "TIENDAS ARA", "OLIMPICA", "SUPERTIENDAS OLIMPICA",
        "ALKOSTO", "MAKRO", "HOMECENTER", "EURO", "SURTIMAX",
        "LA 14", "COLSUBSIDIO", "COORATIENDAS", "MERQUEO", "SUPERM MAS POR MENOS",
    ),
    Category.RESTAURANT: (
        "RAPPI", "RAPPI COLOMBIA", "IFOOD", "UBER EATS", "DOMICILIOS COM",
        "MCDONALDS", "MC DONALDS", "BURGER KING", "SUBWAY",
        "CREPES", "CREPES Y WAFFLES", "EL CORRAL", "PRESTO", "KOKORIKO",
        "DOMINOS", "DOMINOS PIZZA", "PIZZA HUT", "JENO'S PIZZA",
        "FRISBY", "PPC", "ANDRÉS CARNE DE RES", "ANDRES DC",
        "WOK", "ARCHIES", "TACOS Y BAR BQ",
    ),
    Category.COFFEE: (
        "JUAN VALDEZ", "JUAN VALDEZ CAFE", "STARBUCKS", "TOSTAO", "TOSTAO CAFE",
        "OMA", "OMA CAFE", "DUNKIN", "DUNKIN DONUTS",
    ),
    Category.TAXI_RIDESHARE: (
        "UBER", "UBER TRIP", "UBER BV", "DIDI", "DIDI CHUXING",
        "CABIFY", "BEAT", "BEAT RIDE", "INDRIVER", "PICAP",
    ),
    Category.GAS: (
        "TERPEL", "ESTACION TERPEL", "PRIMAX", "MOBIL", "TEXACO",
        "ESSO", "BIOMAX", "PETROBRAS", "BRIO", "ZEUSS",
    ),
    Category.TRANSMILENIO: (
        "TRANSMILENIO", "SITP", "TU LLAVE", "TULLAVE", "METRO MEDELLIN",
        "MIO CALI", "METROLINEA", "TRANSMETRO",
    ),
    Category.UTILITIES: (
        "EPM", "CODENSA", "ENEL", "ETB", "VANTI", "GAS NATURAL",
        "ACUEDUCTO", "EAAB", "CLARO", "MOVISTAR", "TIGO", "WOM",
        "DIRECTV", "HBO", "NETFLIX", "SPOTIFY",
    ),
    Category.EPS_HEALTH: (
        "EPS SURA", "EPS SANITAS", "NUEVA EPS", "SALUD TOTAL",
        "COMPENSAR", "FAMISANAR", "COOMEVA EPS", "MEDIMAS",
    ),
    Category.PHARMACY: (
        "DROGUERIA", "CRUZ VERDE", "LA REBAJA", "FARMATODO",
        "DROGAS LA ECONOMIA", "LOCATEL", "AUDIFARMA",
    ),
    Category.CUATRO_X_MIL: ("4X1000", "4XMIL", "CUATRO POR MIL", "GMF", "IVA"),
    Category.ADMINISTRACION: ("ADMINISTRACION", "ADMIN EDIFICIO", "CONJUNTO", "PROPIEDAD HORIZONTAL"),
}

MERCHANT_TO_CATEGORY = MappingProxyType({
    merchant: category
    for category, merchants in _MERCHANT_GROUPS.items()
    for merchant in merchants
})

# Checked in insertion order; the first keyword found wins.
KEYWORD_TO_CATEGORY = MappingProxyType({
    "SUPERMERCADO": Category.GROCERIES,
    "SUPERMARKET": Category.GROCERIES,
    "TIENDA": Category.GROCERIES,
    "MERCADO": Category.GROCERIES,
    "MINIMARKET": Category.GROCERIES,
    "MINIMERCADO": Category.GROCERIES,
    "FRUVER": Category.GROCERIES,
    "RESTAURANTE": Category.RESTAURANT,
    "RESTAURANT": Category.RESTAURANT,
    "PANADERIA": Category.RESTAURANT,
    "PIZZERIA": Category.RESTAURANT,
    "COMIDAS": Category.RESTAURANT,
    "ASADERO": Category.RESTAURANT,
    "COMIDA RAPIDA": Category.RESTAURANT,
    "CAFE": Category.COFFEE,
    "COFFEE": Category.COFFEE,
    "CAFETERIA": Category.COFFEE,
    "GASOLINA": Category.GAS,
    "COMBUSTIBLE": Category.GAS,
    "ESTACION": Category.GAS,
    "PEAJE": Category.TRANSMILENIO,
    "PARQUEADERO": Category.UNCATEGORIZED,
    "PARKING": Category.UNCATEGORIZED,
    "TAXI": Category.TAXI_RIDESHARE,
    "VIAJE": Category.TAXI_RIDESHARE,
    "DROGUERIA": Category.PHARMACY,
    "FARMACIA": Category.PHARMACY,
    "CLINICA": Category.EPS_HEALTH,
    "HOSPITAL": Category.EPS_HEALTH,
    "MEDICO": Category.EPS_HEALTH,
    "SALUD": Category.EPS_HEALTH,
    "SERVICIOS": Category.UTILITIES,
    "RECARGA": Category.UTILITIES,
    "CELULAR": Category.UTILITIES,
    "IMPUESTO": Category.CUATRO_X_MIL,
    "GMF": Category.CUATRO_X_MIL,
})

def strip_accents(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(char for char in decomposed if not unicodedata.combining(char))


_MERCHANT_LOOKUP = MappingProxyType({
    strip_accents(name): category for name, category in MERCHANT_TO_CATEGORY.items()
})

# Longest names first so "UBER EATS" is tried before "UBER".
_MERCHANT_WORD_PATTERNS = tuple(
    (re.compile(rf"(?<![A-Z0-9]){re.escape(name)}(?![A-Z0-9])"), category)
    for name, category in sorted(_MERCHANT_LOOKUP.items(), key=lambda item: -len(item[0]))
)


def lookup_merchant(name: str | None) -> Category | None:
    """Exact dictionary lookup after merchant-name normalization."""
    normalized = normalize_merchant_name(name)
    if not normalized:
        return None
    return _MERCHANT_LOOKUP.get(strip_accents(normalized))


def lookup_keyword(text: str | None) -> Category | None:
    if not text:
        return None
    haystack = strip_accents(text.upper())
    for keyword, category in KEYWORD_TO_CATEGORY.items():
        if keyword in haystack:
            return category
    return None


def find_merchant_in_text(text: str | None) -> Category | None:
    """Longest known merchant name appearing as a whole word inside ``text``."""
    if not text:
        return None
    haystack = strip_accents(normalize_merchant_name(text))
    for pattern, category in _MERCHANT_WORD_PATTERNS:
        if pattern.search(haystack):
            return category
    return None


def all_merchant_names() -> frozenset[str]:
    return frozenset(MERCHANT_TO_CATEGORY)


MIN_PARTIAL_NAME_LENGTH = 4


def find_containing_merchant(name: str | None) -> Category | None:
    """
    Longest known merchant name that contains ``name`` as whole words, so a
    shortened name still resolves (``MAS POR MENOS`` -> ``SUPERM MAS POR MENOS``).
    """
    normalized = strip_accents(normalize_merchant_name(name))
    if len(normalized) < MIN_PARTIAL_NAME_LENGTH:
        return None
    word = re.compile(rf"(?<![A-Z0-9]){re.escape(normalized)}(?![A-Z0-9])")
    containing = [known for known in _MERCHANT_LOOKUP if word.search(known)]
    if not containing:
        return None
    return _MERCHANT_LOOKUP[max(containing, key=len)]


def find_similar_merchant(name: str | None, threshold: float) -> tuple[Category, float] | None:
    """Closest known merchant name by edit-distance similarity, if at least ``threshold``."""
    normalized = strip_accents(normalize_merchant_name(name))
    if not normalized:
        return None
    best = process.extractOne(
        normalized,
        list(_MERCHANT_LOOKUP),
        scorer=Levenshtein.normalized_similarity,
        score_cutoff=threshold,
    )
    if best is None:
        return None
    known, score, _ = best
    return _MERCHANT_LOOKUP[known], score

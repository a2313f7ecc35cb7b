# backend/utils/units.py
"""Units of measure: synonym normalization, conversion and pt-BR formatting."""
import math
from typing import List, Optional, Tuple

# Tolerance used when checking a stock-out against available stock
STOCK_EPSILON = 0.01

# Placeholder sent by clients meaning "the product's own unit"
DEFAULT_UNIT = "default"

# Fixed conversion factors between related units
CONVERSION_FACTORS = {
    ("g", "kg"): 0.001,
    ("kg", "g"): 1000,
    ("ml", "l"): 0.001,
    ("l", "ml"): 1000,
    ("cm", "m"): 0.01,
    ("m", "cm"): 100,
}

_SYNONYMS = {
    "l": ("l", "litro", "litros", "lt", "lts"),
    "ml": ("ml", "mililitro", "mililitros"),
    "kg": ("kg", "quilo", "quilos", "quilograma", "quilogramas", "kilo", "kilos"),
    "g": ("g", "grama", "gramas"),
    "m": ("m", "metro", "metros"),
    "cm": ("cm", "centimetro", "centimetros", "centímetro", "centímetros"),
}
_SYNONYM_LOOKUP = {alias: canonical for canonical, aliases in _SYNONYMS.items() for alias in aliases}

_FAMILIES = {
    "l": "volume", "ml": "volume",
    "kg": "mass", "g": "mass",
    "m": "length", "cm": "length",
}

# Base unit each family is compared in
_BASE_UNITS = {"l": "ml", "kg": "g", "m": "cm"}

_DECIMAL_UNITS = {"kg", "g", "l", "ml", "m", "cm"}

# Abbreviations shown in tables and reports
_UNIT_ABBREVIATIONS = {
    "unidade": "UN", "unidades": "UN", "un": "UN",
    "litro": "L", "litros": "L", "l": "L",
    "mililitro": "ML", "mililitros": "ML", "ml": "ML",
    "metro": "M", "metros": "M", "m": "M",
    "centímetro": "CM", "centimetro": "CM", "centímetros": "CM", "centimetros": "CM", "cm": "CM",
    "milímetro": "MM", "milimetro": "MM", "milímetros": "MM", "milimetros": "MM", "mm": "MM",
    "tonelada": "TON", "toneladas": "TON", "ton": "TON", "t": "TON",
    "quilograma": "KG", "quilogramas": "KG", "kg": "KG", "kilograma": "KG", "kilogramas": "KG",
    "kilo": "KG", "kilos": "KG", "quilo": "KG", "quilos": "KG",
    "grama": "G", "gramas": "G", "g": "G",
    "miligrama": "MG", "miligramas": "MG", "mg": "MG",
    "pacote": "PCT", "pacotes": "PCT", "pct": "PCT",
    "caixa": "CX", "caixas": "CX", "cx": "CX",
    "peça": "PÇ", "peças": "PÇ", "pç": "PÇ", "peca": "PÇ", "pecas": "PÇ", "pc": "PÇ", "pcs": "PÇ",
    "par": "PAR", "pares": "PAR",
    "fardo": "FD", "fardos": "FD", "fd": "FD",
    "galão": "GL", "galao": "GL", "galões": "GL", "galoes": "GL", "gl": "GL",
    "saco": "SC", "sacos": "SC", "sc": "SC",
    "rolo": "RL", "rolos": "RL", "rl": "RL",
    "lata": "LT", "latas": "LT",
    "balde": "BD", "baldes": "BD", "bd": "BD",
    "frasco": "FR", "frascos": "FR", "fr": "FR",
    "ampola": "AMP", "ampolas": "AMP", "amp": "AMP",
    "dúzia": "DZ", "duzia": "DZ", "dúzias": "DZ", "duzias": "DZ", "dz": "DZ",
    "metro quadrado": "M²", "metros quadrados": "M²", "m2": "M²", "m²": "M²",
    "metro cúbico": "M³", "metros cúbicos": "M³", "m3": "M³", "m³": "M³",
}

_FULL_NAMES = {
    "l": "litro(s)",
    "ml": "mililitro(s)",
    "kg": "quilo(s)",
    "g": "grama(s)",
    "m": "metro(s)",
    "cm": "centímetro(s)",
    "un": "unidade(s)",
    "cx": "caixa(s)",
}


class UnitConversionError(ValueError):
    """Raised when two units belong to different families (e.g. kg and l)."""


def normalize_unit(unit: Optional[str]) -> str:
    """Collapse unit synonyms ("Litros", "lt", "quilo"...) into l, ml, kg, g, m or cm."""
    if not unit:
        return "un"
    u = unit.strip().lower()
    if not u:
        return "un"
    return _SYNONYM_LOOKUP.get(u, u)


def unit_family(unit: Optional[str]) -> Optional[str]:
    return _FAMILIES.get(normalize_unit(unit))


def units_compatible(a: Optional[str], b: Optional[str]) -> bool:
    na, nb = normalize_unit(a), normalize_unit(b)
    if na == nb:
        return True
    family = _FAMILIES.get(na)
    return family is not None and family == _FAMILIES.get(nb)


def related_units(unit: Optional[str]) -> List[str]:
    """Units a quantity can be entered in besides the product's own unit."""
    u = normalize_unit(unit)
    return [dst for (src, dst) in CONVERSION_FACTORS if src == u]


def resolve_unit(unit: Optional[str], product_unit: str) -> str:
    if not unit or unit == DEFAULT_UNIT:
        return product_unit
    return unit


def convert_quantity(value: float, from_unit: Optional[str], to_unit: Optional[str]) -> float:
    """
    Exact conversion between related units, no rounding.

    `from_unit == "default"` means the value is already in `to_unit`.
    Raises UnitConversionError for units of different families.
    """
    if from_unit == DEFAULT_UNIT:
        return value
    src, dst = normalize_unit(from_unit), normalize_unit(to_unit)
    if src == dst:
        return value
    factor = CONVERSION_FACTORS.get((src, dst))
    if factor is None:
        raise UnitConversionError(f"Unidades incompatíveis: {src} e {dst}")
    return value * factor


def convert_to_base_unit(value: float, unit: Optional[str]) -> Tuple[int, str]:
    """Express a value in its family's smallest unit (ml, g, cm), rounded to an integer."""
    u = normalize_unit(unit)
    base = _BASE_UNITS.get(u)
    if base is not None:
        return round(value * CONVERSION_FACTORS[(u, base)]), base
    return round(value), u


def validate_stock(
    available: float,
    requested: float,
    requested_unit: Optional[str],
    product_unit: Optional[str],
) -> Tuple[bool, Optional[str]]:
    """
    Check whether a stock-out of `requested` (in `requested_unit`) fits in `available`
    (in `product_unit`). The requested quantity is converted into the product unit
    and compared with STOCK_EPSILON tolerance.
    """
    requested_unit = resolve_unit(requested_unit, product_unit)
    if not units_compatible(product_unit, requested_unit):
        return False, f"Unidades incompatíveis: {normalize_unit(product_unit)} e {normalize_unit(requested_unit)}"

    converted = convert_quantity(requested, requested_unit, product_unit)
    if converted > available + STOCK_EPSILON:
        return False, "Quantidade não pode ser maior que o estoque disponível"
    return True, None


def is_decimal_unit(unit: Optional[str]) -> bool:
    return normalize_unit(unit) in _DECIMAL_UNITS


def format_unit(unit: Optional[str]) -> str:
    if not unit:
        return "UN"
    key = unit.strip().lower()
    return _UNIT_ABBREVIATIONS.get(key, unit.strip().upper())


def full_unit_name(unit: Optional[str]) -> str:
    return _FULL_NAMES.get(normalize_unit(unit), unit or "")


def _decimal_comma(text: str) -> str:
    return text.replace(".", ",")


def format_quantity(value: Optional[float], unit: Optional[str]) -> str:
    # ml / g / cm: integers; l / kg / m: up to 2 decimals without trailing zeros; others: 2 decimals
    if value is None:
        return "0"
    u = normalize_unit(unit)
    if u in ("ml", "g", "cm"):
        return str(int(round(value)))
    if u in ("l", "kg", "m"):
        text = f"{round(value, 2):.2f}".rstrip("0").rstrip(".")
        return _decimal_comma(text)
    return _decimal_comma(f"{value:.2f}")


def parse_decimal(value) -> float:
    """Parse "1,5" or "1.5" style input; anything unparseable becomes 0."""
    if value is None:
        return 0.0
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else 0.0
    text = str(value).strip().replace(",", ".")
    if not text:
        return 0.0
    try:
        parsed = float(text)
    except ValueError:
        return 0.0
    return parsed if math.isfinite(parsed) else 0.0

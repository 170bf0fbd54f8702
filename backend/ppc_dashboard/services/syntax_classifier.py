"""
Syntax Classifier — Labels keyword text and customer search terms with a
syntax group ("Bamboo|Queen", "Competitor Branded Keyword", ...).

Rules are evaluated in a fixed order and the first match wins. All term
checks are case-insensitive substring matches, not word matches, so
misspellings and run-together words in the term lists ("bmaboo", "shhet")
still hit. Short entries such as "+" and "rest" therefore match inside
longer words as well; keep it that way.
"""

from typing import Callable, Optional

LABEL_SEPARATOR = "|"

BRANDED = "Branded Keyword"
COMPETITOR = "Competitor Branded Keyword"
IRRELEVANT = "Irrelevant"
GENERIC = "Generic"
COOLING = "Cooling"
BAMBOO = "Bamboo"

# ── Term lists ────────────────────────────────────────────────────────

BRANDED_TERMS = ("decolure",)

COMPETITOR_TERMS = (
    "bamboo bay", "levoo", "pure bamboo", "shilucheng", "bedsure",
    "bc bella coterie", "gokotta", "california design den",
    "hotel sheets direct", "lb luxury bamboo market", "cozysmile",
    "linden & lain", "doz by sijo", "cgk unlimited", "andency",
    "dreamcare", "mayfair linen", "sweave", "linenwalas", "bampure",
    "cozylux", "meishang", "yawfold", "hcora", "naturefield",
    "david's home", "easehome", "cosy house collection", "ella jayne",
    "lavisun", "vipfree", "cleva", "caelorin", "bare home", "hyprest",
    "phf", "jself", "whitney home textile", "accuratex", "rosecret",
    "lane linen", "silkwings", "tafts", "sleep sanctuary", "rest",
    "cloudscape linen", "luxclub", "vonty", "belle terre", "bamtek",
    "mco", "kickoff home", "lyralith", "ankwos", "zaizaihome",
    "manyshofu", "cozyzenith", "jellymoni", "utopia bedding", "lbro2m",
    "mellanni", "nestl", "caromio", "elegant comfort", "jsd",
    "hearth & harbor", "danjor linens", "amyhomie", "dealuxe",
    "cariloha", "birch & moon", "cozy", "luxome", "sleephoria",
)

IRRELEVANT_TERMS = (
    "blanket", "silk", "cotton", "christmas", "vegan", "flannel",
    "gingham", "jersey", "linen", "hotel", "branch", "ugg",
    "sateen", "satin", "eucalyptus", "alaskan", "pet", "mattress",
    "tencel", "cozy", "hemp", "wyoming", "allswell", "martha",
    "eczema", "southwestern", "virgin", "+",
)

COOLING_TERMS = ("cooling", "cooling sheet", "bamboo cooling sheets")

BAMBOO_TERMS = (
    "bamboo", "bambu", "bamboo sheet", "bamboo sheets",
    "bamboo bed sheet", "bamboo bed sheets", "cooling",
    "cooling sheet", "bamboo cooling sheets", "sabanas bambu",
    "bambo", "bmaboo", "bambu sabanas",
)

GENERIC_TERMS = (
    "sheet", "bed sheet", "deep pocket",
    "juegos de s sábanas y fundas de almohada",
    "colong", "shhet", "bedset",
)

# "california king" must be checked before "king"
SIZES = (
    ("california king", "California King"),
    ("queen", "Queen"),
    ("king", "King"),
    ("full", "Full"),
    ("twin", "Twin"),
)


def contains_any(text: str, terms) -> bool:
    lower = text.lower()
    return any(term.lower() in lower for term in terms)


def detect_size(text: str) -> str:
    """Return "|<Size>" for the first size found in priority order, else ""."""
    lower = text.lower()
    for needle, display in SIZES:
        if needle in lower:
            return f"{LABEL_SEPARATOR}{display}"
    return ""


def _fixed(label: str) -> Callable[[str], str]:
    return lambda _text: label


def _sized(category: str) -> Callable[[str], str]:
    return lambda text: category + detect_size(text)


# (terms, label builder) pairs, evaluated top to bottom. First hit wins.
# Cooling must precede bamboo: the bamboo list also contains cooling phrases.
RULES: tuple[tuple[tuple[str, ...], Callable[[str], str]], ...] = (
    (BRANDED_TERMS, _fixed(BRANDED)),
    (COMPETITOR_TERMS, _fixed(COMPETITOR)),
    (IRRELEVANT_TERMS, _fixed(IRRELEVANT)),
    (COOLING_TERMS, _sized(COOLING)),
    (BAMBOO_TERMS, _sized(BAMBOO)),
    (GENERIC_TERMS, _fixed(GENERIC)),
)


def classify(text: Optional[str]) -> str:
    """
    Classify keyword or search-term text into a syntax group.
    Total: every input, including None and blank strings, gets a label.
    """
    if not text or not text.strip():
        return IRRELEVANT

    for terms, build in RULES:
        if contains_any(text, terms):
            return build(text)

    return IRRELEVANT


def split_root(label: str) -> str:
    """Root of a syntax label: the text before the first "|", stripped."""
    root, _, _ = label.partition(LABEL_SEPARATOR)
    return root.strip()

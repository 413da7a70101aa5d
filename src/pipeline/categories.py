# src/pipeline/categories.py — v1
"""Wine categories and the grape varieties each one may be described with.

Used twice: rendered into the detailed-profile prompt as an accuracy
instruction, and applied to its output to reject cross-category grape
contamination (e.g. Nebbiolo notes in a Champagne).
"""

from __future__ import annotations

import re
from dataclasses import dataclass

# Surface form → canonical grape name. Matching is case-insensitive.
GRAPE_SYNONYMS: dict[str, str] = {
    "cabernet sauvignon": "cabernet sauvignon",
    "cabernet franc": "cabernet franc",
    "merlot": "merlot",
    "petit verdot": "petit verdot",
    "malbec": "malbec",
    "carménère": "carmenere",
    "carmenere": "carmenere",
    "pinot noir": "pinot noir",
    "pinot meunier": "pinot meunier",
    "meunier": "pinot meunier",
    "pinot gris": "pinot gris",
    "pinot grigio": "pinot gris",
    "chardonnay": "chardonnay",
    "gamay": "gamay",
    "aligoté": "aligote",
    "aligote": "aligote",
    "nebbiolo": "nebbiolo",
    "barbera": "barbera",
    "dolcetto": "dolcetto",
    "sangiovese": "sangiovese",
    "tempranillo": "tempranillo",
    "tinta roriz": "tempranillo",
    "garnacha": "grenache",
    "grenache": "grenache",
    "graciano": "graciano",
    "mazuelo": "carignan",
    "carignan": "carignan",
    "syrah": "syrah",
    "shiraz": "syrah",
    "viognier": "viognier",
    "riesling": "riesling",
    "gewürztraminer": "gewurztraminer",
    "gewurztraminer": "gewurztraminer",
    "chenin blanc": "chenin blanc",
    "sauvignon blanc": "sauvignon blanc",
    "sémillon": "semillon",
    "semillon": "semillon",
    "muscadelle": "muscadelle",
    "zinfandel": "zinfandel",
    "primitivo": "zinfandel",
    "touriga nacional": "touriga nacional",
    "touriga franca": "touriga franca",
    "tinta barroca": "tinta barroca",
    "tinto cão": "tinto cao",
    "tinto cao": "tinto cao",
}

_GRAPE_RE = re.compile(
    r"\b("
    + "|".join(re.escape(g) for g in sorted(GRAPE_SYNONYMS, key=len, reverse=True))
    + r")\b",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class WineCategory:
    """A category with the markers that identify it and its permitted grapes."""

    name: str
    markers: tuple[str, ...]
    allowed: frozenset[str]
    instruction: str

    def matches(self, text: str) -> bool:
        return any(re.search(rf"\b{re.escape(m)}\b", text) for m in self.markers)


# Order matters: more specific categories shadow broader ones
# (Sauternes before Bordeaux, Brunello before Chianti).
CATEGORIES: tuple[WineCategory, ...] = (
    WineCategory(
        "Champagne",
        ("champagne", "krug", "dom pérignon", "dom perignon"),
        frozenset({"chardonnay", "pinot noir", "pinot meunier"}),
        "ONLY Chardonnay, Pinot Noir, Pinot Meunier characteristics",
    ),
    WineCategory(
        "Barolo", ("barolo",), frozenset({"nebbiolo"}),
        "ONLY Nebbiolo characteristics",
    ),
    WineCategory(
        "Barbaresco", ("barbaresco",), frozenset({"nebbiolo"}),
        "ONLY Nebbiolo characteristics",
    ),
    WineCategory(
        "Sauternes", ("sauternes", "barsac"),
        frozenset({"semillon", "sauvignon blanc", "muscadelle"}),
        "ONLY Sémillon, Sauvignon Blanc, Muscadelle characteristics",
    ),
    WineCategory(
        "Bordeaux",
        ("bordeaux", "médoc", "medoc", "pauillac", "margaux", "saint-julien",
         "saint-estèphe", "saint-estephe", "saint-émilion", "saint-emilion",
         "pomerol", "pessac-léognan", "pessac-leognan", "graves"),
        frozenset({
            "cabernet sauvignon", "merlot", "cabernet franc", "petit verdot",
            "malbec", "carmenere", "sauvignon blanc", "semillon", "muscadelle",
        }),
        "ONLY Cabernet Sauvignon, Merlot, Cabernet Franc characteristics "
        "(Petit Verdot and Malbec as minor blend components)",
    ),
    WineCategory(
        "Burgundy",
        ("burgundy", "bourgogne", "côte de nuits", "cote de nuits",
         "côte de beaune", "cote de beaune", "chablis", "mâcon", "macon"),
        frozenset({"pinot noir", "chardonnay", "gamay", "aligote"}),
        "ONLY Pinot Noir, Chardonnay, Gamay, Aligoté characteristics",
    ),
    WineCategory(
        "Brunello", ("brunello",), frozenset({"sangiovese"}),
        "ONLY Sangiovese characteristics",
    ),
    WineCategory(
        "Chianti", ("chianti",), frozenset({"sangiovese"}),
        "ONLY Sangiovese characteristics",
    ),
    WineCategory(
        "Rioja", ("rioja",), frozenset({"tempranillo", "grenache", "graciano", "carignan"}),
        "ONLY Tempranillo characteristics (with minor Garnacha/Graciano)",
    ),
    WineCategory(
        "Port", ("port", "porto"),
        frozenset({
            "touriga nacional", "touriga franca", "tempranillo",
            "tinta barroca", "tinto cao",
        }),
        "ONLY Portuguese varieties (Touriga Nacional, Tinta Roriz, etc.)",
    ),
    WineCategory(
        "Syrah", ("syrah", "shiraz", "hermitage", "côte-rôtie", "cote-rotie"),
        frozenset({"syrah"}),
        "ONLY Syrah characteristics",
    ),
    WineCategory(
        "Riesling", ("riesling",), frozenset({"riesling"}),
        "ONLY Riesling characteristics",
    ),
)


def detect_category(*texts: str | None) -> WineCategory | None:
    """First category whose markers appear in any of ``texts``."""
    haystack = " ".join(t for t in texts if t).lower()
    if not haystack:
        return None
    for category in CATEGORIES:
        if category.matches(haystack):
            return category
    return None


def find_grapes(text: str | None) -> set[str]:
    """Canonical names of all known grapes mentioned in ``text``."""
    if not text:
        return set()
    return {GRAPE_SYNONYMS[m.group(1).lower()] for m in _GRAPE_RE.finditer(text)}


def accuracy_rules() -> str:
    """Bullet list of category rules for prompt embedding."""
    lines = [f"- {c.name} wines = {c.instruction}" for c in CATEGORIES]
    lines.append("- Never describe grape characteristics that don't match the actual wine type")
    return "\n".join(lines)

from __future__ import annotations

import re
from typing import Iterable, List, Optional, Tuple

# Vendor-string variants => canonical display name. Order matters: first match wins.
STORE_NAME_ALIASES: List[Tuple[str, str]] = [
    ("walmartca", "Walmart"),
    ("walmart.ca", "Walmart"),
    ("walmart", "Walmart"),
    ("shoppers drug mart", "Shoppers Drug Mart"),
    ("shoppers", "Shoppers Drug Mart"),
    ("voilà by sobeys", "Sobeys"),
    ("voila by sobeys", "Sobeys"),
    ("sobeys", "Sobeys"),
    ("save on foods", "Save On Foods"),
    ("save-on-foods", "Save On Foods"),
    ("superstore", "Superstore"),
    ("costco", "Costco"),
    ("no frills", "No Frills"),
    ("nofrills", "No Frills"),
    ("safeway", "Safeway"),
    ("pharmasave", "Pharmasave"),
    ("pharmacy", "Pharmacy"),
]

# Marketplace wrappers around the real store name
_PREFIXES = [
    r"^voil[aà] by\s*",
    r"^doordash\s*-\s*",
]
_SUFFIXES = [
    r"\.ca$",
    r"\.com$",
]


def clean_store_name(source: Optional[str]) -> str:
    """
    Strip marketplace prefixes/suffixes so:
      - "Voila by Safeway" => "Safeway"
      - "DoorDash - Costco" => "Costco"
      - "Superstore.ca" => "Superstore"
    """
    if not source:
        return ""

    s = source.strip()
    for pat in _PREFIXES + _SUFFIXES:
        s = re.sub(pat, "", s, flags=re.IGNORECASE)

    return re.sub(r"\s+", " ", s).strip()


class RetailerCatalog:
    """
    Fixed set of target retailers: an allow-list of seller keywords plus the alias table
    used to canonicalize vendor strings.

    Allow-list keywords without an alias get one derived from the keyword itself,
    so every seller that passes `is_target` has a canonical name in `canonical_names`.
    """

    def __init__(
        self,
        allow_list: Iterable[str],
        aliases: Optional[List[Tuple[str, str]]] = None,
    ):
        self.allow_list = [k.strip().lower() for k in allow_list if k and k.strip()]
        self.aliases = list(aliases if aliases is not None else STORE_NAME_ALIASES)

        known = {alias for alias, _ in self.aliases}
        for keyword in self.allow_list:
            if keyword not in known:
                self.aliases.append((keyword, keyword.title()))

    @property
    def canonical_names(self) -> List[str]:
        out: List[str] = []
        for keyword in self.allow_list:
            name = self._match(keyword)
            if name and name not in out:
                out.append(name)
        return out

    def is_target(self, seller: Optional[str]) -> bool:
        """Hard allow-list: case-insensitive substring match against the raw seller text."""
        if not seller:
            return False
        low = seller.lower()
        return any(k in low for k in self.allow_list)

    def normalize(self, seller: Optional[str]) -> str:
        """
        Canonicalize a vendor seller string. Unmatched input comes back cleaned but otherwise
        unchanged; this never drops anything.
        """
        cleaned = clean_store_name(seller)
        return self._match(cleaned) or cleaned

    def _match(self, text: str) -> Optional[str]:
        low = re.sub(r"\s+", " ", text.lower()).strip()
        compact = low.replace(".", "")
        for alias, canonical in self.aliases:
            if alias in low or alias in compact:
                return canonical
        return None


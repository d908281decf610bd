# ============================================================================
#  text_utils.py — Slugs, Keys and Formatting Helpers
#  Version: 2.0.0
#  CHANGES: Handle/metafield key slugs, money and barcode formatting, GIDs
# ============================================================================
import html
import re
import unicodedata
from typing import Optional, Union


def _ascii(text: str) -> str:
    normalized = unicodedata.normalize("NFKD", text or "")
    return normalized.encode("ascii", "ignore").decode("ascii")


def slugify(text: str) -> str:
    """URL handle slug: lowercase ascii words joined by '-'."""
    s = _ascii(text).lower()
    s = re.sub(r"[^a-z0-9]+", "-", s)
    return s.strip("-")


def slug_key(text: str) -> str:
    """Identifier slug: lowercase ascii words joined by '_' (metaobject types and handles)."""
    s = _ascii(text).lower()
    s = re.sub(r"[^a-z0-9]+", "_", s)
    s = s.strip("_")
    return s or "x"


def product_handle(name: str, source_id: Union[int, str]) -> str:
    base = slugify(name)
    return f"{base}_{source_id}" if base else f"product_{source_id}"


def metafield_key_from_label(label: str, fallback_id: Union[int, str]) -> str:
    """Metafield key from a feature label: [a-z0-9_], 3..30 chars, else f_<id>."""
    key = re.sub(r"[^a-z0-9_]+", "_", _ascii(label).lower())
    key = re.sub(r"_+", "_", key).strip("_")[:30].rstrip("_")
    if len(key) < 3:
        return f"f_{fallback_id}"
    return key


def normalize_label(value: Optional[str]) -> str:
    """Case and whitespace normalization used for every natural-key comparison."""
    return " ".join((value or "").split()).lower()


def normalize_barcode(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    cleaned = re.sub(r"[^0-9A-Za-z]", "", str(value))
    return cleaned or None


def format_money(amount: float) -> str:
    return f"{amount:.2f}"


def strip_html(text: Optional[str]) -> str:
    plain = re.sub(r"<[^>]+>", " ", text or "")
    return " ".join(html.unescape(plain).split())


def normalize_url_for_cache(url: str) -> str:
    return url.strip().split("#", 1)[0]


def to_gid(kind: str, legacy_id: Union[int, str]) -> str:
    legacy = str(legacy_id)
    if legacy.startswith("gid://"):
        return legacy
    return f"gid://shopify/{kind}/{legacy}"


def legacy_id(gid: Union[int, str, None]) -> Optional[int]:
    """Numeric id from a GID (or an id that is already numeric)."""
    if gid is None:
        return None
    tail = str(gid).rstrip("/").split("/")[-1].split("?")[0]
    return int(tail) if tail.isdigit() else None
# ============================================================================
# End of text_utils.py — Version: 2.0.0
# ============================================================================

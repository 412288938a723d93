"""Retailer-independent product model produced by the normalizer."""

import re
import unicodedata
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

# Letters NFKD does not decompose to ASCII
_TRANSLITERATE = str.maketrans({
    "ı": "i", "İ": "i", "ß": "ss", "ø": "o", "Ø": "o", "æ": "ae", "Æ": "ae", "ł": "l", "Ł": "l",
})


def slugify(text: str) -> str:
    """URL-safe lowercase slug: "Keten Gömlek" -> "keten-gomlek"."""
    text = (text or "").translate(_TRANSLITERATE)
    text = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    text = re.sub(r"[^a-zA-Z0-9]+", "-", text.lower())
    return text.strip("-")


@dataclass
class CanonicalSize:
    label: str
    availability: Optional[str] = None


@dataclass
class CanonicalVariant:
    """One color of a product with its ordered images and sizes."""

    name: str
    price: Decimal
    code: Optional[str] = None
    hex_color: Optional[str] = None
    discount_price: Optional[Decimal] = None
    availability: Optional[str] = None
    sku: Optional[str] = None
    images: list[str] = field(default_factory=list)
    sizes: list[CanonicalSize] = field(default_factory=list)


@dataclass
class CanonicalProduct:
    """Normalized product ready for the persister."""

    name: str
    slug: str
    price_display: str
    price_amount: Decimal
    currency: str
    external_id: Optional[str] = None
    product_code: Optional[str] = None
    url: Optional[str] = None
    description: Optional[str] = None
    composition: Optional[str] = None
    care_instructions: Optional[str] = None
    variants: list[CanonicalVariant] = field(default_factory=list)

    @property
    def images(self) -> list[str]:
        """All variant images, de-duplicated, in variant order."""
        seen: set[str] = set()
        urls = []
        for variant in self.variants:
            for url in variant.images:
                if url not in seen:
                    seen.add(url)
                    urls.append(url)
        return urls

    @property
    def primary_image(self) -> Optional[str]:
        images = self.images
        return images[0] if images else None

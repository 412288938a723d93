"""Pure helpers for choosing color/size sources and flattening images."""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Sequence


class AttributeSource(str, Enum):
    FACETS = "facets"
    EMBEDDED = "embedded"
    NONE = "none"


@dataclass(frozen=True)
class AttributeValue:
    """A color or size option, independent of where it was read from."""

    name: str
    code: Optional[str] = None
    hex_color: Optional[str] = None
    availability: Optional[str] = None


def resolve_attribute(
    facet_values: Optional[Sequence[AttributeValue]],
    embedded_values: Sequence[AttributeValue],
    min_plausible: int = 2,
) -> tuple[AttributeSource, list[AttributeValue]]:
    """
    Pick the authoritative option list for one attribute.

    1. Facet options that reference the product win.
    2. Without facet options, the options embedded in the detail payload are used.
    3. Facet lists shorter than ``min_plausible`` lose to a longer embedded list;
       the facets payload is sometimes incomplete for a given product.

    Args:
        facet_values: Options from the filters payload matching the product, or None
        embedded_values: Options read from the product detail payload
        min_plausible: Smallest facet list trusted over a longer embedded list

    Returns:
        (source, values)
    """
    facets = list(facet_values or [])
    embedded = list(embedded_values)

    if facets:
        if len(facets) < min_plausible and len(embedded) > len(facets):
            return AttributeSource.EMBEDDED, embedded
        return AttributeSource.FACETS, facets
    if embedded:
        return AttributeSource.EMBEDDED, embedded
    return AttributeSource.NONE, []


def unique_by_name(values: Iterable[AttributeValue]) -> list[AttributeValue]:
    """Drop repeated names (case-insensitive), keeping the first occurrence."""
    seen: set[str] = set()
    result = []
    for value in values:
        key = value.name.strip().casefold()
        if key and key not in seen:
            seen.add(key)
            result.append(value)
    return result


def render_image_url(url: str, width: int) -> str:
    """Substitute the width template placeholder with a fixed resolution."""
    return url.replace("{width}", str(width)).replace("%7Bwidth%7D", str(width))


def flatten_image_urls(urls: Iterable[Optional[str]], width: int) -> list[str]:
    """Ordered, de-duplicated, rendered image URLs."""
    seen: set[str] = set()
    result = []
    for url in urls:
        if not url:
            continue
        rendered = render_image_url(url.strip(), width)
        if rendered and rendered not in seen:
            seen.add(rendered)
            result.append(rendered)
    return result

"""Normalize raw retailer payloads into canonical products."""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, Optional

from catalog_sync.config import settings
from catalog_sync.ingest.brand_config import BrandApiConfig
from catalog_sync.ingest.schemas import (
    BrowserProductDetail,
    FiltersPayload,
    PullBearMediaGroup,
    PullBearProductDetail,
    RawProductDetail,
    ZaraProductDetail,
)
from catalog_sync.normalize.attributes import (
    AttributeSource,
    AttributeValue,
    flatten_image_urls,
    resolve_attribute,
    unique_by_name,
)
from catalog_sync.normalize.canonical import (
    CanonicalProduct,
    CanonicalSize,
    CanonicalVariant,
    slugify,
)
from catalog_sync.normalize.prices import (
    Price,
    PriceParseError,
    format_price,
    optional_minor_units,
    parse_price_text,
)

logger = logging.getLogger(__name__)

DEFAULT_CURRENCY = "TL"


class NormalizationError(Exception):
    """Raised when a payload cannot be turned into a product."""

    pass


class ProductRejected(NormalizationError):
    """Raised when a product has no colors, sizes or images after all fallbacks."""

    def __init__(self, product_id: Optional[str], reason: str):
        self.product_id = product_id
        self.reason = reason
        super().__init__(f"product {product_id or '?'} rejected: {reason}")


@dataclass
class SourceColor:
    """A color as read from the detail payload, with its own media and sizes."""

    value: AttributeValue
    price: Optional[Price] = None
    list_price: Optional[Price] = None
    sku: Optional[str] = None
    images: list[str] = field(default_factory=list)
    sizes: list[AttributeValue] = field(default_factory=list)


@dataclass
class ProductSources:
    """Everything a retailer payload offers, before any precedence is applied."""

    external_id: Optional[str]
    name: Optional[str]
    price: Optional[Price]
    product_code: Optional[str] = None
    url: Optional[str] = None
    description: Optional[str] = None
    composition: Optional[str] = None
    care_instructions: Optional[str] = None
    colors: list[SourceColor] = field(default_factory=list)
    product_images: list[str] = field(default_factory=list)
    facet_colors: list[AttributeValue] = field(default_factory=list)
    facet_sizes: list[AttributeValue] = field(default_factory=list)


def _clean(text: Optional[str]) -> Optional[str]:
    if text is None:
        return None
    text = " ".join(str(text).split())
    return text or None


def _lower(text: Optional[str]) -> Optional[str]:
    return text.strip().lower() if text and text.strip() else None


class CatalogNormalizer:
    """Map raw retailer payloads to ``CanonicalProduct``."""

    def __init__(
        self,
        image_width: Optional[int] = None,
        min_plausible_facet_options: Optional[int] = None,
    ):
        self.image_width = image_width or settings.image_width
        self.min_plausible = (
            min_plausible_facet_options
            if min_plausible_facet_options is not None
            else settings.min_plausible_facet_options
        )

    def normalize(
        self,
        raw: RawProductDetail,
        filters: Optional[FiltersPayload] = None,
        config: Optional[BrandApiConfig] = None,
    ) -> CanonicalProduct:
        """
        Normalize one product.

        Args:
            raw: Retailer payload (API or browser extraction)
            filters: Category facets payload, if the retailer has one
            config: Brand configuration (currency, product URL template)

        Returns:
            CanonicalProduct

        Raises:
            ProductRejected: No colors, sizes or images after all fallbacks
            NormalizationError: The payload lacks a name or a price
        """
        currency = config.currency if config else DEFAULT_CURRENCY

        if isinstance(raw, ZaraProductDetail):
            sources = self._from_zara(raw, currency, config)
        elif isinstance(raw, PullBearProductDetail):
            sources = self._from_pullbear(raw, currency, config)
        elif isinstance(raw, BrowserProductDetail):
            sources = self._from_browser(raw, currency)
        else:
            raise NormalizationError(f"Unsupported payload type: {type(raw).__name__}")

        if filters is not None and sources.external_id:
            sources.facet_colors = [
                AttributeValue(name=opt.value.strip(), code=opt.id, hex_color=opt.color_hex_code)
                for opt in filters.options_for("color", sources.external_id)
                if opt.value and opt.value.strip()
            ]
            sources.facet_sizes = [
                AttributeValue(name=opt.value.strip(), code=opt.id)
                for opt in filters.options_for("size", sources.external_id)
                if opt.value and opt.value.strip()
            ]

        return self._build(sources, currency)

    # ------------------------------------------------------------------
    # Canonical assembly
    # ------------------------------------------------------------------

    def _build(self, sources: ProductSources, currency: str) -> CanonicalProduct:
        product_id = sources.external_id
        name = _clean(sources.name)
        if not name:
            raise NormalizationError(f"product {product_id or '?'} has no name")

        price = sources.price or next((c.price for c in sources.colors if c.price), None)
        if price is None:
            raise NormalizationError(f"product {product_id or '?'} has no price")

        color_source, colors = resolve_attribute(
            unique_by_name(sources.facet_colors),
            unique_by_name(c.value for c in sources.colors),
            self.min_plausible,
        )
        if not colors:
            raise ProductRejected(product_id or sources.url, "no colors")

        size_source, sizes = resolve_attribute(
            unique_by_name(sources.facet_sizes),
            unique_by_name(s for c in sources.colors for s in c.sizes),
            self.min_plausible,
        )
        if not sizes:
            raise ProductRejected(product_id or sources.url, "no sizes")

        all_images = flatten_image_urls(
            list(sources.product_images) + [url for c in sources.colors for url in c.images],
            self.image_width,
        )
        if not all_images:
            raise ProductRejected(product_id or sources.url, "no images")

        logger.debug(
            f"product {product_id}: colors from {color_source.value} ({len(colors)}), "
            f"sizes from {size_source.value} ({len(sizes)})"
        )

        variants = []
        for index, color in enumerate(colors):
            source = self._match_color(color, sources.colors)
            images = source.images if source and source.images else all_images
            if size_source is AttributeSource.EMBEDDED and source and source.sizes:
                variant_sizes = unique_by_name(source.sizes)
            else:
                variant_sizes = sizes
            variant_price, discount = self._variant_prices(source, price)
            code = color.code or (source.value.code if source else None)
            variants.append(CanonicalVariant(
                name=color.name,
                code=code,
                hex_color=color.hex_color or (source.value.hex_color if source else None),
                price=variant_price,
                discount_price=discount,
                availability=source.value.availability if source else None,
                sku=(source.sku if source and source.sku else f"{product_id or 'product'}-{code or index}"),
                images=list(images),
                sizes=[CanonicalSize(label=s.name, availability=s.availability) for s in variant_sizes],
            ))

        return CanonicalProduct(
            name=name,
            slug=slugify(name) or slugify(product_id or "") or "product",
            price_display=price.display or format_price(price.amount, currency),
            price_amount=price.amount,
            currency=currency,
            external_id=product_id,
            product_code=_clean(sources.product_code),
            url=sources.url,
            description=_clean(sources.description),
            composition=_clean(sources.composition),
            care_instructions=_clean(sources.care_instructions),
            variants=variants,
        )

    @staticmethod
    def _match_color(color: AttributeValue, candidates: list[SourceColor]) -> Optional[SourceColor]:
        """Find the payload color behind a resolved option, by code then by name."""
        if color.code:
            for candidate in candidates:
                if candidate.value.code and candidate.value.code == color.code:
                    return candidate
        key = color.name.strip().casefold()
        for candidate in candidates:
            if candidate.value.name.strip().casefold() == key:
                return candidate
        return None

    @staticmethod
    def _variant_prices(
        source: Optional[SourceColor], fallback: Price
    ) -> tuple[Decimal, Optional[Decimal]]:
        current = source.price if source and source.price else fallback
        list_price = source.list_price if source else None
        if list_price and list_price.amount > current.amount:
            return list_price.amount, current.amount
        return current.amount, None

    def _render(self, urls: Iterable[Optional[str]]) -> list[str]:
        return flatten_image_urls(urls, self.image_width)

    # ------------------------------------------------------------------
    # Retailer adapters
    # ------------------------------------------------------------------

    def _from_zara(
        self, raw: ZaraProductDetail, currency: str, config: Optional[BrandApiConfig]
    ) -> ProductSources:
        colors = []
        for c in raw.colors:
            name = _clean(c.name)
            if not name:
                continue
            colors.append(SourceColor(
                value=AttributeValue(
                    name=name,
                    code=c.id,
                    hex_color=c.hex_code,
                    availability=_lower(c.availability),
                ),
                price=optional_minor_units(c.price, currency),
                list_price=optional_minor_units(c.old_price, currency),
                sku=c.reference or f"{raw.id}-{c.id or 'default'}",
                images=self._render([m.url for m in c.main_imgs] + [m.url for m in c.xmedia]),
                sizes=[
                    AttributeValue(name=s.name.strip(), availability=_lower(s.availability))
                    for s in c.sizes
                    if s.name and s.name.strip()
                ],
            ))

        detail = raw.detail
        description = raw.description or (detail.description if detail else None)
        if not description:
            description = next((c.description for c in raw.colors if c.description), None)

        url = None
        if config is not None:
            if raw.seo and raw.seo.keyword and raw.seo.seo_product_id:
                url = config.product_url(f"{raw.seo.keyword}-p{raw.seo.seo_product_id}")
            elif raw.id:
                url = config.product_url(raw.id)

        extra = raw.extra
        return ProductSources(
            external_id=raw.id,
            name=raw.name,
            price=optional_minor_units(raw.price, currency),
            product_code=(detail.display_reference or detail.reference) if detail else None,
            url=url,
            description=description,
            composition=extra.composition if extra else None,
            care_instructions=extra.care_instructions if extra else None,
            colors=colors,
            product_images=self._render([m.url for m in raw.main_imgs] + [m.url for m in raw.xmedia]),
        )

    def _from_pullbear(
        self, raw: PullBearProductDetail, currency: str, config: Optional[BrandApiConfig]
    ) -> ProductSources:
        bundle = raw.bundle
        detail = bundle.detail if bundle else None
        groups = detail.xmedia if detail and detail.xmedia else raw.xmedia

        colors = []
        for c in (detail.colors if detail else []):
            name = _clean(c.name)
            if not name:
                continue
            first_size = c.sizes[0] if c.sizes else None
            colors.append(SourceColor(
                value=AttributeValue(name=name, code=c.id),
                price=optional_minor_units(first_size.price if first_size else None, currency),
                list_price=optional_minor_units(first_size.old_price if first_size else None, currency),
                sku=c.reference or f"{raw.id}-{c.id}",
                images=self._render(_media_urls(g for g in groups if g.color_code == c.id)),
                sizes=[
                    AttributeValue(name=s.name.strip(), availability=_lower(s.visibility_value))
                    for s in c.sizes
                    if s.name and s.name.strip()
                ],
            ))

        price = next((c.price for c in colors if c.price), None)
        if price is None and bundle is not None:
            price = optional_minor_units(bundle.price, currency)

        url = None
        if config is not None:
            url = config.product_url((bundle.product_url if bundle else None) or raw.id or "")

        extra = raw.extra
        return ProductSources(
            external_id=raw.id,
            name=raw.name,
            price=price,
            product_code=(detail.reference if detail else None) or raw.id,
            url=url,
            description=(detail.long_description or detail.description) if detail else None,
            composition=(extra.composition if extra else None) or (detail.composition_text() if detail else None),
            care_instructions=(extra.care_instructions if extra else None) or (detail.care_text() if detail else None),
            colors=colors,
            product_images=self._render(_media_urls(groups)),
        )

    def _from_browser(self, raw: BrowserProductDetail, currency: str) -> ProductSources:
        try:
            price = parse_price_text(raw.price_text, currency) if raw.price_text else None
        except PriceParseError as e:
            raise NormalizationError(f"{raw.url}: {e}") from e

        sizes = [AttributeValue(name=s.strip()) for s in raw.sizes if s and s.strip()]
        colors = []
        for c in raw.colors:
            name = _clean(c.name)
            if not name:
                continue
            color_price = None
            if c.price_text:
                try:
                    color_price = parse_price_text(c.price_text, currency)
                except PriceParseError:
                    logger.warning(f"{raw.url}: unreadable price for color {name}: {c.price_text!r}")
            colors.append(SourceColor(
                value=AttributeValue(name=name, code=c.code),
                price=color_price,
                sku=c.code,
                images=self._render(c.images),
                sizes=list(sizes),
            ))

        extra = raw.extra
        return ProductSources(
            external_id=None,
            name=raw.name,
            price=price,
            product_code=raw.product_code,
            url=raw.url,
            description=raw.description,
            composition=extra.composition if extra else None,
            care_instructions=extra.care_instructions if extra else None,
            colors=colors,
            product_images=self._render(raw.images),
        )


def _media_urls(groups: Iterable[PullBearMediaGroup]) -> list[str]:
    """media-group -> media-item -> media URL, in payload order."""
    return [
        media.url
        for group in groups
        for item in group.xmedia_items
        for media in item.medias
        if media.url
    ]

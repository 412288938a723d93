"""Raw retailer payload schemas.

Each retailer gets its own explicit model of the JSON it returns. Only the
fields the normalizer reads are declared; everything else is ignored.
Keys are camelCase on the wire and snake_case here.
"""

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict
from pydantic.alias_generators import to_camel


def _to_str(value: Any) -> Any:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(int(value)) if float(value).is_integer() else str(value)
    return value


def _none_to_list(value: Any) -> Any:
    return [] if value is None else value


# Retailers send ids as numbers or strings interchangeably
LooseStr = Annotated[Optional[str], BeforeValidator(_to_str)]
IdList = Annotated[list[LooseStr], BeforeValidator(_none_to_list)]


class RawModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class ProductExtraDetail(RawModel):
    """Composition and care text from a secondary detail call."""

    composition: Optional[str] = None
    care_instructions: Optional[str] = None


# ---------------------------------------------------------------------------
# Zara-style retailer
# ---------------------------------------------------------------------------

class ZaraMedia(RawModel):
    url: Optional[str] = None
    path: Optional[str] = None
    name: Optional[str] = None


class ZaraSize(RawModel):
    name: Optional[str] = None
    availability: Optional[str] = None
    sku: LooseStr = None


class ZaraColor(RawModel):
    id: LooseStr = None
    product_id: LooseStr = None
    name: Optional[str] = None
    hex_code: Optional[str] = None
    reference: Optional[str] = None
    price: Optional[int] = None  # minor units
    old_price: Optional[int] = None
    availability: Optional[str] = None
    description: Optional[str] = None
    xmedia: Annotated[list[ZaraMedia], BeforeValidator(_none_to_list)] = []
    main_imgs: Annotated[list[ZaraMedia], BeforeValidator(_none_to_list)] = []
    sizes: Annotated[list[ZaraSize], BeforeValidator(_none_to_list)] = []


class ZaraDetailBlock(RawModel):
    reference: Optional[str] = None
    display_reference: Optional[str] = None
    description: Optional[str] = None
    colors: Annotated[list[ZaraColor], BeforeValidator(_none_to_list)] = []


class ZaraSeo(RawModel):
    keyword: Optional[str] = None
    seo_product_id: LooseStr = None


class ZaraProductDetail(RawModel):
    """Single entry of the products-details response."""

    retailer: Literal["zara"] = "zara"
    id: LooseStr = None
    name: Optional[str] = None
    price: Optional[int] = None  # minor units
    description: Optional[str] = None
    seo: Optional[ZaraSeo] = None
    detail: Optional[ZaraDetailBlock] = None
    xmedia: Annotated[list[ZaraMedia], BeforeValidator(_none_to_list)] = []
    main_imgs: Annotated[list[ZaraMedia], BeforeValidator(_none_to_list)] = []
    extra: Optional[ProductExtraDetail] = None

    @property
    def colors(self) -> list[ZaraColor]:
        return self.detail.colors if self.detail else []


class ZaraCommercialComponent(RawModel):
    id: LooseStr = None
    name: Optional[str] = None


class ZaraElement(RawModel):
    id: LooseStr = None
    commercial_components: Annotated[
        list[ZaraCommercialComponent], BeforeValidator(_none_to_list)
    ] = []


class ZaraProductGroup(RawModel):
    id: LooseStr = None
    type: Optional[str] = None
    elements: Annotated[list[ZaraElement], BeforeValidator(_none_to_list)] = []
    commercial_components: Annotated[
        list[ZaraCommercialComponent], BeforeValidator(_none_to_list)
    ] = []


class ZaraCategoryListing(RawModel):
    """Category products response: productGroups -> elements -> commercialComponents."""

    product_groups: Annotated[list[ZaraProductGroup], BeforeValidator(_none_to_list)] = []

    def product_ids(self) -> list[str]:
        ids: list[str] = []
        seen: set[str] = set()
        for group in self.product_groups:
            components = list(group.commercial_components)
            for element in group.elements:
                components.extend(element.commercial_components)
            for component in components:
                if component.id and component.id not in seen:
                    seen.add(component.id)
                    ids.append(component.id)
        return ids


class ZaraExtraComponent(RawModel):
    datatype: Optional[str] = None
    text: Optional[dict[str, Any]] = None


class ZaraExtraSection(RawModel):
    section_type: Optional[str] = None
    components: Annotated[list[ZaraExtraComponent], BeforeValidator(_none_to_list)] = []

    def text(self) -> str:
        parts = []
        for component in self.components:
            if component.text and component.text.get("value"):
                parts.append(str(component.text["value"]).strip())
        return " ".join(p for p in parts if p)


# ---------------------------------------------------------------------------
# Facet / filters payload (Zara-style)
# ---------------------------------------------------------------------------

class FacetOption(RawModel):
    id: LooseStr = None
    value: Optional[str] = None
    color_hex_code: Optional[str] = None
    catentries: IdList = []


class Facet(RawModel):
    id: Optional[str] = None
    value: Annotated[list[FacetOption], BeforeValidator(_none_to_list)] = []


class FiltersPayload(RawModel):
    """Category facets mapping color/size options to product ids."""

    filters: Annotated[list[Facet], BeforeValidator(_none_to_list)] = []

    def options_for(self, facet_id: str, product_id: Optional[str]) -> list[FacetOption]:
        """Options of ``facet_id`` whose catentries include ``product_id``."""
        if not product_id:
            return []
        for facet in self.filters:
            if facet.id == facet_id:
                return [opt for opt in facet.value if product_id in opt.catentries]
        return []


# ---------------------------------------------------------------------------
# Pull&Bear-style retailer
# ---------------------------------------------------------------------------

class PullBearCategoryListing(RawModel):
    product_ids: IdList = []


class PullBearMedia(RawModel):
    id_media: LooseStr = None
    url: Optional[str] = None


class PullBearMediaItem(RawModel):
    medias: Annotated[list[PullBearMedia], BeforeValidator(_none_to_list)] = []


class PullBearMediaGroup(RawModel):
    color_code: LooseStr = None
    path: Optional[str] = None
    xmedia_items: Annotated[list[PullBearMediaItem], BeforeValidator(_none_to_list)] = []


class PullBearSize(RawModel):
    name: Optional[str] = None
    price: LooseStr = None  # minor units as a string
    old_price: LooseStr = None
    visibility_value: Optional[str] = None
    sku: LooseStr = None


class PullBearColor(RawModel):
    id: LooseStr = None
    name: Optional[str] = None
    reference: Optional[str] = None
    sizes: Annotated[list[PullBearSize], BeforeValidator(_none_to_list)] = []


class PullBearCompositionPart(RawModel):
    name: Optional[str] = None
    percentage: LooseStr = None


class PullBearComposition(RawModel):
    part: Optional[str] = None
    composition: Annotated[
        list[PullBearCompositionPart], BeforeValidator(_none_to_list)
    ] = []


class PullBearCare(RawModel):
    name: Optional[str] = None
    description: Optional[str] = None


class PullBearBundleDetail(RawModel):
    reference: Optional[str] = None
    description: Optional[str] = None
    long_description: Optional[str] = None
    colors: Annotated[list[PullBearColor], BeforeValidator(_none_to_list)] = []
    xmedia: Annotated[list[PullBearMediaGroup], BeforeValidator(_none_to_list)] = []
    composition: Annotated[list[PullBearComposition], BeforeValidator(_none_to_list)] = []
    care: Annotated[list[PullBearCare], BeforeValidator(_none_to_list)] = []

    def composition_text(self) -> str:
        """E.g. "Cotton %60, Polyester %40 | Lining: Cotton %100"."""
        blocks = []
        for block in self.composition:
            parts = ", ".join(
                f"{p.name} %{p.percentage}" for p in block.composition if p.name
            )
            if parts:
                blocks.append(f"{block.part}: {parts}" if block.part else parts)
        return " | ".join(blocks)

    def care_text(self) -> str:
        return " ".join(c.description or c.name for c in self.care if c.description or c.name)


class PullBearBundleSummary(RawModel):
    price: LooseStr = None
    product_url: Optional[str] = None
    detail: Optional[PullBearBundleDetail] = None


class PullBearProductDetail(RawModel):
    """Product detail response; the useful data sits in the first bundle summary."""

    retailer: Literal["pullbear"] = "pullbear"
    id: LooseStr = None
    name: Optional[str] = None
    bundle_product_summaries: Annotated[
        list[PullBearBundleSummary], BeforeValidator(_none_to_list)
    ] = []
    xmedia: Annotated[list[PullBearMediaGroup], BeforeValidator(_none_to_list)] = []
    extra: Optional[ProductExtraDetail] = None

    @property
    def bundle(self) -> Optional[PullBearBundleSummary]:
        return self.bundle_product_summaries[0] if self.bundle_product_summaries else None


# ---------------------------------------------------------------------------
# Headless-browser extraction
# ---------------------------------------------------------------------------

class BrowserColor(RawModel):
    name: Optional[str] = None
    code: Optional[str] = None
    price_text: Optional[str] = None
    images: list[str] = []


class BrowserProductDetail(RawModel):
    """Fields read from a rendered product page."""

    retailer: Literal["browser"] = "browser"
    url: str
    name: Optional[str] = None
    price_text: Optional[str] = None
    product_code: Optional[str] = None
    description: Optional[str] = None
    images: list[str] = []
    sizes: list[str] = []
    colors: list[BrowserColor] = []
    extra: Optional[ProductExtraDetail] = None


RawProductDetail = Union[ZaraProductDetail, PullBearProductDetail, BrowserProductDetail]

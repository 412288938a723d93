"""Typed per-brand retailer configuration.

Brands store their configuration as JSON. It is validated into a
``BrandApiConfig`` when loaded so that malformed configuration fails once,
up front, instead of at call time deep inside a scrape.
"""

from typing import Literal, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from catalog_sync.ingest.http_client import RetryPolicy
from catalog_sync.config import settings


class BrandConfigError(ValueError):
    """Raised when a brand has no usable configuration."""
    pass


class EndpointTemplates(BaseModel):
    """Path templates joined to ``base_url``.

    Templates use ``{categoryId}`` and ``{productId}`` placeholders.
    """

    category_products: str
    product_detail: str
    product_extra: Optional[str] = None
    filters: Optional[str] = None


class PolitenessConfig(BaseModel):
    """Per-brand request pacing."""

    request_delay_seconds: float = Field(default=1.0, ge=0)
    max_retries: int = Field(default=3, ge=1)
    retry_delay_seconds: float = Field(default=1.0, ge=0)
    timeout_seconds: float = Field(default=25.0, gt=0)
    # Parallelism ceiling; ingestion is sequential today
    concurrent_requests: int = Field(default=1, ge=1)

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_retries=self.max_retries,
            timeout=self.timeout_seconds,
            base_delay=self.retry_delay_seconds,
            max_delay=settings.http_retry_max_delay,
        )


class BrowserSelectors(BaseModel):
    """Ordered candidate CSS selectors for the headless-browser strategy.

    The first selector that matches wins, so markup changes usually only
    need a new entry prepended.
    """

    product_links: list[str] = [
        "a.product-link",
        "a[href*='-p0']",
        ".product-grid-product a",
    ]
    name: list[str] = [
        "h1.product-detail-info__header-name",
        ".product-detail-info__header-name",
        "h1",
    ]
    price: list[str] = [
        ".price-current__amount",
        ".money-amount__main",
        ".price__amount",
        "[data-qa-qualifier='price-amount-current']",
    ]
    product_code: list[str] = [
        ".product-color-extended-name",
        ".product-detail-info__color",
        "[data-qa-qualifier='product-detail-info-color']",
    ]
    description: list[str] = [
        ".expandable-text__inner-content",
        ".product-detail-description",
        "[data-qa-qualifier='product-detail-description']",
    ]
    images: list[str] = [
        "img.media-image__image",
        ".product-detail-images img",
        "picture img",
    ]
    color_buttons: list[str] = [
        ".product-detail-color-selector__color-button",
        "[data-qa-action='select-color']",
    ]
    color_name: list[str] = [
        ".product-detail-color-selector__color-area span",
        ".screen-reader-text",
    ]
    sizes: list[str] = [
        ".size-selector-list__item",
        ".product-size-info__main-label",
        "[data-qa-action='size-in-stock']",
    ]
    # Composition and care live behind an "extra detail" panel
    extra_detail_button: list[str] = [
        "[data-qa-action='show-extra-detail']",
        "button.product-detail-extra-detail__action",
    ]
    composition: list[str] = [
        "[data-observer-key='materials'] .structured-component-text-block-paragraph span span",
        "[data-observer-key='materials'] p",
        ".product-detail-composition",
    ]
    care: list[str] = [
        "[data-observer-key='care'] .structured-component-icon-list__item span span",
        "[data-observer-key='care'] li",
        ".product-detail-care",
    ]
    cookie_accept: list[str] = [
        "#onetrust-accept-btn-handler",
        "button[id*='accept']",
        "button[class*='cookie']",
    ]


class BrandApiConfig(BaseModel):
    """Validated retailer configuration for a brand."""

    retailer: str  # registry key, e.g. "zara" or "pullbear"
    strategy: Literal["api", "browser"] = "api"
    base_url: str
    endpoints: Optional[EndpointTemplates] = None
    headers: dict[str, str] = {}
    currency: str = "TL"
    product_url_template: Optional[str] = None
    politeness: PolitenessConfig = PolitenessConfig()
    browser: BrowserSelectors = BrowserSelectors()

    @field_validator("base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @property
    def supports_api(self) -> bool:
        return self.strategy == "api" and self.endpoints is not None

    def build_url(self, endpoint: str, **params: object) -> Optional[str]:
        """Render an endpoint template, or None if the brand does not define it."""
        if self.endpoints is None:
            return None
        template = getattr(self.endpoints, endpoint, None)
        if not template:
            return None
        path = template
        for key, value in params.items():
            path = path.replace("{" + key + "}", str(value))
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.base_url}{path}"

    def product_url(self, slug_or_id: str) -> Optional[str]:
        if not self.product_url_template:
            return None
        return self.product_url_template.replace("{product}", slug_or_id)


def load_brand_config(raw: Optional[dict], brand_name: str = "") -> BrandApiConfig:
    """
    Validate a brand's stored configuration.

    Args:
        raw: JSON document stored on the brand row
        brand_name: Used in error messages

    Returns:
        BrandApiConfig

    Raises:
        BrandConfigError: If the configuration is missing or malformed
    """
    if not raw:
        raise BrandConfigError(f"Brand {brand_name or '?'} has no API configuration")
    try:
        return BrandApiConfig.model_validate(raw)
    except ValidationError as e:
        raise BrandConfigError(
            f"Brand {brand_name or '?'} has invalid API configuration: {e.error_count()} error(s): {e}"
        ) from e

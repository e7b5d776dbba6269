"""Application configuration.

Loads settings from environment variables with sensible defaults and
builds the immutable per-deployment country and channel configuration.
"""

from dataclasses import dataclass, field
from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

CountryCode = Literal["CL", "CO", "PE"]


# ============================================================================
# Channel Configuration
# ============================================================================


class SizeCategories(BaseModel):
    """Category ids marking the small/medium/big size slots of one store."""

    small: int | None = None
    medium: int | None = None
    big: int | None = None


class ChannelConfig(BaseModel):
    """Remote category ids that drive product flags for one sales channel.

    Every id is optional; a missing id simply leaves the derived flag false.
    """

    id: int
    parent_category: int | None = None
    sameday: int | None = None
    despacho24horas: int | None = None
    pickup_in_store: int | None = None
    free_shipping: int | None = None
    turbo: int | None = None
    reserve: int | None = None
    benefits: int | None = None
    campaigns: int | None = None
    advanced_filters: int | None = None
    api_url: str | None = None
    sizes: dict[str, SizeCategories] = Field(default_factory=dict)


DEFAULT_CHANNELS: dict[str, ChannelConfig] = {
    "UF": ChannelConfig(id=1, parent_category=1),
    "AF": ChannelConfig(id=1443267, parent_category=1443267),
    "TF": ChannelConfig(id=1457601, parent_category=1457601),
    "AR": ChannelConfig(id=1501686, parent_category=1501686),
    "TS": ChannelConfig(id=1461778, parent_category=1461778),
    "SF": ChannelConfig(id=1573014, parent_category=1573014),
    "UC": ChannelConfig(id=1598942, parent_category=1598942),
    "FC": ChannelConfig(id=1420393, parent_category=1420393),
    "CC": ChannelConfig(id=1567036, parent_category=1567036),
}


# ============================================================================
# Country Configuration
# ============================================================================


@dataclass(frozen=True)
class CountryConfig:
    """Country-specific pricing and inventory parameters.

    Built once at startup and passed explicitly to the code that branches
    on country, so nothing reads the environment at call time.
    """

    country_code: CountryCode
    list_price_id: int | None = None
    inventory_location_id: int | None = None
    transfer_percent: float = 2.0
    channels: dict[str, ChannelConfig] = field(default_factory=dict)

    @property
    def uses_price_service(self) -> bool:
        """Whether prices come from the price microservice instead of the catalog."""
        return self.country_code != "CL"

    def channel_by_id(self, channel_id: int) -> tuple[str, ChannelConfig] | None:
        """Look up a configured channel by its remote id.

        Args:
            channel_id: Remote channel identifier.

        Returns:
            (name, config) tuple, or None if the channel is not configured.
        """
        for name, channel in self.channels.items():
            if channel.id == channel_id:
                return name, channel
        return None

    def resolve_channel(self, identifier: str) -> tuple[str, ChannelConfig] | None:
        """Look up a configured channel by numeric id or by name.

        Args:
            identifier: Remote channel id (``"1443267"``) or channel name
                (``"AF"``, case-insensitive).

        Returns:
            (name, config) tuple, or None if nothing matches.
        """
        identifier = identifier.strip()
        if identifier.isdecimal():
            return self.channel_by_id(int(identifier))
        name = identifier.upper()
        channel = self.channels.get(name)
        return (name, channel) if channel is not None else None

    @property
    def channel_ids(self) -> set[int]:
        """Set of configured remote channel ids."""
        return {channel.id for channel in self.channels.values()}


# ============================================================================
# Settings
# ============================================================================


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # API
    api_version: str = "0.1.0"
    api_prefix: str = "/api"
    debug: bool = False

    # Database
    database_url: str = "postgresql+asyncpg://catalog:catalog_dev_password@db:5432/catalog"
    read_isolation_level: str = "READ COMMITTED"

    # BigCommerce
    bigcommerce_api_url: str = "https://api.bigcommerce.com/stores/"
    bigcommerce_store_id: str = ""
    bigcommerce_access_token: str = ""
    bigcommerce_timeout: float = 15.0

    # Enrichment microservices
    price_service_url: str = "http://prices:3000"
    inventory_service_url: str = "http://inventory:3000"
    enrichment_timeout: float = 15.0
    enrichment_concurrency: int = 10

    # Packs service (per-channel api_url)
    packs_api_key: str = ""
    packs_timeout: float = 15.0

    # Country
    country_code: CountryCode = "CL"
    list_price_id: int | None = None
    inventory_location_id: int | None = None
    transfer_percent: float = 2.0
    channels: dict[str, ChannelConfig] = Field(
        default_factory=lambda: dict(DEFAULT_CHANNELS)
    )

    # Sync tuning
    product_batch_size: int = 20
    product_batch_concurrency: int = 5
    write_concurrency: int = 10
    retry_attempts: int = 3
    retry_base_delay: float = 0.5
    retry_max_delay: float = 8.0
    retry_rate_limit_max_delay: float = 35.0
    product_concurrency: int = 15

    # Variants whose product row is missing: tolerate | skip | error
    orphan_variant_policy: Literal["tolerate", "skip", "error"] = "tolerate"

    # Logging
    log_level: str = "INFO"

    @property
    def bigcommerce_base_url(self) -> str:
        """Store-scoped BigCommerce API base URL."""
        return f"{self.bigcommerce_api_url}{self.bigcommerce_store_id}"

    def country_config(self) -> CountryConfig:
        """Build the immutable country configuration.

        Returns:
            CountryConfig for this deployment.
        """
        return CountryConfig(
            country_code=self.country_code,
            list_price_id=self.list_price_id,
            inventory_location_id=self.inventory_location_id,
            transfer_percent=self.transfer_percent,
            channels=dict(self.channels),
        )


settings = Settings()


@lru_cache
def get_country_config() -> CountryConfig:
    """Get the country configuration singleton.

    Returns:
        CountryConfig built from settings.
    """
    return settings.country_config()

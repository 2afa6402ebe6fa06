"""
Location autocomplete backed by OpenStreetMap Nominatim.

Queries are biased to the Madrid region (the query is suffixed with the
region name and restricted to Spain). Short queries and any lookup failure
return an empty list so the form keeps working without suggestions.
Debouncing happens in the client.
"""

import httpx
import structlog
from pydantic import BaseModel, Field

from inmoai.config import GeocodingConfig

logger = structlog.get_logger(__name__)


class LocationSuggestion(BaseModel):
    """One ranked address suggestion."""

    display_name: str
    lat: float | None = None
    lon: float | None = None
    address: dict[str, str] = Field(default_factory=dict)


class GeocodingService:
    """Address suggestions for the location field."""

    def __init__(self, config: GeocodingConfig | None = None, client: httpx.AsyncClient | None = None):
        self.config = config or GeocodingConfig()
        self._client = client or httpx.AsyncClient(
            timeout=self.config.timeout_seconds,
            headers={"User-Agent": self.config.user_agent},
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def suggest(self, query: str) -> list[LocationSuggestion]:
        """
        Return up to ``config.limit`` suggestions for the free-text query.

        Args:
            query: Text typed in the location field.

        Returns:
            Ranked suggestions, or [] for short queries and failed lookups.
        """
        query = query.strip()
        if len(query) < self.config.min_query_length:
            return []

        params = {
            "format": "json",
            "q": f"{query} {self.config.region_suffix}".strip(),
            "addressdetails": 1,
            "limit": self.config.limit,
            "countrycodes": self.config.country_codes,
        }
        try:
            response = await self._client.get(self.config.base_url, params=params)
            response.raise_for_status()
            items = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("geocoding_lookup_failed", query=query, error=str(e))
            return []

        suggestions: list[LocationSuggestion] = []
        for item in items if isinstance(items, list) else []:
            if not isinstance(item, dict) or not item.get("display_name"):
                continue
            address = item.get("address") or {}
            suggestions.append(
                LocationSuggestion(
                    display_name=item["display_name"],
                    lat=float(item["lat"]) if item.get("lat") else None,
                    lon=float(item["lon"]) if item.get("lon") else None,
                    address={k: str(v) for k, v in address.items()},
                )
            )
        return suggestions

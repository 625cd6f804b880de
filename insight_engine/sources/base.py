"""
Base provider adapter.

An adapter owns one ServiceClient and translates that provider's native
payloads into the common SourceRecord/Comparable shapes. Adapters know
nothing about retries, deadlines or merging; the aggregator wraps every
adapter call in the shared RetryPolicy.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional

from insight_engine.core.api_errors import ParsingError
from insight_engine.core.api_registry import ServiceName
from insight_engine.core.fallback import get_fallback_record
from insight_engine.core.http_client import ServiceClient
from insight_engine.core.schemas import Address, Comparable, SourceRecord, SubjectProperty

logger = logging.getLogger(__name__)


class ProviderAdapter(ABC):
    """
    Base class for all provider adapters.

    Subclasses should:
    - Set SERVICE, COMPARABLE_CONFIDENCE and FALLBACK_KINDS class attributes
    - Implement fetch_property() and fetch_neighborhood()
    - Override fetch_comparables() if the provider can find comparables
    """

    SERVICE: ServiceName
    COMPARABLE_CONFIDENCE: int = 0

    # record kind -> fallback data type substituted when the provider fails
    FALLBACK_KINDS: Dict[str, str] = {
        "property": "property",
        "neighborhood": "market_stats",
    }

    def __init__(self, client: ServiceClient):
        if client.service != self.SERVICE:
            raise ValueError(
                f"{type(self).__name__} needs a {self.SERVICE.value} client, "
                f"got {client.service_name}"
            )
        self.client = client

    @property
    def service(self) -> ServiceName:
        return self.SERVICE

    @property
    def comparable_confidence(self) -> int:
        return self.COMPARABLE_CONFIDENCE

    def fallback_kind(self, kind: str) -> Optional[str]:
        return self.FALLBACK_KINDS.get(kind)

    def is_configured(self) -> bool:
        return self.client.has_credentials()

    def fallback_record(self, kind: str) -> Optional[SourceRecord]:
        data_type = self.fallback_kind(kind)
        if data_type is None:
            return None
        return get_fallback_record(self.service, data_type)

    def translate(self, fn: Callable[..., Any], payload: Any, *args: Any) -> Any:
        """
        Run a metadata transform, turning shape errors into ParsingError.

        Args:
            fn: Pure function from the provider's metadata module
            payload: Raw decoded response
            *args: Extra arguments passed to fn

        Raises:
            ParsingError: If the payload does not have the expected shape
        """
        try:
            return fn(payload, *args)
        except (KeyError, TypeError, ValueError, AttributeError, IndexError) as e:
            logger.warning(f"[{self.service.value}] Could not translate payload: {e}")
            raise ParsingError(
                message=f"Unexpected payload shape in {fn.__name__}: {e}",
                service=self.service.value,
            ) from e

    @abstractmethod
    async def fetch_property(self, address: Address) -> SourceRecord:
        """Property facts for one address. Raises NotFoundError on no match."""
        pass

    @abstractmethod
    async def fetch_neighborhood(self, neighborhood: str, city: str) -> SourceRecord:
        """Market statistics for a neighborhood within a city."""
        pass

    async def fetch_comparables(
        self, subject: SubjectProperty, radius: float = 0.5
    ) -> List[Comparable]:
        """Comparable properties around the subject. Empty if unsupported."""
        return []

    async def close(self) -> None:
        await self.client.close()

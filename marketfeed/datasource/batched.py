"""
Shared batching for HTTP vendors that take a list of symbols per request.

Symbols are fetched in batches of at most MAX_BATCH_SIZE. A failed batch
marks its symbols as failed without affecting other batches, except that a
rate limit aborts the whole fetch.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, TypeVar

import httpx
from loguru import logger

from marketfeed.datasource.http import ProviderHttpClient
from marketfeed.services.errors import InvalidResponseError, ProviderError, ProviderErrorCode
from marketfeed.utils import preview

MAX_BATCH_SIZE = 50

SymbolError = dict[str, str]

R = TypeVar("R")


def normalize_symbol(symbol: str) -> str:
    return symbol.strip().upper()


class BatchedProvider(ABC):
    """Base for symbol-list vendors. Subclasses implement _fetch_batch."""

    PROVIDER_NAME = ""
    BASE_URL = ""
    REQUIRES_API_KEY = True

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float = 10.0,
        batch_size: int = MAX_BATCH_SIZE,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.api_key = api_key or None
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self.batch_size = max(1, min(batch_size, MAX_BATCH_SIZE))
        self.http = ProviderHttpClient(self.PROVIDER_NAME, timeout=timeout, http_client=http_client)

        if self.REQUIRES_API_KEY and not self.api_key:
            logger.warning(f"{type(self).__name__} initialized without API key")

    @property
    def name(self) -> str:
        return self.PROVIDER_NAME

    def is_configured(self) -> bool:
        return bool(self.api_key) or not self.REQUIRES_API_KEY

    async def _fetch_all(self, symbols: list[str], kind: str) -> list[Any]:
        """
        Fetch every symbol, batch by batch.

        Returns:
            Records for the symbols that succeeded

        Raises:
            RateLimitError: Any batch was rate limited
            ProviderError: No symbol succeeded, or no API key is configured
        """
        symbols = list(dict.fromkeys(normalize_symbol(s) for s in symbols if s.strip()))
        if not symbols:
            return []

        if not self.is_configured():
            raise ProviderError(
                f"{self.name} API key is not configured",
                code=ProviderErrorCode.PROVIDER_FAILED,
                provider=self.name,
            )

        logger.info(
            f"[{self.name}] Fetching {kind} for {len(symbols)} symbols ({preview(symbols)}), "
            f"batch size {self.batch_size}"
        )

        results: list[Any] = []
        errors: list[SymbolError] = []
        total_batches = (len(symbols) + self.batch_size - 1) // self.batch_size

        for start in range(0, len(symbols), self.batch_size):
            batch = symbols[start : start + self.batch_size]
            batch_number = start // self.batch_size + 1
            logger.debug(f"[{self.name}] Batch {batch_number}/{total_batches} ({len(batch)} symbols)")

            try:
                batch_results, batch_errors = await self._fetch_batch(batch)
            except ProviderError as e:
                if e.code == ProviderErrorCode.RATE_LIMITED:
                    raise
                logger.warning(f"[{self.name}] Batch {batch_number} failed: {e.message}")
                errors.extend({"symbol": s, "error": e.message} for s in batch)
                continue

            results.extend(batch_results)
            errors.extend(batch_errors)

        failed = [e["symbol"] for e in errors]
        logger.info(
            f"[{self.name}] {kind.capitalize()} fetch completed: {len(results)} ok, {len(errors)} failed"
            + (f" ({preview(failed)})" if failed else "")
        )

        if not results:
            first = errors[0]["error"] if errors else "empty response"
            raise ProviderError(
                f"Failed to fetch {kind} for all symbols: {first}",
                code=ProviderErrorCode.PROVIDER_FAILED,
                provider=self.name,
                details={"errors": errors},
            )

        return results

    @abstractmethod
    async def _fetch_batch(self, symbols: list[str]) -> tuple[list[Any], list[SymbolError]]:
        """Fetch one batch, returning records and per-symbol errors."""
        ...

    def _parse_record(self, symbol: Any, build: Callable[[], R]) -> R | SymbolError:
        """Run build(), turning a malformed record into a per-symbol error."""
        try:
            return build()
        except (AttributeError, KeyError, TypeError, ValueError, ArithmeticError) as e:
            return {"symbol": str(symbol), "error": f"Malformed record: {e}"}

    def _symbol_errors(self, raw: Any) -> list[SymbolError]:
        """Normalize a vendor `errors` array; non-object entries are kept as text."""
        if raw is None:
            return []
        if not isinstance(raw, list):
            raise InvalidResponseError(
                f"{self.name} errors field is not a list",
                provider=self.name,
                details={"errors": str(raw)[:200]},
            )

        errors: list[SymbolError] = []
        for item in raw:
            if isinstance(item, dict):
                errors.append({"symbol": str(item.get("symbol")), "error": str(item.get("error"))})
            else:
                errors.append({"symbol": str(item), "error": "Malformed error entry"})
        return errors

    async def close(self) -> None:
        await self.http.close()

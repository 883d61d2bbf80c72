from __future__ import annotations

import logging
from contextlib import contextmanager
from threading import RLock
from typing import Iterator, Sequence

from .config import ConfigManager, ConfigValidator, create_config_manager
from .core.pagination import get_stock_list
from .core.tag_aggregator import TagAggregator, TagBoardError, create_tag_aggregator
from .core.tag_parser import ParsedTagMap, parse_custom_tags
from .core.tag_validator import ValidationCache, validate_tag_format
from .models import (
    CategoryListResult,
    CombinedSearchResult,
    DataStatistics,
    SearchParams,
    SelectedTag,
    StockCompanyInfo,
    StockListResult,
    TagBoardConfig,
    TagDetails,
    TagListResult,
    TagStatistics,
    ValidationStatus,
)

logger = logging.getLogger(__name__)


class StoreBusyError(TagBoardError):
    def __init__(self, message: str) -> None:
        super().__init__("STORE_BUSY", message)


class InMemoryStore:
    """
    Holds the stock collection and serves tag queries over it.

    The collection is kept as an immutable tuple. Writers swap it under the
    lock; readers take the current tuple under the lock and compute outside
    it, so concurrent queries never wait on each other.
    """

    def __init__(
        self,
        config_manager: ConfigManager | None = None,
        validation_cache: ValidationCache | None = None,
    ) -> None:
        self._lock = RLock()
        self._config_manager = config_manager or create_config_manager()
        self._config: TagBoardConfig = self._config_manager.get_config()
        for error in ConfigValidator.validate_config(self._config):
            logger.warning(f"Config problem: {error}")
        self._stock_data: tuple[StockCompanyInfo, ...] = ()
        self._aggregator: TagAggregator = create_tag_aggregator(
            max_workers=self._config.max_workers,
            parallel_threshold=self._config.parallel_threshold,
            parse_cache_enabled=self._config.parse_cache_enabled,
            validation_cache=validation_cache,
        )

    @contextmanager
    def _guard(self, action: str) -> Iterator[None]:
        acquired = self._lock.acquire(timeout=self._config.lock_timeout_sec)
        if not acquired:
            logger.warning(f"Stock data lock busy while trying to {action}")
            raise StoreBusyError(f"Failed to {action} stock data: lock not acquired within {self._config.lock_timeout_sec}s")
        try:
            yield
        finally:
            self._lock.release()

    def _snapshot(self) -> tuple[StockCompanyInfo, ...]:
        with self._guard("read"):
            return self._stock_data

    def get_config(self) -> TagBoardConfig:
        return self._config

    def _with_page_defaults(self, params: SearchParams) -> SearchParams:
        """Fill page sizes the caller left out from the configured defaults."""
        defaults: dict[str, int] = {}
        if "tags_per_page" not in params.model_fields_set:
            defaults["tags_per_page"] = self._config.default_tags_per_page
        if "stocks_per_page" not in params.model_fields_set:
            defaults["stocks_per_page"] = self._config.default_stocks_per_page
        return params.model_copy(update=defaults) if defaults else params

    @property
    def aggregator(self) -> TagAggregator:
        return self._aggregator

    # Collection
    def set_stock_data(self, stock_data: Sequence[StockCompanyInfo]) -> int:
        snapshot = tuple(stock_data)
        with self._guard("update"):
            self._stock_data = snapshot
        logger.info(f"Stock data replaced: {len(snapshot)} records")
        return len(snapshot)

    # Queries
    def get_categories(self, search_query: str | None = None) -> CategoryListResult:
        query = search_query if search_query else None
        return self._aggregator.get_category_list(self._snapshot(), query)

    def get_tags_by_category(self, params: SearchParams) -> TagListResult:
        return self._aggregator.get_tag_list(self._snapshot(), self._with_page_defaults(params))

    def get_stocks_by_tag(self, selected_tag: SelectedTag, params: SearchParams) -> StockListResult:
        return get_stock_list(selected_tag, self._with_page_defaults(params))

    def calculate_statistics(
        self,
        tags: Sequence[TagDetails],
        filtered_categories_count: int,
        total_tags_count: int,
        selected_category_tags_count: int,
    ) -> TagStatistics:
        return self._aggregator.calculate_tag_statistics(
            tags,
            filtered_categories_count,
            total_tags_count,
            selected_category_tags_count,
        )

    def parse_tags(self, tags: str) -> ParsedTagMap:
        return parse_custom_tags(tags)

    def validate_tag(self, tag_name: str, tag_detail: str | None = None) -> ValidationStatus:
        return validate_tag_format(tag_name, tag_detail, cache=self._aggregator.validation_cache)

    def get_tag_details(
        self,
        category_name: str,
        tag_name: str,
        tag_detail: str | None = None,
    ) -> SelectedTag:
        return self._aggregator.find_tag(self._snapshot(), category_name, tag_name, tag_detail)

    def search_and_filter(self, params: SearchParams) -> CombinedSearchResult:
        params = self._with_page_defaults(params)
        stocks = self._snapshot()
        return CombinedSearchResult(
            categories=self._aggregator.get_category_list(stocks, params.search_query),
            tags=self._aggregator.get_tag_list(stocks, params),
        )

    def get_data_statistics(self) -> DataStatistics:
        return self._aggregator.get_data_statistics(self._snapshot())


store = InMemoryStore()

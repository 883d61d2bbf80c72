"""
Tag aggregation business logic.

Scans the stock collection, groups parsed tags per category, merges
identical (name, detail) pairs into TagDetails with usage counts and owning
stocks, and produces the sorted, filtered and paginated views served to
callers.
"""

from __future__ import annotations

import logging
import os
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Sequence, TypeVar

from ..models import (
    CategoryListResult,
    DataStatistics,
    SearchParams,
    SelectedTag,
    StockCompanyInfo,
    TagCategory,
    TagDetails,
    TagItem,
    TagListResult,
    TagStatistics,
    ValidationStatus,
)
from ..utils.text_utils import TextProcessor
from .pagination import paginate
from .tag_parser import ParseCache, ParsedTagMap, parse_custom_tags
from .tag_validator import ValidationCache, default_validation_cache, validate_tag_format

logger = logging.getLogger(__name__)

R = TypeVar("R")

TagKey = tuple[str, str]


class TagBoardError(Exception):
    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


class TagNotFoundError(TagBoardError):
    def __init__(self, category_name: str, tag_name: str, tag_detail: str | None = None) -> None:
        label = f"{category_name}:{tag_name}"
        if tag_detail is not None:
            label = f"{label}{{{tag_detail}}}"
        super().__init__("TAG_NOT_FOUND", f"未找到标签 {label}")
        self.category_name = category_name
        self.tag_name = tag_name
        self.tag_detail = tag_detail


def tag_matches_query(tag: TagDetails | TagItem, category_name: str, query_lower: str) -> bool:
    return (
        TextProcessor.contains(tag.name, query_lower)
        or TextProcessor.contains(tag.detail, query_lower)
        or TextProcessor.contains(category_name, query_lower)
    )


class TagAggregator:
    """
    Aggregates tags across a stock collection.

    The per-stock parse step fans out over a thread pool in contiguous
    chunks; chunk results are merged in collection order. Every ordering
    exposed to callers comes from an explicit sort, never from scan order.
    """

    def __init__(
        self,
        max_workers: int | None = None,
        parallel_threshold: int = 256,
        validation_cache: ValidationCache | None = None,
        parse_cache: ParseCache | None = None,
    ) -> None:
        self._max_workers = max_workers or self._resolve_workers()
        self._parallel_threshold = max(0, parallel_threshold)
        self._validation_cache = validation_cache if validation_cache is not None else default_validation_cache()
        self._parse_cache = parse_cache

    @staticmethod
    def _resolve_workers() -> int:
        cpu_count = os.cpu_count() or 4
        return max(1, min(8, cpu_count))

    @property
    def validation_cache(self) -> ValidationCache:
        return self._validation_cache

    # Fan-out helpers
    def _parse(self, stock: StockCompanyInfo) -> ParsedTagMap:
        if self._parse_cache is not None:
            return self._parse_cache.parse(stock.custom_tags)
        return parse_custom_tags(stock.custom_tags)

    def _map_chunks(
        self,
        stocks: Sequence[StockCompanyInfo],
        worker: Callable[[Sequence[StockCompanyInfo]], R],
    ) -> list[R]:
        """Run ``worker`` over contiguous chunks; results come back in chunk order."""
        if not stocks:
            return []
        workers = min(self._max_workers, len(stocks))
        if workers <= 1 or len(stocks) < self._parallel_threshold:
            return [worker(stocks)]

        chunk_size = -(-len(stocks) // workers)
        chunks = [stocks[start:start + chunk_size] for start in range(0, len(stocks), chunk_size)]
        results: list[R | None] = [None] * len(chunks)
        with ThreadPoolExecutor(max_workers=workers) as executor:
            future_map = {executor.submit(worker, chunk): idx for idx, chunk in enumerate(chunks)}
            for future in as_completed(future_map):
                results[future_map[future]] = future.result()
        return [item for item in results if item is not None]

    # Validation and ordering
    def status_of(self, tag: TagDetails | TagItem) -> ValidationStatus:
        return validate_tag_format(tag.name, tag.detail, cache=self._validation_cache)

    def sort_tags(self, tags: list[TagDetails]) -> list[TagDetails]:
        """Errors first, then most used, then by name."""
        return sorted(
            tags,
            key=lambda tag: (-self.status_of(tag).weight, -tag.count, tag.name),
        )

    def count_statuses(self, tags: Sequence[TagDetails]) -> tuple[int, int, int]:
        """Return ``(error, warning, valid)`` counts; SPECIAL counts as valid."""
        error_count = 0
        warning_count = 0
        valid_count = 0
        for tag in tags:
            status = self.status_of(tag)
            if status is ValidationStatus.ERROR:
                error_count += 1
            elif status is ValidationStatus.WARNING:
                warning_count += 1
            else:
                valid_count += 1
        return error_count, warning_count, valid_count

    # Category level
    def collect_categories(self, stocks: Sequence[StockCompanyInfo]) -> set[str]:
        def _worker(chunk: Sequence[StockCompanyInfo]) -> set[str]:
            found: set[str] = set()
            for stock in chunk:
                if stock.custom_tags:
                    found.update(self._parse(stock).keys())
            return found

        categories: set[str] = set()
        for part in self._map_chunks(stocks, _worker):
            categories |= part
        return categories

    def aggregate_all_categories(
        self,
        stocks: Sequence[StockCompanyInfo],
    ) -> dict[str, dict[TagKey, TagDetails]]:
        """Merge every category's tags in one pass over the collection."""

        def _worker(chunk: Sequence[StockCompanyInfo]) -> list[tuple[str, TagItem | None, StockCompanyInfo]]:
            rows: list[tuple[str, TagItem | None, StockCompanyInfo]] = []
            for stock in chunk:
                if not stock.custom_tags:
                    continue
                for category, items in self._parse(stock).items():
                    if not items:
                        rows.append((category, None, stock))
                    for item in items:
                        rows.append((category, item, stock))
            return rows

        merged: dict[str, dict[TagKey, TagDetails]] = {}
        for part in self._map_chunks(stocks, _worker):
            for category, item, stock in part:
                tag_map = merged.setdefault(category, {})
                if item is not None:
                    self._merge_item(tag_map, item, stock)
        return merged

    def get_category_list(
        self,
        stocks: Sequence[StockCompanyInfo],
        search_query: str | None = None,
    ) -> CategoryListResult:
        started = time.perf_counter()
        query_lower = TextProcessor.normalize_query(search_query)
        merged = self.aggregate_all_categories(stocks)

        categories = list(merged.keys())
        if query_lower is not None:
            categories = [
                category
                for category in categories
                if TextProcessor.contains(category, query_lower)
                or any(
                    TextProcessor.contains(tag.name, query_lower)
                    or TextProcessor.contains(tag.detail, query_lower)
                    for tag in merged[category].values()
                )
            ]
        categories.sort()

        total_tags = 0
        for category in categories:
            tags = merged[category].values()
            if query_lower is None:
                total_tags += len(tags)
            else:
                total_tags += sum(1 for tag in tags if tag_matches_query(tag, category, query_lower))

        logger.debug(
            f"Listed {len(categories)} categories over {len(stocks)} stocks "
            f"in {(time.perf_counter() - started) * 1000:.1f}ms"
        )
        return CategoryListResult(
            categories=categories,
            statistics=TagStatistics(
                total_tags=total_tags,
                total_categories=len(categories),
            ),
        )

    # Tag level
    @staticmethod
    def _merge_item(tag_map: dict[TagKey, TagDetails], item: TagItem, stock: StockCompanyInfo) -> None:
        key = (item.name, item.detail or "")
        tag = tag_map.get(key)
        if tag is None:
            tag = TagDetails(name=item.name, detail=item.detail, count=0, stocks=[])
            tag_map[key] = tag
        tag.count += 1
        tag.stocks.append(stock)

    def aggregate_category(
        self,
        stocks: Sequence[StockCompanyInfo],
        category_name: str,
    ) -> list[TagDetails]:
        """
        Merge one category's tags across the collection, unsorted.

        Each TagDetails lists its stocks in collection order, once per
        occurrence.
        """

        def _worker(chunk: Sequence[StockCompanyInfo]) -> list[tuple[TagItem, StockCompanyInfo]]:
            rows: list[tuple[TagItem, StockCompanyInfo]] = []
            for stock in chunk:
                if not stock.custom_tags:
                    continue
                for item in self._parse(stock).get(category_name, []):
                    rows.append((item, stock))
            return rows

        tag_map: dict[TagKey, TagDetails] = {}
        for part in self._map_chunks(stocks, _worker):
            for item, stock in part:
                self._merge_item(tag_map, item, stock)
        return list(tag_map.values())

    def get_category_data(self, stocks: Sequence[StockCompanyInfo], category_name: str) -> TagCategory:
        return TagCategory(
            name=category_name,
            tags=self.sort_tags(self.aggregate_category(stocks, category_name)),
        )

    def get_tag_list(self, stocks: Sequence[StockCompanyInfo], params: SearchParams) -> TagListResult:
        category_name = params.category_name
        if category_name is None:
            return TagListResult(
                tags=[],
                total_tags=0,
                total_pages=0,
                current_page=params.tags_page,
                error_tags_count=0,
                warning_tags_count=0,
                valid_tags_count=0,
            )

        tags = self.aggregate_category(stocks, category_name)
        query_lower = TextProcessor.normalize_query(params.search_query)
        if query_lower is not None:
            tags = [tag for tag in tags if tag_matches_query(tag, category_name, query_lower)]

        # 先对全部标签排序并统计，再分页
        tags = self.sort_tags(tags)
        error_count, warning_count, valid_count = self.count_statuses(tags)
        paged_tags, total_pages = paginate(tags, params.tags_page, params.tags_per_page)

        return TagListResult(
            tags=paged_tags,
            total_tags=len(tags),
            total_pages=total_pages,
            current_page=params.tags_page,
            error_tags_count=error_count,
            warning_tags_count=warning_count,
            valid_tags_count=valid_count,
        )

    def find_tag(
        self,
        stocks: Sequence[StockCompanyInfo],
        category_name: str,
        tag_name: str,
        tag_detail: str | None = None,
    ) -> SelectedTag:
        for tag in self.aggregate_category(stocks, category_name):
            if tag.name == tag_name and tag.detail == tag_detail:
                return SelectedTag(
                    category_name=category_name,
                    tag_name=tag_name,
                    tag_detail=tag_detail,
                    stocks=tag.stocks,
                )
        raise TagNotFoundError(category_name, tag_name, tag_detail)

    # Statistics
    def calculate_tag_statistics(
        self,
        tags: Sequence[TagDetails],
        filtered_categories_count: int,
        total_tags_count: int,
        selected_category_tags_count: int,
    ) -> TagStatistics:
        error_count, warning_count, valid_count = self.count_statuses(tags)
        return TagStatistics(
            total_tags=total_tags_count,
            total_categories=filtered_categories_count,
            selected_category_tags_count=selected_category_tags_count,
            current_page_tags_count=len(tags),
            error_tags_count=error_count,
            warning_tags_count=warning_count,
            valid_tags_count=valid_count,
        )

    def get_data_statistics(self, stocks: Sequence[StockCompanyInfo]) -> DataStatistics:
        return DataStatistics(
            total_stocks=len(stocks),
            stocks_with_tags=sum(1 for stock in stocks if stock.custom_tags),
            total_categories=len(self.collect_categories(stocks)),
        )


def create_tag_aggregator(
    max_workers: int | None = None,
    parallel_threshold: int = 256,
    parse_cache_enabled: bool = False,
    validation_cache: ValidationCache | None = None,
) -> TagAggregator:
    """
    Factory function to create TagAggregator.

    Args:
        max_workers: Thread pool size (defaults to min(8, cpu_count))
        parallel_threshold: Collections smaller than this are scanned inline
        parse_cache_enabled: Memoize parsed tag strings across calls
        validation_cache: Cache to use instead of the process-wide one

    Returns:
        TagAggregator instance
    """
    return TagAggregator(
        max_workers=max_workers,
        parallel_threshold=parallel_threshold,
        validation_cache=validation_cache,
        parse_cache=ParseCache() if parse_cache_enabled else None,
    )

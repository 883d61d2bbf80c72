from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class ValidationStatus(str, Enum):
    VALID = "valid"
    WARNING = "warning"
    ERROR = "error"
    SPECIAL = "special"

    @property
    def weight(self) -> int:
        return _STATUS_WEIGHTS[self]


_STATUS_WEIGHTS: dict[ValidationStatus, int] = {
    ValidationStatus.ERROR: 4,
    ValidationStatus.WARNING: 3,
    ValidationStatus.SPECIAL: 2,
    ValidationStatus.VALID: 1,
}


class ApiErrorPayload(BaseModel):
    code: str
    message: str
    trace_id: str | None = None


class StockCompanyInfo(BaseModel):
    stock_code: str
    stock_name: str = ""
    company_name: str = ""
    exchange: str = ""
    business_scope: str = ""
    custom_tags: str = ""
    official_website: str = ""
    company_description: str = ""
    underwriting_method: str = ""
    created_at: str = ""
    updated_at: str = ""
    sectors_concepts: list[str] = Field(default_factory=list)


class TagItem(BaseModel):
    name: str
    detail: str | None = None


class TagDetails(BaseModel):
    name: str
    detail: str | None = None
    count: int = 0
    stocks: list[StockCompanyInfo] = Field(default_factory=list)


class TagCategory(BaseModel):
    name: str
    tags: list[TagDetails]


class SelectedTag(BaseModel):
    category_name: str
    tag_name: str
    tag_detail: str | None = None
    stocks: list[StockCompanyInfo] = Field(default_factory=list)


class TagStatistics(BaseModel):
    total_tags: int = 0
    total_categories: int = 0
    selected_category_tags_count: int = 0
    current_page_tags_count: int = 0
    error_tags_count: int = 0
    warning_tags_count: int = 0
    valid_tags_count: int = 0


class SearchParams(BaseModel):
    search_query: str | None = None
    category_name: str | None = None
    tags_page: int = Field(default=1, ge=1)
    stocks_page: int = Field(default=1, ge=1)
    tags_per_page: int = Field(default=20, ge=1)
    stocks_per_page: int = Field(default=20, ge=1)


class CategoryListResult(BaseModel):
    categories: list[str]
    statistics: TagStatistics


class TagListResult(BaseModel):
    tags: list[TagDetails]
    total_tags: int
    total_pages: int
    current_page: int
    # 整个分类下的验证统计（不仅仅是当前页）
    error_tags_count: int
    warning_tags_count: int
    valid_tags_count: int


class StockListResult(BaseModel):
    stocks: list[StockCompanyInfo]
    total_stocks: int
    total_pages: int
    current_page: int


class DataStatistics(BaseModel):
    total_stocks: int
    stocks_with_tags: int
    total_categories: int


class CombinedSearchResult(BaseModel):
    categories: CategoryListResult
    tags: TagListResult


class SetStockDataRequest(BaseModel):
    stock_data: list[StockCompanyInfo]


class SetStockDataResponse(BaseModel):
    success: bool
    total_stocks: int


class StocksByTagRequest(BaseModel):
    selected_tag: SelectedTag
    params: SearchParams


class StatisticsRequest(BaseModel):
    tags: list[TagDetails]
    filtered_categories_count: int = Field(default=0, ge=0)
    total_tags_count: int = Field(default=0, ge=0)
    selected_category_tags_count: int = Field(default=0, ge=0)


class ParseTagsRequest(BaseModel):
    tags: str


class ValidateTagResponse(BaseModel):
    tag_name: str
    tag_detail: str | None = None
    status: ValidationStatus


class TagBoardConfig(BaseModel):
    max_workers: int = Field(default=8, ge=1, le=64)
    parallel_threshold: int = Field(default=256, ge=0)
    parse_cache_enabled: bool = False
    lock_timeout_sec: float = Field(default=5.0, gt=0)
    default_tags_per_page: int = Field(default=20, ge=1)
    default_stocks_per_page: int = Field(default=20, ge=1)
    cors_origins: list[str] = Field(
        default_factory=lambda: [
            "http://127.0.0.1:1420",
            "http://localhost:1420",
        ]
    )

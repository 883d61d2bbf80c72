from __future__ import annotations

import time

from fastapi import FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .core.tag_aggregator import TagBoardError
from .core.tag_parser import ParsedTagMap
from .models import (
    ApiErrorPayload,
    CategoryListResult,
    CombinedSearchResult,
    DataStatistics,
    ParseTagsRequest,
    SearchParams,
    SelectedTag,
    SetStockDataRequest,
    SetStockDataResponse,
    StatisticsRequest,
    StockListResult,
    StocksByTagRequest,
    TagListResult,
    TagStatistics,
    ValidateTagResponse,
)
from .store import store

app = FastAPI(title="Stock tag board API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=store.get_config().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_ERROR_STATUS = {
    "TAG_NOT_FOUND": 404,
    "STORE_BUSY": 409,
}


def error_response(status_code: int, code: str, message: str) -> JSONResponse:
    payload = ApiErrorPayload(
        code=code,
        message=message,
        trace_id=str(time.time_ns()),
    )
    return JSONResponse(status_code=status_code, content=payload.model_dump(exclude_none=True))


@app.exception_handler(RequestValidationError)
def handle_validation_error(_: Request, exc: RequestValidationError) -> JSONResponse:
    detail = exc.errors()[0].get("msg") if exc.errors() else "请求参数不合法"
    return error_response(422, "VALIDATION_ERROR", str(detail))


@app.exception_handler(TagBoardError)
def handle_tag_board_error(_: Request, exc: TagBoardError) -> JSONResponse:
    return error_response(_ERROR_STATUS.get(exc.code, 400), exc.code, exc.message)


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.put("/api/stocks", response_model=SetStockDataResponse)
def put_stock_data(payload: SetStockDataRequest) -> SetStockDataResponse:
    total = store.set_stock_data(payload.stock_data)
    return SetStockDataResponse(success=True, total_stocks=total)


@app.get("/api/stocks/statistics", response_model=DataStatistics)
def get_data_statistics() -> DataStatistics:
    return store.get_data_statistics()


@app.get("/api/tags/categories", response_model=CategoryListResult)
def get_categories(search_query: str | None = Query(default=None)) -> CategoryListResult:
    return store.get_categories(search_query)


@app.post("/api/tags/list", response_model=TagListResult)
def post_tags_by_category(params: SearchParams) -> TagListResult:
    return store.get_tags_by_category(params)


@app.post("/api/tags/stocks", response_model=StockListResult)
def post_stocks_by_tag(payload: StocksByTagRequest) -> StockListResult:
    return store.get_stocks_by_tag(payload.selected_tag, payload.params)


@app.post("/api/tags/statistics", response_model=TagStatistics)
def post_statistics(payload: StatisticsRequest) -> TagStatistics:
    return store.calculate_statistics(
        payload.tags,
        filtered_categories_count=payload.filtered_categories_count,
        total_tags_count=payload.total_tags_count,
        selected_category_tags_count=payload.selected_category_tags_count,
    )


@app.post("/api/tags/parse")
def post_parse_tags(payload: ParseTagsRequest) -> ParsedTagMap:
    return store.parse_tags(payload.tags)


@app.get("/api/tags/validate", response_model=ValidateTagResponse)
def get_validate_tag(
    tag_name: str = Query(),
    tag_detail: str | None = Query(default=None),
) -> ValidateTagResponse:
    status = store.validate_tag(tag_name, tag_detail)
    return ValidateTagResponse(tag_name=tag_name, tag_detail=tag_detail, status=status)


@app.get("/api/tags/details", response_model=SelectedTag)
def get_tag_details(
    category_name: str = Query(min_length=1),
    tag_name: str = Query(),
    tag_detail: str | None = Query(default=None),
) -> SelectedTag:
    return store.get_tag_details(category_name, tag_name, tag_detail)


@app.post("/api/tags/search", response_model=CombinedSearchResult)
def post_search_and_filter(params: SearchParams) -> CombinedSearchResult:
    return store.search_and_filter(params)

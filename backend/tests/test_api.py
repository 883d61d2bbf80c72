from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
TEST_STATE_ROOT = ROOT / ".test-state"
os.environ.setdefault("TAGBOARD_CONFIG_PATH", str(TEST_STATE_ROOT / "config.json"))

from tagboard.main import app


client = TestClient(app)

STOCKS = [
    {"stock_code": "600000", "stock_name": "浦发银行", "exchange": "SSE", "custom_tags": "行业:银行; 概念:数字货币"},
    {"stock_code": "600036", "stock_name": "招商银行", "exchange": "SSE", "custom_tags": "行业:银行; 概念:AI{大模型}"},
    {"stock_code": "300059", "stock_name": "东方财富", "exchange": "SZSE", "custom_tags": "行业:互联网; 概念:券商{互联网}"},
    {"stock_code": "601318", "stock_name": "中国平安", "exchange": "SSE", "custom_tags": "行业:保险; 行业:坏:标签"},
    {"stock_code": "000001", "stock_name": "平安银行", "exchange": "SZSE", "custom_tags": ""},
]


@pytest.fixture(autouse=True)
def load_stock_data() -> None:
    resp = client.put("/api/stocks", json={"stock_data": STOCKS})
    assert resp.status_code == 200
    assert resp.json() == {"success": True, "total_stocks": len(STOCKS)}


def test_health() -> None:
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_data_statistics() -> None:
    resp = client.get("/api/stocks/statistics")
    assert resp.status_code == 200
    assert resp.json() == {"total_stocks": 5, "stocks_with_tags": 4, "total_categories": 2}


def test_categories_with_and_without_search() -> None:
    resp = client.get("/api/tags/categories")
    assert resp.status_code == 200
    body = resp.json()
    assert body["categories"] == ["概念", "行业"]
    assert body["statistics"]["total_tags"] == 7
    assert body["statistics"]["total_categories"] == 2
    assert body["statistics"]["valid_tags_count"] == 0

    resp = client.get("/api/tags/categories", params={"search_query": "互联网"})
    body = resp.json()
    assert body["categories"] == ["概念", "行业"]
    assert body["statistics"]["total_tags"] == 2

    resp = client.get("/api/tags/categories", params={"search_query": ""})
    assert resp.json()["categories"] == ["概念", "行业"]


def test_tag_list_pages_and_statistics() -> None:
    resp = client.post(
        "/api/tags/list",
        json={"category_name": "行业", "tags_page": 1, "tags_per_page": 2, "stocks_page": 1, "stocks_per_page": 10},
    )
    assert resp.status_code == 200
    body = resp.json()
    assert [(tag["name"], tag["count"]) for tag in body["tags"]] == [("坏:标签", 1), ("银行", 2)]
    assert body["total_tags"] == 4
    assert body["total_pages"] == 2
    assert body["current_page"] == 1
    assert body["error_tags_count"] == 1
    assert body["valid_tags_count"] == 3
    assert body["warning_tags_count"] == 0


def test_tag_list_without_category() -> None:
    resp = client.post("/api/tags/list", json={"tags_page": 2})
    assert resp.status_code == 200
    body = resp.json()
    assert body["tags"] == []
    assert body["total_pages"] == 0
    assert body["current_page"] == 2


def test_tag_list_rejects_zero_page() -> None:
    resp = client.post("/api/tags/list", json={"category_name": "行业", "tags_page": 0})
    assert resp.status_code == 422
    assert resp.json()["code"] == "VALIDATION_ERROR"


def test_tag_details_and_stock_list() -> None:
    resp = client.get("/api/tags/details", params={"category_name": "行业", "tag_name": "银行"})
    assert resp.status_code == 200
    selected = resp.json()
    assert selected["tag_detail"] is None
    assert [stock["stock_code"] for stock in selected["stocks"]] == ["600000", "600036"]

    resp = client.post(
        "/api/tags/stocks",
        json={"selected_tag": selected, "params": {"stocks_page": 2, "stocks_per_page": 1}},
    )
    assert resp.status_code == 200
    body = resp.json()
    assert [stock["stock_code"] for stock in body["stocks"]] == ["600036"]
    assert body["total_stocks"] == 2
    assert body["total_pages"] == 2
    assert body["current_page"] == 2


def test_tag_details_with_detail() -> None:
    resp = client.get(
        "/api/tags/details",
        params={"category_name": "概念", "tag_name": "AI", "tag_detail": "大模型"},
    )
    assert resp.status_code == 200
    assert [stock["stock_code"] for stock in resp.json()["stocks"]] == ["600036"]


def test_tag_details_not_found() -> None:
    resp = client.get("/api/tags/details", params={"category_name": "行业", "tag_name": "证券"})
    assert resp.status_code == 404
    body = resp.json()
    assert body["code"] == "TAG_NOT_FOUND"
    assert "证券" in body["message"]


def test_parse_tags() -> None:
    resp = client.post("/api/tags/parse", json={"tags": "A:x; B:y{z}"})
    assert resp.status_code == 200
    assert resp.json() == {
        "A": [{"name": "x", "detail": None}],
        "B": [{"name": "y", "detail": "z"}],
    }


def test_validate_tag() -> None:
    resp = client.get("/api/tags/validate", params={"tag_name": "银行", "tag_detail": "国有"})
    assert resp.status_code == 200
    assert resp.json()["status"] == "valid"

    resp = client.get("/api/tags/validate", params={"tag_name": "a:b"})
    assert resp.json()["status"] == "error"

    resp = client.get("/api/tags/validate", params={"tag_name": "ok", "tag_detail": "d" * 101})
    assert resp.json()["status"] == "error"


def test_combined_search() -> None:
    resp = client.post(
        "/api/tags/search",
        json={"search_query": "互联网", "category_name": "概念", "tags_page": 1, "tags_per_page": 10},
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["categories"]["categories"] == ["概念", "行业"]
    assert [(tag["name"], tag["detail"]) for tag in body["tags"]["tags"]] == [("券商", "互联网")]
    assert body["tags"]["total_tags"] == 1


def test_calculate_statistics() -> None:
    payload = {
        "tags": [
            {"name": "银行", "detail": None, "count": 2, "stocks": []},
            {"name": "坏:标签", "detail": None, "count": 1, "stocks": []},
        ],
        "filtered_categories_count": 2,
        "total_tags_count": 7,
        "selected_category_tags_count": 4,
    }
    resp = client.post("/api/tags/statistics", json=payload)
    assert resp.status_code == 200
    assert resp.json() == {
        "total_tags": 7,
        "total_categories": 2,
        "selected_category_tags_count": 4,
        "current_page_tags_count": 2,
        "error_tags_count": 1,
        "warning_tags_count": 0,
        "valid_tags_count": 1,
    }


def test_large_page_size_and_long_query_are_accepted() -> None:
    resp = client.post("/api/tags/list", json={"category_name": "行业", "tags_per_page": 5000})
    assert resp.status_code == 200
    assert resp.json()["total_pages"] == 1

    resp = client.get("/api/tags/categories", params={"search_query": "银" * 300})
    assert resp.status_code == 200
    assert resp.json()["categories"] == []

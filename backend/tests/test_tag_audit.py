from __future__ import annotations

import json
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from scripts.tag_audit import build_audit_frame, load_stock_records
from tagboard.core.tag_aggregator import TagAggregator
from tagboard.core.tag_validator import ValidationCache


def test_load_csv_with_chinese_headers(tmp_path: Path) -> None:
    csv_file = tmp_path / "stocks.csv"
    csv_file.write_text(
        "\n".join(
            [
                "股票代码,股票名称,自定义标签",
                "600000,浦发银行,行业:银行; 概念:数字货币",
                "600036,招商银行,行业:银行{零售}",
                ",无代码,行业:银行",
                "000001,平安银行,",
            ]
        ),
        encoding="utf-8",
    )
    stocks = load_stock_records(csv_file)
    assert [stock.stock_code for stock in stocks] == ["600000", "600036", "000001"]
    assert stocks[0].stock_name == "浦发银行"
    assert stocks[1].custom_tags == "行业:银行{零售}"
    assert stocks[2].custom_tags == ""


def test_load_json_payload(tmp_path: Path) -> None:
    json_file = tmp_path / "stocks.json"
    json_file.write_text(
        json.dumps(
            {
                "stock_data": [
                    {"stock_code": "600000", "stock_name": "浦发银行", "custom_tags": "行业:银行"},
                    {"stock_code": "300059", "custom_tags": "行业:互联网"},
                ]
            },
            ensure_ascii=False,
        ),
        encoding="utf-8",
    )
    stocks = load_stock_records(json_file)
    assert [stock.stock_code for stock in stocks] == ["600000", "300059"]
    assert stocks[1].stock_name == ""


def test_build_audit_frame(tmp_path: Path) -> None:
    csv_file = tmp_path / "stocks.csv"
    csv_file.write_text(
        "\n".join(
            [
                "stock_code,custom_tags",
                "600000,行业:银行; 概念:坏{a:b}",
                "601398,行业:银行",
                "601318,行业:保险",
            ]
        ),
        encoding="utf-8",
    )
    stocks = load_stock_records(csv_file)
    aggregator = TagAggregator(max_workers=1, validation_cache=ValidationCache())

    frame = build_audit_frame(stocks, aggregator)
    assert list(frame["category"]) == ["概念", "行业", "行业"]
    assert list(frame["tag_name"]) == ["坏", "银行", "保险"]
    assert list(frame["status"]) == ["error", "valid", "valid"]
    assert frame.iloc[1]["stock_codes"] == "600000,601398"
    assert int(frame.iloc[1]["count"]) == 2

    errors = build_audit_frame(stocks, aggregator, errors_only=True)
    assert len(errors) == 1
    assert errors.iloc[0]["tag_detail"] == "a:b"

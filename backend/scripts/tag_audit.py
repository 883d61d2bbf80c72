from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

import pandas as pd

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from tagboard.core.tag_aggregator import TagAggregator, create_tag_aggregator
from tagboard.models import StockCompanyInfo, ValidationStatus

AUDIT_COLUMNS = ["category", "tag_name", "tag_detail", "count", "status", "stock_codes"]


def _resolve_columns(columns: list[str]) -> dict[str, str | None]:
    lookup = {str(col).strip(): col for col in columns}

    def pick(options: list[str], required: bool = True) -> str | None:
        for option in options:
            if option in lookup:
                return lookup[option]
        if required:
            raise KeyError(f"missing column: {options}; available={columns}")
        return None

    return {
        "stock_code": pick(["stock_code", "股票代码", "代码", "symbol"]),
        "stock_name": pick(["stock_name", "股票名称", "名称", "name"], required=False),
        "exchange": pick(["exchange", "交易所"], required=False),
        "custom_tags": pick(["custom_tags", "自定义标签", "标签", "tags"]),
    }


def _read_frame(path: Path) -> pd.DataFrame:
    if path.suffix.lower() == ".json":
        raw = json.loads(path.read_text(encoding="utf-8"))
        if isinstance(raw, dict):
            raw = raw.get("stock_data", [])
        if not isinstance(raw, list):
            raise ValueError(f"unsupported JSON payload in {path}")
        return pd.DataFrame(raw)
    return pd.read_csv(path, dtype=str, keep_default_na=False, encoding="utf-8-sig")


def load_stock_records(path: Path) -> list[StockCompanyInfo]:
    """Load an exported stock table (CSV or JSON) into StockCompanyInfo records."""
    frame = _read_frame(path)
    if frame.empty:
        return []
    mapping = _resolve_columns(list(frame.columns))
    frame = frame.fillna("")

    records: list[StockCompanyInfo] = []
    for row in frame.to_dict(orient="records"):
        payload = {field: str(row[column]).strip() for field, column in mapping.items() if column is not None}
        # custom_tags keeps its inner whitespace; parser trims per segment
        payload["custom_tags"] = str(row[mapping["custom_tags"]])
        if not payload["stock_code"]:
            continue
        records.append(StockCompanyInfo(**payload))
    return records


def build_audit_frame(
    stocks: list[StockCompanyInfo],
    aggregator: TagAggregator,
    errors_only: bool = False,
) -> pd.DataFrame:
    rows: list[dict[str, object]] = []
    merged = aggregator.aggregate_all_categories(stocks)
    for category in sorted(merged):
        for tag in aggregator.sort_tags(list(merged[category].values())):
            status = aggregator.status_of(tag)
            if errors_only and status is not ValidationStatus.ERROR:
                continue
            rows.append(
                {
                    "category": category,
                    "tag_name": tag.name,
                    "tag_detail": tag.detail or "",
                    "count": tag.count,
                    "status": status.value,
                    "stock_codes": ",".join(stock.stock_code for stock in tag.stocks),
                }
            )
    return pd.DataFrame(rows, columns=AUDIT_COLUMNS)


def main() -> int:
    parser = argparse.ArgumentParser(description="Audit custom stock tags and report malformed entries.")
    parser.add_argument("input", help="Stock export file (.csv or .json).")
    parser.add_argument("--out", default="", help="Write the audit table to this CSV file instead of stdout.")
    parser.add_argument("--errors-only", action="store_true", help="Only report tags that fail validation.")
    parser.add_argument("--workers", type=int, default=0, help="Worker threads for the tag scan (0 = auto).")
    args = parser.parse_args()

    input_path = Path(args.input).expanduser().resolve()
    if not input_path.exists():
        print(f"input file not found: {input_path}", file=sys.stderr)
        return 1

    try:
        stocks = load_stock_records(input_path)
    except (KeyError, ValueError) as exc:
        print(f"failed to read {input_path}: {exc}", file=sys.stderr)
        return 1

    aggregator = create_tag_aggregator(max_workers=args.workers or None)
    frame = build_audit_frame(stocks, aggregator, errors_only=args.errors_only)
    error_count = int((frame["status"] == ValidationStatus.ERROR.value).sum()) if not frame.empty else 0

    print(f"[audit] stocks={len(stocks)} tags={len(frame)} errors={error_count}")
    if args.out:
        out_path = Path(args.out).expanduser().resolve()
        out_path.parent.mkdir(parents=True, exist_ok=True)
        frame.to_csv(out_path, index=False, encoding="utf-8-sig")
        print(f"[audit] written to {out_path}")
    else:
        print(frame.to_string(index=False))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

#!/usr/bin/env python
from __future__ import annotations

import argparse
import sys
from dataclasses import replace
from pathlib import Path

import polars as pl

from yfsys.client import YFinanceClient
from yfsys.config import ClientConfig
from yfsys.errors import YFinError
from yfsys.log import LogLevel, configure_logging
from yfsys.quote import get_quotes, quotes_to_frame

DISPLAY_COLUMNS = [
    "symbol",
    "quote_type",
    "currency",
    "regular_market_price",
    "regular_market_change_percent",
    "market_state",
    "short_name",
]


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Fetch quotes (/v7/finance/quote)")
    parser.add_argument("symbols", nargs="+", help="Ticker symbols, e.g. AAPL ^DJI BTC-USD")
    parser.add_argument("--save", help="Path to save CSV/Parquet (by extension)", default="")
    parser.add_argument("--limit", type=int, default=20, help="Rows to display")
    parser.add_argument("--all-columns", action="store_true", help="Display every quote field")
    parser.add_argument(
        "--log-level",
        default="none",
        choices=[level.name.lower() for level in LogLevel],
        help="Library log verbosity",
    )
    parser.add_argument("--dump-dir", default="", help="Write raw API responses to this directory")
    args = parser.parse_args(argv)

    configure_logging(args.log_level)

    config = ClientConfig.from_env()
    if args.dump_dir:
        config = replace(config, dump_dir=Path(args.dump_dir))

    with YFinanceClient(config=config) as client:
        try:
            quotes = get_quotes(args.symbols, client=client)
        except YFinError as e:
            print(e, file=sys.stderr)
            return 1

    df = quotes_to_frame(quotes)

    if args.save:
        out = Path(args.save)
        out.parent.mkdir(parents=True, exist_ok=True)
        if out.suffix.lower() == ".parquet":
            df.write_parquet(out)
        else:
            df.write_csv(out)
        print(f"Saved {df.height} rows to {out}")

    if not args.all_columns:
        df = df.select(DISPLAY_COLUMNS)
    with pl.Config(tbl_rows=args.limit or -1, tbl_cols=-1):
        print(df)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

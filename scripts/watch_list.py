#!/usr/bin/env python3
"""Watch a Firestore collection or Realtime Database node as a live list.

Loads the first page, optionally more pages, then prints every live
change until interrupted.

Usage
-----
Set environment variables and run::

    export FIREBASE_SERVICE_ACCOUNT="service-account.json"
    export FIREBASE_DATABASE_URL="https://<db>.firebaseio.com"   # RTDB only
    python scripts/watch_list.py firestore posts --order-by createdAt
    python scripts/watch_list.py rtdb /messages --pages 2

Options::

    --order-by FIELD     Firestore ordering field (descending)
    --pages N            Call load_more() N times after the first page
    --first-page N       First page size (default: FBLIST_FIRST_PAGE_SIZE or 10)
    --page-size N        Page size (default: FBLIST_PAGE_SIZE or 30)
    --no-listen          Exit after loading instead of watching
    --json               Print items as JSON
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

# Allow running from the repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from pyfblist import (  # noqa: E402
    FBListError,
    FBListViewLogic,
    FBModel,
    FirebaseConnection,
    FirebaseSettings,
    ListConfig,
    ListHandlers,
    order_by_recent,
)


class Item(FBModel):
    """Any document; fields beyond ``id``/``createdAt`` stay in ``raw``."""


def _decode_snapshot(snapshot: Any) -> Item:
    return Item.model_validate({"id": snapshot.id, **(snapshot.to_dict() or {})})


def _decode_child(key: str, payload: dict[str, Any]) -> Item:
    return Item.model_validate({**payload, "id": key})


def _format(item: Item | None, json_mode: bool) -> str:
    if item is None:
        return "-"
    if json_mode:
        return json.dumps({"id": item.id, **item.raw}, default=str, ensure_ascii=False)
    created = item.created_at.isoformat() if item.created_at else "?"
    return f"{item.id}  created={created}  fields={sorted(item.raw)}"


def _print_items(logic: FBListViewLogic[Item], json_mode: bool) -> None:
    print(f"── {len(logic.items)} items ({logic.state.status}) ──")
    for item in logic.items:
        print("  " + _format(item, json_mode))


async def main() -> None:
    parser = argparse.ArgumentParser(description="Watch a Firebase query as a paginated live list")
    parser.add_argument("backend", choices=["firestore", "rtdb"], help="Firebase product")
    parser.add_argument("path", help="Firestore collection path or Realtime Database path")
    parser.add_argument("--order-by", help="Firestore ordering field (descending)")
    parser.add_argument("--pages", type=int, default=0, help="Extra pages to load after the first")
    parser.add_argument("--first-page", type=int, help="First page size")
    parser.add_argument("--page-size", type=int, help="Page size for load_more()")
    parser.add_argument("--no-listen", action="store_true", help="Exit after loading")
    parser.add_argument("--json", action="store_true", dest="json_mode", help="Print items as JSON")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.WARNING)

    overrides: dict[str, Any] = {"listen": not args.no_listen, "comparator": order_by_recent}
    if args.first_page:
        overrides["first_page_size"] = args.first_page
    if args.page_size:
        overrides["page_size"] = args.page_size
    config = ListConfig.from_env(**overrides)

    handlers = ListHandlers(
        on_fetch_error=lambda exc: print(f"fetch failed: {exc}", file=sys.stderr),
        on_decode_error=lambda exc: print(f"skipped record: {exc}", file=sys.stderr),
        on_live_update=lambda kind, item: print(f"[{kind}] {_format(item, args.json_mode)}"),
    )

    with FirebaseConnection(FirebaseSettings.from_env()) as conn:
        logic: FBListViewLogic[Item]
        if args.backend == "firestore":
            query: Any = conn.collection(args.path)
            if args.order_by:
                query = query.order_by(args.order_by, direction="DESCENDING")
            logic = FBListViewLogic.cloud_firestore(
                query=query, decode=_decode_snapshot, config=config, handlers=handlers
            )
        else:
            logic = FBListViewLogic.realtime_database(
                reference=conn.reference(args.path), decode=_decode_child, config=config, handlers=handlers
            )

        async with logic:
            for _ in range(args.pages):
                if not await logic.load_more():
                    break
            _print_items(logic, args.json_mode)
            if args.no_listen:
                return
            print("Watching for changes (Ctrl+C to stop)…", file=sys.stderr)
            await asyncio.Event().wait()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
    except FBListError as exc:
        print(f"error: {exc}", file=sys.stderr)
        sys.exit(1)

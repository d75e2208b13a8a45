"""CLI entrypoint for gazetteer_search."""

from __future__ import annotations

import argparse
import asyncio
import json
from typing import Optional

from gazetteer_search.countries import country_display_name
from gazetteer_search.engine import SearchEngine
from gazetteer_search.logging_config import setup_logging
from gazetteer_search.models import SearchResult


def main() -> None:
    parser = argparse.ArgumentParser(prog="gazetteer-search")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    search_parser = sub.add_parser("search")
    search_parser.add_argument("query")
    search_parser.add_argument("--lat", type=float)
    search_parser.add_argument("--lng", type=float)
    search_parser.add_argument("--zoom", type=float, default=10.0)
    search_parser.add_argument("--limit", type=int)
    search_parser.add_argument("--locale")
    search_parser.add_argument("--json", action="store_true", dest="as_json")

    try_parser = sub.add_parser("try")
    try_parser.add_argument("--locale")

    args = parser.parse_args()
    setup_logging(verbose=args.verbose)

    if args.command == "search":
        viewport = (args.lat, args.lng, args.zoom) if args.lat is not None and args.lng is not None else None
        asyncio.run(_search_once(args.query, viewport, args.limit, args.locale, args.as_json))
    elif args.command == "try":
        asyncio.run(_try_mode(args.locale))


async def _search_once(
    query: str,
    viewport: Optional[tuple[float, float, float]],
    limit: Optional[int],
    locale: Optional[str],
    as_json: bool,
) -> None:
    async with SearchEngine(country_name=country_display_name) as engine:
        if viewport is not None:
            engine.notify_viewport(*viewport)
            await engine.trigger.wait_idle()

        results = engine.search(query, limit=limit, locale=locale)
        if as_json:
            print(json.dumps([r.model_dump(mode="json") for r in results], ensure_ascii=False, indent=2))
        else:
            _print_results(query, results)


async def _try_mode(locale: Optional[str]) -> None:
    async with SearchEngine(country_name=country_display_name) as engine:
        print("Gazetteer Search Interactive")
        print(f"{len(engine.index)} places resident, {len(engine.loader.bounding_boxes)} countries loadable.")
        print("Type a place name, '@lat,lng,zoom' to move the viewport, or 'quit' to exit.")

        while True:
            line = (await asyncio.to_thread(input, "search> ")).strip()
            if not line:
                continue
            if line.lower() in {"quit", "exit", "q"}:
                break
            if line.startswith("@"):
                _move_viewport(engine, line[1:])
                await engine.trigger.wait_idle()
                print(f"Resident: {len(engine.index)} places, loaded: "
                      f"{', '.join(sorted(engine.loaded_countries)) or '(none)'}")
                continue
            _print_results(line, engine.search(line, locale=locale))


def _move_viewport(engine: SearchEngine, position: str) -> None:
    try:
        lat, lng, zoom = (float(part) for part in position.split(","))
    except ValueError:
        print("Expected @lat,lng,zoom")
        return
    codes = engine.notify_viewport(lat, lng, zoom)
    print(f"Loading: {', '.join(codes)}" if codes else "Nothing new to load here.")


def _print_results(query: str, results: list[SearchResult]) -> None:
    print("\n" + "-" * 72)
    print(f"Query: {query}")
    print(f"Results: {len(results)}")

    if not results:
        print("(none)")
        return

    for i, r in enumerate(results, 1):
        print(f"\n{i}. {r.name}")
        print(f"   Type:    {r.type.value}")
        print(f"   Country: {r.country}")
        print(f"   Coords:  {r.lat:.5f}, {r.lng:.5f} (zoom {r.recommended_zoom})")
        print(f"   Score:   {r.score:.2f}")


if __name__ == "__main__":
    main()

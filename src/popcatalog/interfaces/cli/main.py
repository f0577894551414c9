import argparse
import json
import logging
from pathlib import Path
from typing import List, Optional

import colorlog

from popcatalog import __version__ as _PACKAGE_VERSION
from popcatalog.client import PopCatalog
from popcatalog.core.columns import COUNTRY
from popcatalog.core.config import CatalogConfig, load_config
from popcatalog.core.enums import SearchContext
from popcatalog.core.errors import PopCatalogError
from popcatalog.core.query.ids import MetricId
from popcatalog.core.query.materialize import materialize_result
from popcatalog.core.query.search import SearchRequest, SearchText
from .display import format_plan, format_search_results

SEARCH_CONTEXT_CHOICES = [c.value for c in SearchContext]


def setup_logging(
    verbose: bool = False, warnings_only: bool = False, errors_only: bool = False
) -> None:
    logger = logging.getLogger()
    for h in list(logger.handlers):
        logger.removeHandler(h)
    log_format = (
        "%(asctime)s:%(levelname)s:%(name)s in %(filename)s:%(funcName)s:%(lineno)d: %(message)s"
    )
    log_colors = {
        "DEBUG": "cyan",
        "INFO": "green",
        "WARNING": "yellow",
        "ERROR": "red",
        "CRITICAL": "bold_red",
    }
    stream_handler = colorlog.StreamHandler()
    formatter = colorlog.ColoredFormatter(f"%(log_color)s{log_format}", log_colors=log_colors)
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)
    if errors_only:
        logger.setLevel(logging.ERROR)
    elif warnings_only:
        logger.setLevel(logging.WARNING)
    else:
        logger.setLevel(logging.DEBUG if verbose else logging.INFO)


def _split_csv(value: Optional[str]) -> Optional[List[str]]:
    if not value:
        return None
    parts = [p.strip() for p in value.split(",")]
    return [p for p in parts if p] or None


def _resolve_config(args: argparse.Namespace) -> CatalogConfig:
    config_path = getattr(args, "config", None)
    config = load_config(Path(config_path)) if config_path else CatalogConfig()
    base_path = getattr(args, "base_path", None)
    if base_path:
        config = config.with_base_path(str(base_path).rstrip("/"))
    return config


def _load(args: argparse.Namespace) -> PopCatalog:
    config = _resolve_config(args)
    return PopCatalog.load(config, countries=_split_csv(getattr(args, "countries", None)))


def _print_json(payload: object) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False, default=str))


def cmd_countries(args: argparse.Namespace) -> int:
    try:
        pop = _load(args)
    except (PopCatalogError, FileNotFoundError, ValueError) as e:
        logging.error("%s", e)
        return 2
    counts = {}
    for row in pop.catalog.combined_frame().group_by(COUNTRY).len().iter_rows():
        counts[row[0]] = row[1]
    for code in pop.catalog.countries():
        print(f"{code}\t{counts.get(code, 0)} metrics")
    return 0


def _build_search_request(args: argparse.Namespace) -> SearchRequest:
    contexts = tuple(SearchContext(c) for c in (args.context or SEARCH_CONTEXT_CHOICES))
    return SearchRequest(
        text=tuple(SearchText(t, contexts) for t in (args.text or [])),
        year=args.year,
        geometry_level=args.geometry_level,
        source_data_release=args.source_data_release,
        data_publisher=args.data_publisher,
        country=args.country,
        source_metric_id=args.source_metric_id,
    )


def cmd_search(args: argparse.Namespace) -> int:
    """Search the catalog; exit 1 when nothing matched."""
    try:
        request = _build_search_request(args)
        pop = _load(args)
        results = pop.search(request)
    except (PopCatalogError, FileNotFoundError, ValueError) as e:
        logging.error("Search failed: %s", e)
        return 2

    if getattr(args, "json", False):
        _print_json(materialize_result(results.frame, limit=args.max_results))
    else:
        text = format_search_results(results, args.max_results)
        if text:
            print(text)
    logging.info("Found %d matching metrics", len(results))
    return 0 if len(results) else 1


def cmd_expand(args: argparse.Namespace) -> int:
    try:
        metric_id = MetricId.parse(args.metric_id)
        pop = _load(args)
        expanded = pop.expand(metric_id)
    except (PopCatalogError, FileNotFoundError, ValueError) as e:
        logging.error("Expansion failed: %s", e)
        return 2
    for m in expanded:
        print(m)
    if not expanded:
        logging.warning("No metrics match %s", metric_id)
        return 1
    return 0


def cmd_plan(args: argparse.Namespace) -> int:
    """Derive a selection plan for the requested metrics."""
    try:
        requested = [MetricId.parse(m) for m in args.metrics]
        pop = _load(args)
        plan = pop.plan(requested, geometry=args.geometry, years=_split_csv(args.years))
        requests = plan.metric_requests(pop.catalog.combined())
    except (PopCatalogError, FileNotFoundError, ValueError) as e:
        logging.error("Planning failed: %s", e)
        return 2

    if getattr(args, "json", False):
        payload = plan.to_dict()
        payload["metric_requests"] = [
            {"metric_id": r.metric_id, "storage_path": r.storage_path, "storage_column": r.storage_column}
            for r in requests
        ]
        _print_json(payload)
    else:
        print(format_plan(plan, requests))
    return 0


def _add_catalog_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--config", default=None, help="Path to a YAML catalog config")
    p.add_argument(
        "--base-path",
        default=None,
        help="Local directory or URL holding countries.txt (overrides config)",
    )
    p.add_argument(
        "--countries",
        default=None,
        help="Comma-separated country codes to load instead of the manifest",
    )


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="popcatalog",
        description=f"Population statistics metadata catalog (v{_PACKAGE_VERSION})",
    )
    p.add_argument("--verbose", action="store_true", help="Enable verbose logging")
    p.add_argument(
        "--warnings-only",
        action="store_true",
        help="Show only warnings and errors (overrides --verbose)",
    )
    p.add_argument(
        "--errors-only",
        action="store_true",
        help="Show only errors (overrides --warnings-only and --verbose)",
    )

    sub = p.add_subparsers(dest="command", required=True)

    p_countries = sub.add_parser("countries", help="List loaded countries")
    _add_catalog_args(p_countries)
    p_countries.set_defaults(func=cmd_countries)

    p_search = sub.add_parser("search", help="Search metric metadata")
    _add_catalog_args(p_search)
    p_search.add_argument(
        "--text", action="append", help="Text to match exactly (repeatable; any may match)"
    )
    p_search.add_argument(
        "--context",
        action="append",
        choices=SEARCH_CONTEXT_CHOICES,
        help="Field(s) --text is matched against (repeatable; defaults to all)",
    )
    p_search.add_argument("--year", action="append", help="Reference year (repeatable)")
    p_search.add_argument("--geometry-level", action="append", help="Geometry level (repeatable)")
    p_search.add_argument(
        "--source-data-release", action="append", help="Source data release name (repeatable)"
    )
    p_search.add_argument("--data-publisher", action="append", help="Data publisher name (repeatable)")
    p_search.add_argument("--country", action="append", help="Country code (repeatable)")
    p_search.add_argument(
        "--source-metric-id", action="append", help="Source metric id, e.g. census table (repeatable)"
    )
    p_search.add_argument("--max-results", type=int, default=None, help="Limit displayed results")
    p_search.add_argument("--json", action="store_true", help="Print results as JSON")
    p_search.set_defaults(func=cmd_search)

    p_expand = sub.add_parser("expand", help="Expand a metric id pattern")
    _add_catalog_args(p_expand)
    p_expand.add_argument(
        "metric_id", help="kind:pattern where kind is hxl, id or name (e.g. 'hxl:#population.*')"
    )
    p_expand.set_defaults(func=cmd_expand)

    p_plan = sub.add_parser("plan", help="Resolve metrics into a selection plan")
    _add_catalog_args(p_plan)
    p_plan.add_argument("metrics", nargs="+", help="Metric ids as kind:value")
    p_plan.add_argument("--geometry", default=None, help="Geometry level (derived if omitted)")
    p_plan.add_argument(
        "--years", default=None, help="Comma-separated years (derived if omitted)"
    )
    p_plan.add_argument("--json", action="store_true", help="Print the plan as JSON")
    p_plan.set_defaults(func=cmd_plan)

    return p


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(
        verbose=bool(args.verbose),
        warnings_only=bool(getattr(args, "warnings_only", False)),
        errors_only=bool(getattr(args, "errors_only", False)),
    )
    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main())

"""
Command-line runner for the matchmaking engine.

Usage:
    python -m matchmaking.run ingest companies.csv
    python -m matchmaking.run ingest-attendees attendees.csv --map Email=email --map Name=full_name
    python -m matchmaking.run compute-matches --profile default-general
    python -m matchmaking.run find-matches --actor acme-games --limit 5
    python -m matchmaking.run taxonomy --dimension platform --visualization network
    python -m matchmaking.run export-profile default-investor --output investor.json
    python -m matchmaking.run import-profile investor.json

Every command operates on the JSON document store at global.store_path
and prints its result as JSON.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from .configs import apply_overrides, get_config_value, load_config, validate_config
from .ingestion import AttendeeIngestService, IngestConfig, UploadProcessor, load_upload_file
from .matching import MatchConfig, MatchEngine
from .schema import MatchRequest, TaxonomyFilters, TaxonomyRequest, UploadRequest
from .schema.ingest import AttendeeUploadConfig
from .signals import AttendeeSignalConfig, AttendeeSignalEngine, SignalConfig, SignalEngine
from .storage import InMemoryDocumentStore
from .taxonomy import TaxonomyAnalyzer, TaxonomyConfig
from .weights import WeightProfileManager

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def setup_logging(log_level: str) -> None:
    """Configure logging level from config."""
    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.getLogger().setLevel(level)


def parse_mappings(pairs: Optional[List[str]]) -> Dict[str, str]:
    """'Header=field' pairs to a mapping."""
    mappings = {}
    for pair in pairs or []:
        header, sep, target = pair.partition("=")
        if not sep or not header or not target:
            raise ValueError(f"Mapping must look like Header=field, got {pair!r}")
        mappings[header] = target
    return mappings


def build_match_engine(store: InMemoryDocumentStore, config: Dict[str, Any]) -> MatchEngine:
    return MatchEngine(
        store,
        signal_engine=SignalEngine(SignalConfig.from_config(config)),
        attendee_engine=AttendeeSignalEngine(AttendeeSignalConfig.from_config(config)),
        config=MatchConfig.from_config(config),
    )


def run_command(args: argparse.Namespace, store: InMemoryDocumentStore, config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Execute one subcommand against the store.

    Returns:
        JSON-serializable result
    """
    if args.command == "ingest":
        processor = UploadProcessor(store, IngestConfig.from_config(config))
        request = UploadRequest(
            filename=Path(args.file).name,
            rows=load_upload_file(args.file),
            field_mappings=parse_mappings(args.map),
            duplicate_handling=args.duplicates,
            validate_only=args.validate_only,
        )
        response = processor.process_upload(request, uploaded_by=args.user)
        return response.ingest_log.to_dict()

    if args.command == "ingest-attendees":
        service = AttendeeIngestService(store)
        result = service.process_upload(
            load_upload_file(args.file),
            Path(args.file).name,
            AttendeeUploadConfig(
                mapping=parse_mappings(args.map),
                dry_run=args.dry_run,
                skip_duplicates=args.skip_duplicates,
                merge_strategy=args.merge_strategy,
            ),
        )
        return vars(result)

    if args.command == "scan":
        scan = AttendeeIngestService(store).process_scan(args.from_id, args.to_id)
        return scan.to_dict()

    if args.command == "compute-matches":
        return build_match_engine(store, config).compute_all_matches(args.profile).to_dict()

    if args.command == "find-matches":
        request = MatchRequest(
            actor_id=args.actor,
            profile_id=args.profile,
            limit=args.limit,
            threshold=args.threshold,
            include_metrics=not args.no_metrics,
        )
        return build_match_engine(store, config).find_matches(request).to_dict()

    if args.command == "taxonomy":
        analyzer = TaxonomyAnalyzer(store, TaxonomyConfig.from_config(config))
        request = TaxonomyRequest(
            dimension=args.dimension,
            visualization=args.visualization,
            filters=TaxonomyFilters(countries=args.country or [], kinds=args.kind or []),
        )
        return analyzer.generate_visualization(request).to_dict()

    if args.command == "export-profile":
        bundle = WeightProfileManager(store).export_profile(args.profile_id)
        if args.output:
            with open(args.output, "w") as f:
                json.dump(bundle, f, indent=2)
            logger.info(f"Exported profile {args.profile_id} to {args.output}")
        return bundle

    if args.command == "import-profile":
        with open(args.file, "r") as f:
            bundle = json.load(f)
        return WeightProfileManager(store).import_profile(bundle, created_by=args.user).to_dict()

    raise ValueError(f"Unknown command: {args.command}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Conference matchmaking engine")
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to configuration file (default: $MATCHMAKING_CONFIG or configs/config.yaml)"
    )
    parser.add_argument(
        "--set",
        action="append",
        dest="overrides",
        metavar="KEY=VALUE",
        help="Override a config value, e.g. matching.write_chunk_size=200"
    )
    parser.add_argument("--store", type=str, default=None, help="Document store path (overrides config)")
    parser.add_argument("--user", type=str, default=None, help="Caller identity recorded on writes")
    sub = parser.add_subparsers(dest="command", required=True)

    ingest = sub.add_parser("ingest", help="Upload companies from CSV/Excel")
    ingest.add_argument("file")
    ingest.add_argument("--map", action="append", help="Explicit mapping Header=field")
    ingest.add_argument("--duplicates", choices=["skip", "update", "create_new"], default="skip")
    ingest.add_argument("--validate-only", action="store_true")

    attendees = sub.add_parser("ingest-attendees", help="Upload attendees from CSV/Excel")
    attendees.add_argument("file")
    attendees.add_argument("--map", action="append", required=True, help="Mapping Header=field")
    attendees.add_argument("--dry-run", action="store_true")
    attendees.add_argument("--skip-duplicates", action="store_true")
    attendees.add_argument("--merge-strategy", choices=["replace", "merge", "skip"], default="merge")

    scan = sub.add_parser("scan", help="Record a badge scan")
    scan.add_argument("from_id")
    scan.add_argument("to_id")

    compute = sub.add_parser("compute-matches", help="Compute and persist all pairwise matches")
    compute.add_argument("--profile", default=None)

    find = sub.add_parser("find-matches", help="Ranked matches for an actor")
    find.add_argument("--actor", default=None)
    find.add_argument("--profile", default=None)
    find.add_argument("--limit", type=int, default=10)
    find.add_argument("--threshold", type=float, default=0.3)
    find.add_argument("--no-metrics", action="store_true")

    taxonomy = sub.add_parser("taxonomy", help="Taxonomy visualization data")
    taxonomy.add_argument("--dimension", required=True)
    taxonomy.add_argument(
        "--visualization",
        choices=["heatmap", "network", "distribution", "correlation"],
        default="distribution"
    )
    taxonomy.add_argument("--country", action="append")
    taxonomy.add_argument("--kind", action="append")

    export = sub.add_parser("export-profile", help="Export a weight profile")
    export.add_argument("profile_id")
    export.add_argument("--output", default=None)

    import_ = sub.add_parser("import-profile", help="Import a weight profile bundle")
    import_.add_argument("file")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    config = apply_overrides(load_config(args.config), args.overrides)
    for issue in validate_config(config):
        logger.warning(f"Config issue: {issue}")
    setup_logging(get_config_value(config, "global.log_level", "INFO"))

    store_path = args.store or get_config_value(config, "global.store_path", "data/store.json")
    store = InMemoryDocumentStore.load(
        store_path, max_batch_size=get_config_value(config, "store.max_batch_size", 500)
    )

    try:
        result = run_command(args, store, config)
    except Exception as e:
        logger.exception(f"Command {args.command} failed: {e}")
        return 1

    store.dump(store_path)
    print(json.dumps(result, indent=2, default=str))
    return 0


if __name__ == "__main__":
    sys.exit(main())

"""Command line entry point.

    python -m hybrid_retrieval.presentation.cli ingest [PATH]
    python -m hybrid_retrieval.presentation.cli search "QUERY" [--top-k N] [--no-rerank]
    python -m hybrid_retrieval.presentation.cli delete DOCUMENT_ID
    python -m hybrid_retrieval.presentation.cli stats
"""

import argparse
import json
import logging
import sys
from dataclasses import asdict

from hybrid_retrieval.config.settings import settings
from hybrid_retrieval.container import configure_container, container
from hybrid_retrieval.core.errors import RetrievalError
from hybrid_retrieval.core.services.ingest_service import IngestService
from hybrid_retrieval.core.services.search_service import SearchService

logger = logging.getLogger(__name__)


def cmd_ingest(args: argparse.Namespace) -> dict:
    """Ingest command - index a folder of documents."""
    ingest_service = container.resolve(IngestService)
    responses = ingest_service.ingest_directory(args.path)
    return {
        "documents": len(responses),
        "chunks": sum(r.chunk_count for r in responses),
        "items": [
            {
                "id": r.document_id,
                "chunksCreated": r.chunk_count,
                "replaced": r.replaced,
                "timings": asdict(r.timings),
            }
            for r in responses
        ],
    }


def cmd_search(args: argparse.Namespace) -> dict:
    """Search command - run one hybrid query."""
    search_service = container.resolve(SearchService)
    response = search_service.search(
        args.query,
        top_k=args.top_k,
        use_reranker=not args.no_rerank,
        timeout=settings.search_timeout,
    )
    return response.to_dict()


def cmd_delete(args: argparse.Namespace) -> dict:
    """Delete command - remove a document and its chunks."""
    ingest_service = container.resolve(IngestService)
    removed = ingest_service.delete(args.document_id)
    return {"id": args.document_id, "chunksDeleted": removed}


def cmd_stats(args: argparse.Namespace) -> dict:
    """Stats command - report index sizes."""
    stats = container.resolve(IngestService).stats()
    return asdict(stats)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="hybrid-retrieval")
    sub = parser.add_subparsers(dest="command", required=True)

    ingest = sub.add_parser("ingest", help="index documents from a folder")
    ingest.add_argument("path", nargs="?", default=None)
    ingest.set_defaults(handler=cmd_ingest)

    search = sub.add_parser("search", help="hybrid search")
    search.add_argument("query")
    search.add_argument("--top-k", type=int, default=settings.search_default_top_k)
    search.add_argument("--no-rerank", action="store_true")
    search.set_defaults(handler=cmd_search)

    delete = sub.add_parser("delete", help="delete a document")
    delete.add_argument("document_id")
    delete.set_defaults(handler=cmd_delete)

    stats = sub.add_parser("stats", help="index statistics")
    stats.set_defaults(handler=cmd_stats)

    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(level=settings.log_level, format="%(message)s")
    configure_container(settings)

    try:
        result = args.handler(args)
    except RetrievalError as e:
        logger.error(f"{args.command} failed: {e}")
        print(json.dumps({"error": e.to_dict()}, ensure_ascii=False))
        return 1
    finally:
        container.close()

    print(json.dumps(result, ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())

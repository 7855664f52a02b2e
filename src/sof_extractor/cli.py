from __future__ import annotations

import argparse
import asyncio
from datetime import datetime, timedelta
import json
from pathlib import Path
import sys

from sof_extractor.config import get_settings
from sof_extractor.pipeline import SOFPipeline, build_http_clients, status_at
from sof_extractor.serialization import serialize_result, serialize_status
from sof_extractor.services.ocr import Document


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sof-extract",
        description="Extract and reconcile Statement of Facts events from scanned documents",
    )
    parser.add_argument(
        "paths",
        nargs="+",
        help="Document files to process, in the order they should appear in the corpus",
    )
    parser.add_argument(
        "--at",
        type=datetime.fromisoformat,
        default=None,
        help="Also report the operation status at this ISO timestamp (e.g. 2017-01-12T14:30)",
    )
    return parser


def load_documents(paths: list[str]) -> list[Document]:
    documents: list[Document] = []
    for index, raw_path in enumerate(paths):
        path = Path(raw_path)
        if not path.is_file():
            raise FileNotFoundError(f"Document not found: {path}")
        documents.append(Document(index=index, name=path.name, content=path.read_bytes()))
    return documents


def main() -> None:
    parser = _build_parser()
    args = parser.parse_args()
    settings = get_settings()

    try:
        documents = load_documents(args.paths)
        pipeline = SOFPipeline.from_settings(build_http_clients(settings), settings)
        result = asyncio.run(pipeline.extract(documents))
    except Exception as exc:
        print(f"[sof-extract] failed: {exc}", file=sys.stderr, flush=True)
        raise SystemExit(1) from exc

    output = serialize_result(result)
    if args.at is not None:
        status = status_at(
            result.events,
            args.at,
            fallback=timedelta(minutes=settings.open_event_fallback_minutes),
        )
        output["status"] = serialize_status(status)

    print(json.dumps(output, indent=2), flush=True)


if __name__ == "__main__":
    main()

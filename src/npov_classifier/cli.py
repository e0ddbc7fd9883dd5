"""
Command-line entry point.

    npov-classifier revisions        article URL list -> revision list CSV
    npov-classifier extract-features revision list CSV -> feature CSV
    npov-classifier train            features + labels -> accuracy report, model
    npov-classifier compare-llm      labels (+ features) -> comparison CSV
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from .features.batch import extract_many
from .features.export import (
    ComparisonTableWriter,
    FeatureTableWriter,
    read_feature_table,
    read_label_table,
    read_revision_urls,
    write_revision_list,
)
from .features.extractor import create_extractor
from .features.models import RevisionListRow
from .llm.labeler import LLMLabeler, compare_labels, summarize
from .training.classifier import save_model, train_and_evaluate
from .wiki.diffs import DiffRetriever
from .wiki.history import RevisionHistoryFetcher
from .wiki.transport import ResponseCache, WikiTransport

logger = logging.getLogger("npov.cli")


# ---------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------

async def cmd_revisions(args: argparse.Namespace) -> int:
    article_urls = [
        line.strip()
        for line in Path(args.article_urls).read_text(encoding="utf-8").splitlines()
        if line.strip()
    ]
    history = RevisionHistoryFetcher(WikiTransport())

    rows: List[RevisionListRow] = []
    for article in article_urls:
        try:
            rows.extend(await history.list_article_revisions(article, limit=args.limit))
        except Exception:
            logger.exception("Failed to fetch revisions for %s", article)

    write_revision_list(rows, args.output)
    return 0


async def cmd_extract_features(args: argparse.Namespace) -> int:
    revision_urls = read_revision_urls(args.input)
    extractor = create_extractor(ResponseCache())
    writer = FeatureTableWriter(args.output)

    async def _persist(index, urls, records) -> None:
        writer.write(records)

    await extract_many(
        extractor,
        revision_urls,
        batch_size=args.batch_size,
        on_batch=_persist,
    )
    logger.info("Wrote %d feature rows to %s", writer.rows_written, args.output)
    return 0


def cmd_train(args: argparse.Namespace) -> int:
    features = read_feature_table(args.features)
    labels = read_label_table(args.labels)

    model, report = train_and_evaluate(
        features,
        labels,
        train_split=args.train_split,
        max_depth=args.max_depth,
    )
    print("=" * 20)
    print(f"Train accuracy: {report.train_accuracy}")
    print(f"Test accuracy: {report.test_accuracy}")

    save_model(model, args.output)
    return 0


async def cmd_compare_llm(args: argparse.Namespace) -> int:
    labels = read_label_table(args.labels)

    known_diffs: Dict[str, str] = {}
    if args.features and Path(args.features).exists():
        table = read_feature_table(args.features)
        for url, diff in zip(table["revisionUrl"], table["diffText"]):
            if isinstance(diff, str) and diff:
                known_diffs[url] = diff

    diffs = DiffRetriever(WikiTransport())

    async def _lookup(revision_url: str) -> str:
        if revision_url in known_diffs:
            return known_diffs[revision_url]
        return await diffs.fetch_diff_from_url(revision_url)

    writer = ComparisonTableWriter(args.output)

    async def _persist(index, records, rows) -> None:
        writer.write_rows([row.to_row() for row in rows])

    rows = await compare_labels(
        labels,
        LLMLabeler(),
        _lookup,
        batch_size=args.batch_size,
        on_batch=_persist,
    )
    if not labels:
        writer.write_rows([])
    logger.info("Comparison table has been written to %s", args.output)

    summary = summarize(rows)
    print(
        json.dumps(
            {
                "total": summary.total,
                "agreed": summary.agreed,
                "unparseable": summary.unparseable,
                "failed": summary.failed,
                "agreement_rate": summary.agreement_rate,
                "confusion": summary.confusion,
            },
            indent=2,
        )
    )
    return 0


# ---------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="npov-classifier",
        description="Predict the NPOV effect of Wikipedia edits from editing behaviour.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--log-level", default="INFO", help="Logging level.")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser(
        "revisions",
        help="Fetch revisions for Wikipedia articles",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    p.add_argument("-a", "--article-urls", default="data/article_urls.txt",
                   help="File with one Wikipedia article URL per line")
    p.add_argument("-o", "--output", default="data/revisions.csv")
    p.add_argument("--limit", type=int, default=500,
                   help="Maximum revisions listed per article")
    p.set_defaults(handler=cmd_revisions)

    p = sub.add_parser(
        "extract-features",
        help="Extract features from a set of revisions",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    p.add_argument("-i", "--input", default="data/revisions.csv")
    p.add_argument("-o", "--output", default="data/features.csv")
    p.add_argument("-b", "--batch-size", type=int, default=None,
                   help="Revisions extracted concurrently (default: settings.batch_size)")
    p.set_defaults(handler=cmd_extract_features)

    p = sub.add_parser(
        "train",
        help="Train a model using extracted features and labels",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    p.add_argument("-f", "--features", default="data/features.csv")
    p.add_argument("-l", "--labels", default="data/labels.csv")
    p.add_argument("-t", "--train-split", type=float, default=0.8)
    p.add_argument("--max-depth", type=int, default=None)
    p.add_argument("-o", "--output", default="data/model.joblib")
    p.set_defaults(handler=cmd_train)

    p = sub.add_parser(
        "compare-llm",
        help="Compare human labels with LLM labels",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    p.add_argument("-l", "--labels", default="data/labels.csv")
    p.add_argument("-f", "--features", default="data/features.csv",
                   help="Feature table used as a diff source before fetching")
    p.add_argument("-o", "--output", default="data/llm_comparison.csv")
    p.add_argument("-b", "--batch-size", type=int, default=None)
    p.set_defaults(handler=cmd_compare_llm)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    result = args.handler(args)
    if asyncio.iscoroutine(result):
        result = asyncio.run(result)
    return result


if __name__ == "__main__":
    raise SystemExit(main())

"""
Tabular artifacts.

CSV readers and writers for the revision list, feature table, label table
and label-vs-LLM comparison table. Every table is a header row plus one row
per entity. Missing and NaN values are written as empty strings.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Sequence, Union

import pandas as pd

from .models import FeatureRecord, Label, LabelRecord, RevisionListRow

logger = logging.getLogger("npov.export")

PathLike = Union[str, Path]

REVISION_LIST_COLUMNS = ["revisionUrl", "articleUrl", "diffUrl", "linkHtml"]


def _ensure_parent(path: PathLike) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


# ---------------------------------------------------------------------
# Revision list
# ---------------------------------------------------------------------

def write_revision_list(rows: Iterable[RevisionListRow], path: PathLike) -> int:
    """Write the revision list; returns the number of rows written."""
    records = [
        {
            "revisionUrl": row.revision_url,
            "articleUrl": row.article_url,
            "diffUrl": row.diff_url,
            "linkHtml": f"<a href='{row.diff_url}' target='_blank'>{row.diff_url}</a>",
        }
        for row in rows
    ]
    frame = pd.DataFrame(records, columns=REVISION_LIST_COLUMNS)
    frame.to_csv(_ensure_parent(path), index=False)
    logger.info("Revisions have been written to %s", path)
    return len(frame)


def read_revision_urls(path: PathLike) -> List[str]:
    """Return the non-empty ``revisionUrl`` values of a revision list."""
    frame = pd.read_csv(path, dtype=str, keep_default_na=False, skip_blank_lines=True)
    if "revisionUrl" not in frame.columns:
        raise ValueError(f"{path} has no revisionUrl column.")
    return [url for url in frame["revisionUrl"].tolist() if url.strip()]


# ---------------------------------------------------------------------
# Feature table
# ---------------------------------------------------------------------

class TableWriter:
    """
    Append-as-you-go CSV writer with a fixed header.

    The first write replaces any existing file and emits the header; later
    writes append rows only, so a crash loses at most the current batch.
    """

    def __init__(self, path: PathLike, columns: Sequence[str]) -> None:
        self.path = _ensure_parent(path)
        self.columns = list(columns)
        self._header_written = False
        self.rows_written = 0

    def write_rows(self, rows: Sequence[Dict[str, Any]]) -> None:
        frame = pd.DataFrame(list(rows), columns=self.columns)
        frame.to_csv(
            self.path,
            mode="a" if self._header_written else "w",
            header=not self._header_written,
            index=False,
            na_rep="",
        )
        self._header_written = True
        self.rows_written += len(frame)
        logger.debug("Wrote %d rows to %s", len(frame), self.path)


class FeatureTableWriter(TableWriter):
    def __init__(self, path: PathLike) -> None:
        super().__init__(path, FeatureRecord.columns())

    def write(self, records: Sequence[FeatureRecord]) -> None:
        self.write_rows([record.to_row() for record in records])


def read_feature_table(path: PathLike) -> pd.DataFrame:
    """Read a feature table; ``diffText`` and ``authorUserName`` stay strings."""
    return pd.read_csv(
        path,
        dtype={"revisionUrl": str, "authorUserName": str, "diffText": str},
        keep_default_na=True,
    )


# ---------------------------------------------------------------------
# Labels
# ---------------------------------------------------------------------

def read_label_table(path: PathLike) -> List[LabelRecord]:
    """
    Read ``revisionUrl,label`` rows.

    Raises
    ------
    LabelParseError
        If any label is not one of the known labels.
    """
    frame = pd.read_csv(path, dtype=str, keep_default_na=False)
    missing = {"revisionUrl", "label"} - set(frame.columns)
    if missing:
        raise ValueError(f"{path} is missing columns: {sorted(missing)}")

    return [
        LabelRecord(revision_url=row.revisionUrl, label=Label.parse(row.label))
        for row in frame.itertuples(index=False)
        if row.revisionUrl.strip()
    ]


def labels_frame(labels: Sequence[LabelRecord]) -> pd.DataFrame:
    return pd.DataFrame(
        [{"revisionUrl": record.revision_url, "label": record.label.value} for record in labels],
        columns=["revisionUrl", "label"],
    )


# ---------------------------------------------------------------------
# Comparison table
# ---------------------------------------------------------------------

COMPARISON_COLUMNS = ["revisionUrl", "label", "llmLabel", "llmRaw", "agrees"]


class ComparisonTableWriter(TableWriter):
    def __init__(self, path: PathLike) -> None:
        super().__init__(path, COMPARISON_COLUMNS)

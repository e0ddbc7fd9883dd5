"""
Decision-tree training and evaluation.

Joins the feature table with the label table, turns the numeric feature
columns into a matrix, and fits a scikit-learn decision tree. Labels are
encoded as 1 (increases NPOV), -1 (decreases NPOV) and 0 (no effect).
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple, Union

import joblib
import numpy as np
import pandas as pd
from sklearn.metrics import accuracy_score
from sklearn.tree import DecisionTreeClassifier

from ..features.export import labels_frame
from ..features.models import Label, LabelRecord

logger = logging.getLogger("npov.classifier")

FEATURE_COLUMNS: List[str] = [
    "timeBetweenRevisionsAverage",
    "timeBetweenRevisionsMedian",
    "timeBetweenRevisionsQ1",
    "timeBetweenRevisionsQ3",
    "timeBetweenRevisionsStdDev",
    "timeBetweenUserRevisionsAverage",
    "timeBetweenUserRevisionsMedian",
    "timeBetweenUserRevisionsQ1",
    "timeBetweenUserRevisionsQ3",
    "timeBetweenUserRevisionsStdDev",
    "averageTimeBetweenRevisions",
    "pastRevisionsAuthoredByUser",
    "averageTimeBetweenUserAuthoredRevisions",
    "revertRiskModelScore",
    "percPastRevisionsAuthored",
]


@dataclass
class TrainingReport:
    train_size: int
    test_size: int
    train_accuracy: float
    test_accuracy: float
    feature_importances: Dict[str, float] = field(default_factory=dict)


def build_dataset(
    features: pd.DataFrame,
    labels: Sequence[LabelRecord],
) -> Tuple[np.ndarray, np.ndarray, List[str]]:
    """
    Join features and labels on ``revisionUrl``.

    Row order follows the feature table. Unlabelled revisions are dropped;
    non-numeric and missing feature values become 0.0.

    Returns
    -------
    (X, y, revision_urls)
    """
    missing = [column for column in ["revisionUrl", *FEATURE_COLUMNS] if column not in features.columns]
    if missing:
        raise ValueError(f"Feature table is missing columns: {missing}")

    label_table = labels_frame(labels).drop_duplicates("revisionUrl", keep="last")
    merged = features.merge(label_table, on="revisionUrl", how="inner", sort=False)

    dropped = len(features) - len(merged)
    if dropped:
        logger.warning("Dropped %d feature rows without a label", dropped)

    matrix = (
        merged[FEATURE_COLUMNS]
        .apply(pd.to_numeric, errors="coerce")
        .fillna(0.0)
        .to_numpy(dtype=float)
    )
    codes = {label.value: label.code for label in Label}
    target = merged["label"].map(codes).to_numpy(dtype=int)

    return matrix, target, merged["revisionUrl"].tolist()


def split_dataset(
    X: np.ndarray,
    y: np.ndarray,
    train_split: float = 0.8,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """First ``floor(n * train_split)`` rows train, the rest test. No shuffling."""
    if not 0.0 < train_split <= 1.0:
        raise ValueError("train_split must be in (0, 1].")
    cut = math.floor(len(X) * train_split)
    return X[:cut], X[cut:], y[:cut], y[cut:]


def train(
    X: np.ndarray,
    y: np.ndarray,
    random_state: Optional[int] = 0,
    max_depth: Optional[int] = None,
) -> DecisionTreeClassifier:
    if len(X) == 0:
        raise ValueError("Cannot train on an empty dataset.")
    logger.info("Training decision tree from %d data points...", len(X))
    model = DecisionTreeClassifier(random_state=random_state, max_depth=max_depth)
    model.fit(X, y)
    return model


def evaluate(model: DecisionTreeClassifier, X: np.ndarray, y: np.ndarray) -> float:
    """Accuracy of ``model`` on ``(X, y)``; NaN for an empty set."""
    if len(X) == 0:
        return math.nan
    return float(accuracy_score(y, model.predict(X)))


def train_and_evaluate(
    features: pd.DataFrame,
    labels: Sequence[LabelRecord],
    train_split: float = 0.8,
    random_state: Optional[int] = 0,
    max_depth: Optional[int] = None,
) -> Tuple[DecisionTreeClassifier, TrainingReport]:
    X, y, _ = build_dataset(features, labels)
    logger.info(
        "Splitting data into %.0f%% training and %.0f%% testing sets...",
        train_split * 100,
        100 - train_split * 100,
    )
    X_train, X_test, y_train, y_test = split_dataset(X, y, train_split)

    model = train(X_train, y_train, random_state=random_state, max_depth=max_depth)
    report = TrainingReport(
        train_size=len(X_train),
        test_size=len(X_test),
        train_accuracy=evaluate(model, X_train, y_train),
        test_accuracy=evaluate(model, X_test, y_test),
        feature_importances=dict(
            zip(FEATURE_COLUMNS, (float(v) for v in model.feature_importances_))
        ),
    )
    return model, report


def save_model(model: DecisionTreeClassifier, path: Union[str, Path]) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    joblib.dump({"model": model, "feature_columns": FEATURE_COLUMNS}, path)
    logger.info("Model saved to %s", path)


def load_model(path: Union[str, Path]) -> DecisionTreeClassifier:
    bundle = joblib.load(path)
    if bundle.get("feature_columns") != FEATURE_COLUMNS:
        raise ValueError(f"Model at {path} was trained on a different feature schema.")
    return bundle["model"]

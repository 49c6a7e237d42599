"""Metric functions that turn a submission and its ground truth into one score.

Every metric is normalized so that higher is better on the leaderboard. Error
metrics use the ``1 / (1 + error)`` transform, which maps them into ``(0, 1]``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable

from scoreboard.services.csv_table import Table

DEFAULT_METRIC = "accuracy"


@dataclass(slots=True)
class ScoreDetails:
    total_rows: int
    matched_rows: int
    correct_predictions: int | None = None


@dataclass(slots=True)
class ScoreResult:
    score: float
    valid: bool
    error: str | None = None
    details: ScoreDetails | None = None


Metric = Callable[[Table, Table, str, str], ScoreResult]


def parse_number(value: str | None) -> float | None:
    """Return ``value`` as a finite float, or ``None`` when it is not numeric."""
    if value is None:
        return None
    try:
        number = float(value)
    except ValueError:
        return None
    if not math.isfinite(number):
        return None
    return number


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _truth_map(ground_truth: Table, id_col: str, target_col: str) -> dict[str, str]:
    truth: dict[str, str] = {}
    for row in ground_truth.rows:
        if id_col in row:
            truth[str(row[id_col])] = row.get(target_col, "")
    return truth


def _numeric_truth_map(ground_truth: Table, id_col: str, target_col: str) -> dict[str, float]:
    truth: dict[str, float] = {}
    for key, raw in _truth_map(ground_truth, id_col, target_col).items():
        value = parse_number(raw)
        if value is not None:
            truth[key] = value
    return truth


def accuracy(submission: Table, ground_truth: Table, id_column: str, target_column: str) -> ScoreResult:
    id_col, target_col = id_column.lower(), target_column.lower()
    truth = _truth_map(ground_truth, id_col, target_col)

    matched = 0
    correct = 0
    for row in submission.rows:
        if id_col not in row:
            continue
        actual = truth.get(str(row[id_col]))
        if actual is None:
            continue
        matched += 1
        prediction = row.get(target_col, "")
        predicted_num = parse_number(prediction)
        actual_num = parse_number(actual)
        if predicted_num is not None and actual_num is not None:
            if round_half_up(predicted_num) == round_half_up(actual_num):
                correct += 1
        elif prediction.lower() == actual.lower():
            correct += 1

    if matched == 0:
        return ScoreResult(score=0.0, valid=False, error="No matching IDs found")

    return ScoreResult(
        score=correct / matched,
        valid=True,
        details=ScoreDetails(
            total_rows=submission.row_count,
            matched_rows=matched,
            correct_predictions=correct,
        ),
    )


def _numeric_errors(
    submission: Table, ground_truth: Table, id_column: str, target_column: str
) -> list[float]:
    id_col, target_col = id_column.lower(), target_column.lower()
    truth = _numeric_truth_map(ground_truth, id_col, target_col)
    errors: list[float] = []
    for row in submission.rows:
        if id_col not in row:
            continue
        actual = truth.get(str(row[id_col]))
        prediction = parse_number(row.get(target_col))
        if actual is not None and prediction is not None:
            errors.append(prediction - actual)
    return errors


def rmse(submission: Table, ground_truth: Table, id_column: str, target_column: str) -> ScoreResult:
    errors = _numeric_errors(submission, ground_truth, id_column, target_column)
    if not errors:
        return ScoreResult(score=0.0, valid=False, error="No valid numeric predictions")

    value = math.sqrt(sum(e * e for e in errors) / len(errors))
    return ScoreResult(
        score=1 / (1 + value),
        valid=True,
        details=ScoreDetails(total_rows=submission.row_count, matched_rows=len(errors)),
    )


def mae(submission: Table, ground_truth: Table, id_column: str, target_column: str) -> ScoreResult:
    errors = _numeric_errors(submission, ground_truth, id_column, target_column)
    if not errors:
        return ScoreResult(score=0.0, valid=False, error="No valid numeric predictions")

    value = sum(abs(e) for e in errors) / len(errors)
    return ScoreResult(
        score=1 / (1 + value),
        valid=True,
        details=ScoreDetails(total_rows=submission.row_count, matched_rows=len(errors)),
    )


def _binary_label(value: str | None) -> int:
    number = parse_number(value)
    if number is None:
        return 0
    return 1 if round_half_up(number) >= 1 else 0


def f1(submission: Table, ground_truth: Table, id_column: str, target_column: str) -> ScoreResult:
    id_col, target_col = id_column.lower(), target_column.lower()
    truth = {
        key: _binary_label(raw)
        for key, raw in _truth_map(ground_truth, id_col, target_col).items()
    }

    tp = fp = fn = 0
    matched = 0
    for row in submission.rows:
        if id_col not in row:
            continue
        actual = truth.get(str(row[id_col]))
        if actual is None:
            continue
        matched += 1
        predicted = _binary_label(row.get(target_col))
        if predicted == 1 and actual == 1:
            tp += 1
        elif predicted == 1 and actual == 0:
            fp += 1
        elif predicted == 0 and actual == 1:
            fn += 1

    if matched == 0:
        return ScoreResult(score=0.0, valid=False, error="No matching IDs found")

    precision = tp / (tp + fp) if tp + fp > 0 else 0.0
    recall = tp / (tp + fn) if tp + fn > 0 else 0.0
    score = 2 * precision * recall / (precision + recall) if precision + recall > 0 else 0.0
    return ScoreResult(
        score=score,
        valid=True,
        details=ScoreDetails(total_rows=submission.row_count, matched_rows=matched),
    )


METRICS: dict[str, Metric] = {
    "accuracy": accuracy,
    "rmse": rmse,
    "mae": mae,
    "f1": f1,
}


def resolve_metric(name: str | None) -> Metric:
    # Unknown names score as accuracy so a configuration typo never blocks submissions.
    return METRICS.get((name or DEFAULT_METRIC).strip().lower(), accuracy)


def score_tables(
    submission: Table,
    ground_truth: Table,
    metric: str | None = DEFAULT_METRIC,
    id_column: str = "id",
    target_column: str = "prediction",
) -> ScoreResult:
    return resolve_metric(metric)(submission, ground_truth, id_column, target_column)

from __future__ import annotations

import pytest

from scoreboard.services.csv_table import parse_csv
from scoreboard.services.metrics import accuracy, f1, mae, rmse, score_tables

TRUTH = parse_csv("id,prediction\n1,1\n2,0\n3,1\n")


def test_accuracy_of_table_against_itself_is_one():
    table = parse_csv("id,prediction\n1,cat\n2,7\n3,Dog\n")

    result = accuracy(table, table, "id", "prediction")

    assert result.valid is True
    assert result.score == 1.0


def test_accuracy_one_in_three():
    submission = parse_csv("id,prediction\n1,1\n2,1\n3,0\n")

    result = accuracy(submission, TRUTH, "id", "prediction")

    assert result.score == pytest.approx(1 / 3)
    assert result.details.matched_rows == 3
    assert result.details.correct_predictions == 1


def test_accuracy_rounds_numbers_and_ignores_case_for_labels():
    truth = parse_csv("id,label\n1,2\n2,YES\n3,0\n")
    submission = parse_csv("id,label\n1,2.4\n2,yes\n3,0.5\n")

    result = accuracy(submission, truth, "ID", "Label")

    # 0.5 rounds half up to 1, which misses 0.
    assert result.score == pytest.approx(2 / 3)


def test_ids_match_regardless_of_case():
    truth = parse_csv("id,prediction\na1,cat\nb2,dog\n")
    submission = parse_csv("id,prediction\nA1,Cat\nB2,DOG\n")

    result = accuracy(submission, truth, "id", "prediction")

    assert result.valid is True
    assert result.score == 1.0
    assert result.details.matched_rows == 2


def test_accuracy_without_matching_ids_is_invalid():
    submission = parse_csv("id,prediction\n9,1\n")

    result = accuracy(submission, TRUTH, "id", "prediction")

    assert result.valid is False
    assert result.score == 0.0
    assert result.error == "No matching IDs found"


def test_rmse_and_mae_transform():
    truth = parse_csv("id,y\n1,1\n2,2\n3,oops\n")
    submission = parse_csv("id,y\n1,2\n2,4\n3,3\n")

    assert rmse(submission, truth, "id", "y").score == pytest.approx(1 / (1 + (2.5**0.5)))
    assert mae(submission, truth, "id", "y").score == pytest.approx(1 / (1 + 1.5))


def test_error_metrics_are_one_for_perfect_predictions():
    truth = parse_csv("id,y\n1,3.5\n2,-1\n")

    assert rmse(truth, truth, "id", "y").score == 1.0
    assert mae(truth, truth, "id", "y").score == 1.0


@pytest.mark.parametrize("metric", [rmse, mae])
def test_error_metrics_stay_in_unit_interval(metric):
    truth = parse_csv("id,y\n1,0\n2,0\n")
    submission = parse_csv("id,y\n1,1000000\n2,-250000\n")

    result = metric(submission, truth, "id", "y")

    assert 0.0 < result.score <= 1.0


def test_error_metrics_skip_nan_and_invalid_without_numeric_match():
    truth = parse_csv("id,y\n1,nan\n2,abc\n")
    submission = parse_csv("id,y\n1,1\n2,2\n")

    for metric in (rmse, mae):
        result = metric(submission, truth, "id", "y")
        assert result.valid is False
        assert result.error == "No valid numeric predictions"


def test_f1_all_correct_and_all_wrong():
    perfect = parse_csv("id,prediction\n1,1\n2,0\n3,1\n")
    inverted = parse_csv("id,prediction\n1,0\n2,1\n3,0\n")

    assert f1(perfect, TRUTH, "id", "prediction").score == 1.0
    assert f1(inverted, TRUTH, "id", "prediction").score == 0.0


def test_f1_mixed_predictions():
    submission = parse_csv("id,prediction\n1,0.9\n2,0.8\n3,0.1\n")

    result = f1(submission, TRUTH, "id", "prediction")

    # tp=1, fp=1, fn=1 -> precision=recall=0.5
    assert result.score == pytest.approx(0.5)
    assert result.details.matched_rows == 3


def test_dispatch_is_case_insensitive():
    submission = parse_csv("id,prediction\n1,1\n2,1\n3,0\n")

    assert score_tables(submission, TRUTH, "F1") == f1(submission, TRUTH, "id", "prediction")
    assert score_tables(submission, TRUTH, "RMSE") == rmse(submission, TRUTH, "id", "prediction")


def test_unknown_metric_falls_back_to_accuracy():
    submission = parse_csv("id,prediction\n1,1\n2,1\n3,0\n")

    assert score_tables(submission, TRUTH, "auc-roc") == accuracy(
        submission, TRUTH, "id", "prediction"
    )

"""
Evaluation of anomaly flags against ground-truth labels.
"""

from collections.abc import Iterable
from dataclasses import asdict, dataclass


@dataclass
class EvaluationMetrics:
    """Classification metrics of a labelled run"""

    accuracy: float
    precision: float
    recall: float
    f1_score: float
    support: int

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ConfusionMatrix:
    """Incrementally updated confusion counts"""

    true_positives: int = 0
    false_positives: int = 0
    true_negatives: int = 0
    false_negatives: int = 0

    @property
    def total(self) -> int:
        return self.true_positives + self.false_positives + self.true_negatives + self.false_negatives

    def update(self, predicted: bool, actual: bool) -> None:
        if predicted and actual:
            self.true_positives += 1
        elif predicted:
            self.false_positives += 1
        elif actual:
            self.false_negatives += 1
        else:
            self.true_negatives += 1

    def metrics(self) -> EvaluationMetrics:
        """Accuracy, precision, recall and F1 (0.0 wherever a denominator is zero)"""
        tp, fp, fn = self.true_positives, self.false_positives, self.false_negatives
        accuracy = (tp + self.true_negatives) / self.total if self.total else 0.0
        precision = tp / (tp + fp) if tp + fp else 0.0
        recall = tp / (tp + fn) if tp + fn else 0.0
        f1 = 2 * precision * recall / (precision + recall) if precision + recall else 0.0
        return EvaluationMetrics(
            accuracy=accuracy,
            precision=precision,
            recall=recall,
            f1_score=f1,
            support=self.total,
        )


def calculate_metrics(predictions: Iterable[bool], labels: Iterable[bool]) -> EvaluationMetrics:
    """Metrics of paired prediction/label sequences

    Raises:
        ValueError: If the sequences have different lengths
    """
    predictions, labels = list(predictions), list(labels)
    if len(predictions) != len(labels):
        raise ValueError(f"Got {len(predictions)} predictions but {len(labels)} labels")

    matrix = ConfusionMatrix()
    for predicted, actual in zip(predictions, labels):
        matrix.update(bool(predicted), bool(actual))
    return matrix.metrics()

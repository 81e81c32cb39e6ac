"""
Driver loop replaying DataPoints through the detector.
"""

import time
from collections.abc import Iterable

import structlog

from .controller import AdaptiveAnomalyDetector
from .evaluation import ConfusionMatrix, EvaluationMetrics
from .models import DataPoint, DetectionResult
from .recorder import ResultRecorder

logger = structlog.get_logger(__name__)


class DetectionRunner:
    """Feeds observations to a detector, records results and tracks labelled metrics"""

    def __init__(
        self,
        detector: AdaptiveAnomalyDetector,
        recorder: ResultRecorder | None = None,
        stats_interval: int = 1000,
    ):
        self.detector = detector
        self.recorder = recorder
        self.stats_interval = stats_interval
        self.confusion = ConfusionMatrix()
        self._stop_requested = False

        self.stats = {
            "total_consumed": 0,
            "warmup": 0,
            "analyzed": 0,
            "anomalies_detected": 0,
            "skipped": 0,
        }

    def stop(self) -> None:
        """Ask run() to return before the next observation"""
        self._stop_requested = True

    def process(self, point: DataPoint) -> DetectionResult | None:
        """Process one DataPoint; a rejected observation is logged and skipped"""
        self.stats["total_consumed"] += 1
        try:
            result = self.detector.feed_observation(point.value, point.timestamp)
        except ValueError as e:
            logger.error(
                "Observation rejected",
                error=str(e),
                timestamp=point.timestamp,
                value=point.value,
            )
            self.stats["skipped"] += 1
            return None

        if result is None:
            self.stats["warmup"] += 1
            return None

        self.stats["analyzed"] += 1
        if result.is_anomaly:
            self.stats["anomalies_detected"] += 1
        if point.is_anomaly is not None:
            self.confusion.update(result.is_anomaly, point.is_anomaly)
        if self.recorder is not None:
            self.recorder.record(result, point)
        return result

    def run(self, points: Iterable[DataPoint]) -> EvaluationMetrics | None:
        """Process every point until exhaustion or stop()

        Returns:
            Metrics over the labelled analyzed points, None if there were none
        """
        self._stop_requested = False
        start_time = time.time()
        logger.info("Starting detection run", train_size=self.detector.config.train_size)

        try:
            for point in points:
                if self._stop_requested:
                    logger.info("Stop requested, leaving stream")
                    break

                self.process(point)

                if self.stats["total_consumed"] % self.stats_interval == 0:
                    logger.info("Runner stats", **self.stats)

        except KeyboardInterrupt:
            logger.info("Received interrupt signal, stopping runner")

        finally:
            if self.recorder is not None:
                self.recorder.close()

            elapsed = time.time() - start_time
            logger.info(
                "Detection run finished",
                total_consumed=self.stats["total_consumed"],
                analyzed=self.stats["analyzed"],
                anomalies_detected=self.stats["anomalies_detected"],
                skipped=self.stats["skipped"],
                elapsed_sec=round(elapsed, 1),
            )

        if self.confusion.total == 0:
            return None

        metrics = self.confusion.metrics()
        logger.info("Evaluation", **{k: round(v, 4) for k, v in metrics.to_dict().items()})
        return metrics

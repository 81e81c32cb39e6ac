"""
Real-time detection consumer.

Consumes sensor readings from Kafka and feeds them to the adaptive detector
one message at a time.
"""

import json
import time
from typing import Any, Optional

import structlog
from kafka import KafkaConsumer

from .models import DataPoint, StreamConfig
from .runner import DetectionRunner

logger = structlog.get_logger(__name__)


class KafkaDetectionConsumer:
    """Streams Kafka messages through a DetectionRunner"""

    def __init__(self, config: StreamConfig, runner: DetectionRunner):
        self.config = config
        self.runner = runner
        self._stop_requested = False

        try:
            self.consumer = KafkaConsumer(
                config.kafka_topic,
                bootstrap_servers=config.kafka_bootstrap_servers,
                group_id=config.kafka_group_id,
                auto_offset_reset=config.kafka_auto_offset_reset,
                max_poll_records=config.max_poll_records,
                value_deserializer=lambda m: json.loads(m.decode("utf-8")),
            )
            logger.info(
                "Kafka consumer initialized",
                bootstrap_servers=config.kafka_bootstrap_servers,
                topic=config.kafka_topic,
                group_id=config.kafka_group_id,
            )
        except Exception as e:
            logger.error("Failed to initialize Kafka consumer", error=str(e))
            raise

        self.stats = {
            "total_consumed": 0,
            "parse_errors": 0,
        }

    def stop(self) -> None:
        self._stop_requested = True

    def parse_message(self, message: dict[str, Any]) -> DataPoint:
        """Build a DataPoint from a decoded message

        Raises:
            KeyError: If the value field is missing
            ValueError / TypeError: If the value is not numeric
        """
        cfg = self.config
        value = float(message[cfg.value_field])

        label = None
        if cfg.label_field and message.get(cfg.label_field) is not None:
            label = bool(int(message[cfg.label_field]))

        timestamp = message.get(cfg.timestamp_field)
        return DataPoint(
            timestamp=str(timestamp) if timestamp is not None else None,
            value=value,
            is_anomaly=label,
        )

    def _process_message(self, message: dict[str, Any]) -> None:
        try:
            point = self.parse_message(message)
        except (KeyError, ValueError, TypeError) as e:
            logger.error("Failed to parse message", error=str(e), message=message)
            self.stats["parse_errors"] += 1
            return

        self.runner.process(point)

    def run(self, duration_seconds: Optional[int] = None):
        """Run the consumer

        Args:
            duration_seconds: Optional duration in seconds. If None, runs indefinitely.
        """
        logger.info(
            "Starting detection consumer",
            topic=self.config.kafka_topic,
            duration=duration_seconds if duration_seconds else "indefinite",
        )

        start_time = time.time()
        last_log_time = start_time

        try:
            for message in self.consumer:
                if self._stop_requested:
                    logger.info("Stop requested, leaving stream")
                    break

                self.stats["total_consumed"] += 1
                self._process_message(message.value)

                elapsed = time.time() - start_time
                if time.time() - last_log_time >= self.config.stats_interval_seconds:
                    rate = self.stats["total_consumed"] / elapsed if elapsed > 0 else 0
                    logger.info(
                        "Consumer stats",
                        total_consumed=self.stats["total_consumed"],
                        analyzed=self.runner.stats["analyzed"],
                        anomalies_detected=self.runner.stats["anomalies_detected"],
                        parse_errors=self.stats["parse_errors"],
                        rate_per_sec=round(rate, 1),
                        elapsed_sec=round(elapsed, 1),
                    )
                    last_log_time = time.time()

                if duration_seconds and elapsed >= duration_seconds:
                    logger.info("Duration limit reached", duration_seconds=duration_seconds)
                    break

        except KeyboardInterrupt:
            logger.info("Received interrupt signal, stopping consumer")

        except Exception as e:
            logger.error("Consumer error", error=str(e), exc_info=True)
            raise

        finally:
            self.consumer.close()
            if self.runner.recorder is not None:
                self.runner.recorder.close()

            elapsed = time.time() - start_time
            rate = self.stats["total_consumed"] / elapsed if elapsed > 0 else 0
            logger.info(
                "Consumer stopped",
                total_consumed=self.stats["total_consumed"],
                analyzed=self.runner.stats["analyzed"],
                anomalies_detected=self.runner.stats["anomalies_detected"],
                parse_errors=self.stats["parse_errors"],
                elapsed_sec=round(elapsed, 1),
                avg_rate_per_sec=round(rate, 1),
            )

"""
CLI for the adaptive anomaly detector.

Usage:
    python -m src.detector.detect --input data.csv [options]
    python -m src.detector.detect --kafka [options]
"""

import argparse
import dataclasses
import os
import sys

import structlog

from src.core.logger import resolve_level, setup_logging
from src.engine import OptimizerConfig

from .consumer import KafkaDetectionConsumer
from .controller import AdaptiveAnomalyDetector
from .loader import iter_csv
from .models import DetectorConfig, StreamConfig, load_config
from .presets import PRESETS
from .recorder import ResultRecorder
from .runner import DetectionRunner

logger = structlog.get_logger(__name__)

# CLI flag -> DetectorConfig field
OVERRIDES = {
    "lookback_len": int,
    "hidden_size": int,
    "num_layers": int,
    "train_size": int,
    "learning_rate": float,
    "epoch_train": int,
    "epoch_update": int,
    "minimal_threshold": float,
    "value_lower_bound": float,
    "value_upper_bound": float,
    "seed": int,
}


def build_parser() -> argparse.ArgumentParser:
    """Build the command-line parser"""
    parser = argparse.ArgumentParser(
        description="Streaming anomaly detection with online-trained LSTM models",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
        Examples:
        # Replay a labelled CSV file
        python -m src.detector.detect --input data/sensor.csv --output results.csv

        # Custom configuration
        python -m src.detector.detect --input data/sensor.csv \\
            --config detector.json \\
            --minimal-threshold 0.05

        # Consume a Kafka topic for 5 minutes
        python -m src.detector.detect --kafka --topic sensor-readings --duration 300
        """,
    )

    # Source
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--input", help="CSV file with timestamp,value[,is_anomaly] columns")
    source.add_argument("--kafka", action="store_true", help="Consume observations from Kafka")

    # Detector configuration
    parser.add_argument(
        "--preset",
        choices=sorted(PRESETS),
        default="default",
        help="Named configuration (default: default)",
    )
    parser.add_argument(
        "--config",
        default=os.getenv("DETECTOR_CONFIG"),
        help="JSON configuration file, overrides the preset",
    )
    for name, kind in OVERRIDES.items():
        parser.add_argument(f"--{name.replace('_', '-')}", type=kind, default=None)
    parser.add_argument(
        "--standard-adam",
        action="store_true",
        help="Use the textbook Adam step instead of the gradient-scaled one",
    )

    # Output
    parser.add_argument("--output", help="CSV file receiving one row per analyzed observation")
    parser.add_argument("--batch-size", type=int, default=100, help="Result rows per write")

    # Kafka settings
    parser.add_argument(
        "--kafka-servers",
        default=os.getenv("KAFKA_BOOTSTRAP_SERVERS", "localhost:9092"),
        help="Kafka bootstrap servers (default: localhost:9092)",
    )
    parser.add_argument(
        "--topic",
        default=os.getenv("KAFKA_TOPIC", "sensor-readings"),
        help="Kafka topic (default: sensor-readings)",
    )
    parser.add_argument(
        "--group-id",
        default="adaptive-detector-group",
        help="Kafka consumer group ID",
    )
    parser.add_argument(
        "--offset-reset",
        choices=["earliest", "latest"],
        default="earliest",
        help="Auto offset reset (default: earliest, warm-up needs history)",
    )
    parser.add_argument("--value-field", default="value", help="Message field holding the value")
    parser.add_argument("--duration", type=int, help="Run for N seconds then stop (default: infinite)")

    # Logging
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=os.getenv("LOG_LEVEL", "INFO"),
        help="Logging level (default: INFO)",
    )
    return parser


def build_config(args) -> DetectorConfig:
    """Preset, then JSON file, then individual flags"""
    config = load_config(args.config) if args.config else dataclasses.replace(PRESETS[args.preset])

    overrides = {
        name: getattr(args, name) for name in OVERRIDES if getattr(args, name) is not None
    }
    return dataclasses.replace(config, **overrides).validate()


def build_stream_config(args) -> StreamConfig:
    return StreamConfig(
        kafka_bootstrap_servers=args.kafka_servers,
        kafka_topic=args.topic,
        kafka_group_id=args.group_id,
        kafka_auto_offset_reset=args.offset_reset,
        value_field=args.value_field,
    )


def main(argv=None):
    """Main entry point"""
    args = build_parser().parse_args(argv)
    setup_logging(level=resolve_level(args.log_level))

    try:
        config = build_config(args)
        optimizer_config = OptimizerConfig(scale_by_clipped_gradient=not args.standard_adam)
        detector = AdaptiveAnomalyDetector(config, optimizer_config=optimizer_config)

        recorder = ResultRecorder(args.output, batch_size=args.batch_size) if args.output else None
        runner = DetectionRunner(detector, recorder)

        if args.kafka:
            consumer = KafkaDetectionConsumer(build_stream_config(args), runner)
            consumer.run(duration_seconds=args.duration)
        else:
            metrics = runner.run(iter_csv(args.input))
            if metrics is not None:
                print(
                    f"accuracy={metrics.accuracy:.4f} precision={metrics.precision:.4f} "
                    f"recall={metrics.recall:.4f} f1={metrics.f1_score:.4f}"
                )

        logger.info("Detection completed successfully", **detector.stats)
        return 0

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0

    except Exception as e:
        logger.error("Detection failed", error=str(e), exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())

#!/usr/bin/env python3
"""
Finger ROM Analyzer - range of motion from a recorded hand video.

Samples the video at a fixed step, detects hand landmarks on each sampled
frame, and reports flexion / extension per joint for the selected mode.

Usage:
    python main.py hand.mp4                       # Default mode from config
    python main.py hand.mp4 --mode index          # Index finger MCP/PIP/DIP
    python main.py hand.mp4 --mode thumb --json   # Machine-readable output
    python main.py hand.mp4 --export-log run.log  # Save the diagnostics log
    python main.py --list-modes
"""

import sys
import os
import json
import argparse
import logging

# Add project root to path
PROJECT_ROOT = os.path.dirname(os.path.abspath(__file__))
sys.path.insert(0, PROJECT_ROOT)

from core.chains import with_convention
from core.errors import ROMError
from core.pipeline import AnalysisOutcome, ROMAnalyzer
from core.types import ExtensionConvention
from modules.utils.config import Config
from modules.utils.logger import setup_logging

logger = logging.getLogger(__name__)

EXIT_DONE = 0
EXIT_ERROR = 1
EXIT_REJECTED = 2


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Finger ROM Analyzer - joint range of motion from hand video"
    )
    parser.add_argument("video", nargs="?", default=None, help="Path to the hand video")
    parser.add_argument("--mode", type=str, default=None,
                        help="Analysis mode (joint chain); see --list-modes")
    parser.add_argument("--config", type=str, default=None, help="Path to config.yaml")
    parser.add_argument("--step", type=float, default=None,
                        help="Sampling step in seconds (default 0.5)")
    parser.add_argument("--convention", choices=[c.value for c in ExtensionConvention],
                        default=None, help="Extension sign convention override")
    parser.add_argument("--json", action="store_true", help="Print the outcome as JSON")
    parser.add_argument("--export-log", type=str, default=None,
                        help="Write the diagnostics log to this file")
    parser.add_argument("--list-modes", action="store_true", help="List analysis modes and exit")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show debug output")
    return parser.parse_args(argv)


def format_outcome(outcome: AnalysisOutcome) -> str:
    """Human-readable report of a finished analysis."""
    lines = []
    if not outcome.ok:
        rejection = outcome.rejection
        lines.append(f"[{outcome.mode}] rejected: {rejection.reason}")
        lines.append(f"  detected {rejection.detected_frames} of {rejection.total_frames} sampled frames")
        return "\n".join(lines)

    result = outcome.result
    verdict = outcome.verdict
    lines.append(f"[{outcome.mode}] measurement complete "
                 f"({verdict.detected_frames}/{verdict.total_frames} frames with a hand, "
                 f"extension: {result.convention.value})")
    for name, rom in result.joints.items():
        lines.append(f"  {name:<5} flexion {rom.flexion:6.1f} deg / extension {rom.extension:6.1f} deg")
    for name, value in result.distances.items():
        lines.append(f"  {name}: {value:.2f} (normalized)")
    for name in result.unavailable:
        lines.append(f"  {name:<5} no valid samples")
    return "\n".join(lines)


def main(argv=None) -> int:
    args = parse_args(argv)

    config = Config()
    config.load(config_path=args.config)
    if args.step is not None:
        config.set("sampling.step_seconds", args.step)

    log_cfg = config.log_settings
    setup_logging(
        level=log_cfg.get("level", "INFO"),
        log_file=log_cfg.get("file"),
        max_size_mb=log_cfg.get("max_size_mb", 10),
        backup_count=log_cfg.get("backup_count", 3),
        verbose=args.verbose,
    )

    try:
        analyzer = ROMAnalyzer.from_config(config)
    except (ROMError, ValueError) as e:
        logger.error("Invalid configuration: %s", e)
        return EXIT_ERROR

    if args.list_modes:
        for name, chain in sorted(analyzer.chains.items()):
            print(f"{name:<12} {chain.description}")
        return EXIT_DONE

    mode = args.mode or config.get("analysis.default_mode", "pinky")
    chains = analyzer.chains
    if mode not in chains:
        logger.error("Unknown mode '%s' (available: %s)", mode, ", ".join(sorted(chains)))
        return EXIT_ERROR
    chain = chains[mode]
    if args.convention:
        chain = with_convention(chain, ExtensionConvention.from_string(args.convention))

    logger.info("Analyzing %s (mode=%s, step=%.2fs)",
                args.video or "<none>", mode, config.get("sampling.step_seconds"))
    try:
        outcome = analyzer.analyze_sync(args.video, chain)
    except ROMError as e:
        logger.error("Analysis failed: %s", e)
        return EXIT_ERROR
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return EXIT_ERROR

    if args.export_log:
        outcome.diagnostics.save(args.export_log)

    if args.json:
        print(json.dumps(outcome.to_dict(), indent=2))
    else:
        print(format_outcome(outcome))

    return EXIT_DONE if outcome.ok else EXIT_REJECTED


if __name__ == "__main__":
    sys.exit(main())

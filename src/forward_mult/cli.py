"""Command-line interface for the forward multiplicity pipeline"""
import argparse
import logging
import json
import sys
from pathlib import Path
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import ValidationError

from .config_schema import ForwardMultConfig
from .core.event import RawEvent
from .exceptions import ForwardMultError, format_error_chain
from .io.event_file import read_event_file
from .io.simulation import EventSimulator
from .pipeline.executor import ForwardMultiplicityTask


def setup_logging(output_dir: Path, verbose: bool = False, level: str = 'INFO'):
    """Setup logging configuration"""
    log_dir = output_dir / 'logs'
    log_dir.mkdir(parents=True, exist_ok=True)

    log_file = log_dir / f'forward_mult_log_{datetime.now().strftime("%Y%m%d_%H%M%S")}.txt'

    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, level),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler()
        ]
    )

    return logging.getLogger(__name__)


def load_events(events_path: Optional[Path],
                n_simulate: Optional[int],
                config: ForwardMultConfig,
                seed: Optional[int] = None) -> List[RawEvent]:
    """Read events from an archive or draw them from the simulator"""
    if events_path is not None:
        _, events = read_event_file(events_path)
        return events

    simulator = EventSimulator(
        collision_system=config.inspector.collision_system,
        sqrt_s_nn=config.inspector.sqrt_s_nn,
        seed=seed,
    )
    return simulator.generate(n_simulate)


def run_pipeline(output_dir: Path,
                 events_path: Path = None,
                 n_simulate: int = None,
                 config: ForwardMultConfig = None,
                 verbose: bool = False,
                 seed: int = None) -> Dict:
    """
    Run the forward multiplicity task over one event source.

    Args:
        output_dir: Output directory
        events_path: Event archive (.npz); takes precedence over n_simulate
        n_simulate: Number of synthetic events when no archive is given
        config: Validated configuration (defaults if None)
        verbose: Enable verbose logging
        seed: Simulator seed

    Returns:
        Dictionary with run statistics and output files
    """
    config = config or ForwardMultConfig()
    logger = setup_logging(output_dir, verbose, config.general.log_level)
    logger.info("=" * 80)
    logger.info("Forward Multiplicity Pipeline - Starting")
    logger.info("=" * 80)

    try:
        logger.info("Step 1/3: Loading events")
        events = load_events(events_path, n_simulate, config, seed)
        logger.info(f"Loaded {len(events)} events")

        logger.info("Step 2/3: Processing events")
        task = ForwardMultiplicityTask(config)
        statistics = task.process_events(events)

        logger.info("Step 3/3: Writing outputs")
        output_files = task.finalize(output_dir)

        logger.info("=" * 80)
        logger.info("Run complete!")
        logger.info(f"Results saved to: {output_dir}")
        logger.info("=" * 80)

        return {
            'status': 'success',
            'statistics': statistics.to_dict(),
            'output_files': output_files
        }

    except Exception as e:
        logger.error(f"Pipeline failed: {format_error_chain(e)}", exc_info=True)
        return {
            'status': 'error',
            'error': str(e)
        }


def main():
    """Main entry point for CLI"""
    parser = argparse.ArgumentParser(
        description='Forward multiplicity event pipeline',
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument('--events', type=Path,
                        help='Path to event archive (.npz)')
    source.add_argument('--simulate', type=int, metavar='N',
                        help='Process N synthetic events instead of a file')
    parser.add_argument('--config', type=Path,
                        help='YAML configuration file')
    parser.add_argument('--output', type=Path, required=True,
                        help='Output directory for results')
    parser.add_argument('--seed', type=int, default=None,
                        help='Seed for --simulate')
    parser.add_argument('--timing', action='store_true',
                        help='Enable per-stage CPU timing')
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Enable verbose logging')

    args = parser.parse_args()

    if args.events is not None and not args.events.exists():
        print(f"Error: File not found: {args.events}", file=sys.stderr)
        sys.exit(2)

    try:
        config = ForwardMultConfig.from_yaml(args.config) if args.config else ForwardMultConfig()
    except (ForwardMultError, ValidationError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)

    if args.timing:
        config.task.do_timing = True

    args.output.mkdir(parents=True, exist_ok=True)

    result = run_pipeline(
        args.output,
        events_path=args.events,
        n_simulate=args.simulate,
        config=config,
        verbose=args.verbose,
        seed=args.seed
    )

    print(json.dumps(result, indent=2, default=str))

    sys.exit(0 if result['status'] == 'success' else 2)


if __name__ == '__main__':
    main()

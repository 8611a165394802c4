#!/usr/bin/env python3
"""
Forward Multiplicity - Batch Processing Script
Processes several event files in parallel, one task per file, and merges
the per-worker accumulators into a single run result.
"""

import argparse
import logging
import json
from pathlib import Path
from concurrent.futures import ProcessPoolExecutor, as_completed
from typing import Dict, List, Optional
import sys
import time
from tqdm import tqdm

from forward_mult.config_schema import ForwardMultConfig
from forward_mult.exceptions import format_error_chain
from forward_mult.io.event_file import read_event_file
from forward_mult.pipeline.executor import ForwardMultiplicityTask


# ═══════════════════════════════════════════════════════════════════════════
# WORKER
# ═══════════════════════════════════════════════════════════════════════════

def process_event_file(events_path: Path, config_dict: Dict) -> Dict:
    """
    Run one task over one event file.

    Args:
        events_path: Event archive (.npz)
        config_dict: Configuration as a plain dict (picklable)

    Returns:
        Dictionary with status, statistics and the finished task
    """
    logger = logging.getLogger(f"batch.{events_path.stem}")
    start_time = time.time()

    try:
        config = ForwardMultConfig.from_dict(config_dict)
        _, events = read_event_file(events_path)

        task = ForwardMultiplicityTask(config)
        statistics = task.process_events(events)

        processing_time = time.time() - start_time
        logger.info(f"✓ {events_path.name}: {statistics.n_events} events in {processing_time:.1f}s")
        return {
            'file': str(events_path),
            'status': 'success',
            'statistics': statistics.to_dict(),
            'processing_time_sec': round(processing_time, 2),
            'task': task
        }

    except Exception as e:
        logger.error(f"✗ {events_path.name} failed: {format_error_chain(e)}")
        return {
            'file': str(events_path),
            'status': 'error',
            'error': str(e),
            'error_type': type(e).__name__,
            'processing_time_sec': round(time.time() - start_time, 2)
        }


def merge_results(results: List[Dict], config: ForwardMultConfig) -> Optional[ForwardMultiplicityTask]:
    """Fold every successful worker task into one run-level task"""
    tasks = [r['task'] for r in results if r['status'] == 'success']
    if not tasks:
        return None

    merged = ForwardMultiplicityTask(config)
    for task in tasks:
        merged.merge(task)
    return merged


# ═══════════════════════════════════════════════════════════════════════════
# MAIN
# ═══════════════════════════════════════════════════════════════════════════

def main():
    """Batch processing entry point with progress tracking"""
    parser = argparse.ArgumentParser(
        description='Forward Multiplicity - Batch Processing',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Process every archive of a directory with 4 workers
  python batch_process.py --input data/ --output results/ --parallel 4

  # Explicit files with a configuration
  python batch_process.py --files run1.npz run2.npz --config config.yaml --output results/
        """
    )

    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument('--input', type=Path,
                        help='Directory with event archives (*.npz)')
    source.add_argument('--files', type=Path, nargs='+',
                        help='Event archives to process')
    parser.add_argument('--config', type=Path, default=None,
                        help='Path to configuration YAML file')
    parser.add_argument('--output', type=Path, required=True,
                        help='Output directory for merged results')
    parser.add_argument('--parallel', type=int, default=1,
                        help='Number of parallel jobs')
    parser.add_argument('--dry-run', action='store_true',
                        help='Show what would be processed without actually processing')
    parser.add_argument('--continue-on-error', action='store_true',
                        help='Merge the successful files even if some fail')
    parser.add_argument('--verbose', action='store_true',
                        help='Enable verbose output')

    args = parser.parse_args()

    # Load configuration
    try:
        config = ForwardMultConfig.from_yaml(args.config) if args.config else ForwardMultConfig()
    except Exception as e:
        print(f"Error loading configuration: {e}")
        sys.exit(1)

    # Setup logging
    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    logger = logging.getLogger("batch")

    files = sorted(args.input.glob('*.npz')) if args.input else list(args.files)
    if not files:
        logger.error("No event files to process")
        sys.exit(1)

    # Dry run mode
    if args.dry_run:
        print(f"\nDRY RUN: Would process {len(files)} files:\n")
        for path in files:
            print(f"  - {path}")
        print(f"\nParallel jobs: {args.parallel}\n")
        sys.exit(0)

    logger.info(f"Processing {len(files)} files")
    config_dict = config.to_dict()
    results = []

    if args.parallel > 1:
        logger.info(f"Using {args.parallel} parallel workers")

        with ProcessPoolExecutor(max_workers=args.parallel) as executor:
            futures = {
                executor.submit(process_event_file, path, config_dict): path
                for path in files
            }

            with tqdm(total=len(files), desc="Processing files", unit="file") as pbar:
                for future in as_completed(futures):
                    path = futures[future]
                    try:
                        result = future.result()
                    except Exception as e:
                        logger.error(f"File {path} raised exception: {e}")
                        result = {
                            'file': str(path),
                            'status': 'error',
                            'error': str(e),
                            'error_type': 'ExecutionError'
                        }
                    results.append(result)

                    status_icon = "✓" if result['status'] == 'success' else "✗"
                    pbar.set_postfix_str(f"{status_icon} {path.name}")
                    pbar.update(1)
    else:
        logger.info("Sequential processing (parallel=1)")

        with tqdm(files, desc="Processing files", unit="file") as pbar:
            for path in pbar:
                pbar.set_postfix_str(f"Current: {path.name}")
                result = process_event_file(path, config_dict)
                results.append(result)

                status_icon = "✓" if result['status'] == 'success' else "✗"
                pbar.set_postfix_str(f"{status_icon} {path.name}")

    failed = [r for r in results if r['status'] != 'success']
    if failed and not args.continue_on_error:
        logger.error(f"{len(failed)} file(s) failed. Use --continue-on-error to merge the rest.")
        sys.exit(1)

    merged = merge_results(results, config)
    if merged is None:
        logger.error("No file was processed successfully")
        sys.exit(1)

    merged.statistics.log_summary()
    output_files = merged.finalize(args.output)

    summary = {
        'status': 'success',
        'files': [{k: v for k, v in r.items() if k != 'task'} for r in results],
        'statistics': merged.statistics.to_dict(),
        'output_files': output_files
    }
    print(json.dumps(summary, indent=2, default=str))

    logger.info(f"Batch processing complete. {len(results)-len(failed)}/{len(results)} successful.")
    sys.exit(0)


if __name__ == '__main__':
    main()

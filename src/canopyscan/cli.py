import argparse
import sys
import logging
from pathlib import Path
from typing import List, Optional

from canopyscan.exceptions import CanopyScanError

log = logging.getLogger("canopyscan")

def setup_logging(level: int = logging.INFO) -> None:
    """
    Configures the standard logging format and level for the command-line interface.

    Args:
        level (int): The logging threshold level.
    """
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

def run_analysis(config_path: str, output_dir: str, input_path: Optional[str] = None) -> int:
    """
    Loads a YAML configuration, runs the full pipeline and writes its products.

    Args:
        config_path (str): YAML configuration file.
        output_dir (str): Directory receiving the products.
        input_path (Optional[str]): Overrides the configured LAS/LAZ file.

    Returns:
        int: Process exit code.
    """
    from canopyscan.config import load_config
    from canopyscan.pipeline import run_pipeline, write_outputs

    try:
        config = load_config(config_path)
        if input_path:
            config.input_path = input_path
        result = run_pipeline(config)
        written = write_outputs(result, output_dir, geographic_crs=config.output_crs)
    except CanopyScanError as e:
        logging.error(f"{type(e).__name__}: {e}")
        return 1

    s, t = result.summary, result.tall_summary
    print(f"treetops:        {s.count} (mean height {s.mean:.2f})")
    print(f"threshold (p{config.percentile * 100:.0f}): {result.threshold:.2f}")
    print(f"tall trees:      {t.count} (mean height {t.mean:.2f})")
    print(f"clusters:        {len({tree.cluster for tree in result.tall_trees if not tree.is_noise})}")
    for name, path in written.items():
        print(f"  {name:<17} {path}")
    return 0

def inspect_file(path: str) -> int:
    """
    Prints header metadata of a LAS/LAZ file without loading its points.
    """
    from canopyscan.lidar import PointCloud

    try:
        info = PointCloud.read_info(path)
    except CanopyScanError as e:
        logging.error(f"{type(e).__name__}: {e}")
        return 1

    crs = info["crs"]
    print(f"file:     {Path(path).name}")
    print(f"version:  {info['version']} (point format {info['point_format']})")
    print(f"points:   {info['point_count']}")
    print(f"bounds:   {info['bounds']}")
    print(f"z range:  {info['z_range']}")
    print(f"crs:      {crs.to_string() if crs is not None else 'undeclared'}")
    return 0

def main(argv: Optional[List[str]] = None) -> None:
    """
    Parses command-line arguments and routes execution to the appropriate subcommand.
    """
    parser = argparse.ArgumentParser(
        prog="canopyscan",
        description="Lidar canopy analysis: pit-free CHM, treetops, tallest trees and their clusters"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser(
        "run",
        help="Runs the full analysis described by a YAML configuration file."
    )
    run_parser.add_argument(
        "config",
        type=str,
        help="Path to the YAML configuration."
    )
    run_parser.add_argument(
        "--output",
        type=str,
        default="canopyscan_output",
        help="Directory for the CHM, tree layers and summary tables."
    )
    run_parser.add_argument(
        "--input",
        type=str,
        default=None,
        help="LAS/LAZ file overriding the configured input_path."
    )

    inspect_parser = subparsers.add_parser(
        "inspect",
        help="Prints the header metadata of a LAS/LAZ file."
    )
    inspect_parser.add_argument(
        "path",
        type=str,
        help="Path to the LAS/LAZ file."
    )

    args = parser.parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.INFO)

    if args.command == "run":
        sys.exit(run_analysis(args.config, args.output, args.input))
    elif args.command == "inspect":
        sys.exit(inspect_file(args.path))

if __name__ == "__main__":
    main()

#!/usr/bin/env python3
"""
Command-line interface: malheur [options] <task> <input>
"""

import argparse
import logging
import os
import sys
from typing import List, Optional

from . import __version__
from .config import MalheurConfig, load_config, make_config
from .errors import ConfigurationError, MalheurError
from .features.space import HashedFeatureSpace
from .pipeline import Task, run_cluster, run_kernel, run_prototype

logger = logging.getLogger("malheur")

VERSION_TEXT = (
    f" MALHEUR ({__version__}) - Automatic Malware Analysis\n"
    " Prototype extraction and kernel computation for malware behavior reports.\n"
)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments"""
    parser = argparse.ArgumentParser(
        prog="malheur",
        description="Automatic analysis of malware behavior reports",
    )
    parser.add_argument("task", type=str, help="Analysis task: prototype, kernel or cluster")
    parser.add_argument("input", type=str, help="Report file or directory of reports")

    parser.add_argument("-c", "--config", type=str, default=None,
                        help="Configuration file (JSON)")
    parser.add_argument("-r", "--result", type=str, default=None,
                        help="Save analysis results to file")
    parser.add_argument("-s", "--save-protos", type=str, default=None,
                        help="Save feature vectors of prototypes to file")
    parser.add_argument("-l", "--load-protos", type=str, default=None,
                        help="Load feature vectors of prototypes from file and assign "
                             "each report to its nearest prototype")
    parser.add_argument("-t", "--lookup-table", action="store_true",
                        help="Enable feature lookup table")
    parser.add_argument("-v", "--verbose", action="count", default=0,
                        help="Increase verbosity")
    parser.add_argument("-V", "--version", action="version", version=VERSION_TEXT)

    return parser.parse_args(argv)


def setup_logging(verbose: int) -> None:
    level = logging.WARNING if verbose == 0 else logging.INFO if verbose == 1 else logging.DEBUG
    logging.basicConfig(level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")


def build_config(args: argparse.Namespace) -> MalheurConfig:
    """Load the configuration and apply command-line overrides."""
    cfg = load_config(args.config) if args.config else MalheurConfig()
    data = cfg.model_dump()
    data["verbose"] = args.verbose
    if args.lookup_table:
        data["features"]["lookup_table"] = True
    return make_config(**data)


def check_args(task: Task, args: argparse.Namespace) -> None:
    """Sanity checks on required outputs, before anything is loaded."""
    if not os.access(args.input, os.R_OK):
        raise ConfigurationError(f"Could not access '{args.input}'")
    if args.save_protos and args.load_protos:
        raise ConfigurationError("Options '-s' and '-l' are mutually exclusive")

    if task is Task.PROTOTYPE:
        if not args.result and not args.save_protos:
            raise ConfigurationError("No output specified. See options '-s' and/or '-r'")
        if args.load_protos and not args.result:
            raise ConfigurationError("Loaded prototypes need an output. See option '-r'")
    elif task is Task.KERNEL:
        if not args.result:
            raise ConfigurationError("No output specified. See option '-r'")
        if args.save_protos or args.load_protos:
            logger.warning("Prototypes will not be extracted in this task")


def run(args: argparse.Namespace) -> None:
    task = Task.parse(args.task)
    check_args(task, args)

    cfg = build_config(args)
    if cfg.verbose > 1:
        logger.debug("Configuration: %s", cfg.model_dump())
    space = HashedFeatureSpace.from_config(cfg.features)

    if task is Task.PROTOTYPE:
        run_prototype(
            args.input, cfg,
            result_file=args.result,
            proto_file=args.load_protos or args.save_protos,
            load_protos=bool(args.load_protos),
            space=space,
        )
    elif task is Task.KERNEL:
        run_kernel(args.input, cfg, args.result, space=space)
    else:
        run_cluster(args.input, cfg, space=space)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging(args.verbose)

    try:
        run(args)
    except MalheurError as e:
        logger.error("%s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())

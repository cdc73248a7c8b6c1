# Copyright (c) 2024 randgeo developers
#
# This file is part of the randgeo project.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
#
# You may obtain a copy of the License at
#
# http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

""" CLI configuration for randgeo"""
import argparse
import logging
from argparse import ArgumentParser

import argcomplete

import randgeo
from randgeo.errors import RandomizationError
from randgeo.workflow import run_from_config


def get_parser() -> ArgumentParser:
    """
    ArgumentParser for randgeo

    :return: parser
    """
    parser = argparse.ArgumentParser(prog="randgeo", description="randgeo command-line interface")

    parser.add_argument(
        "--loglevel",
        default="INFO",
        choices=("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"),
        help="Logger level (default: INFO. Should be one of (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    parser.add_argument(
        "--version",
        "-v",
        action="version",
        version=f"%(prog)s {randgeo.__version__}",
    )

    subparsers = parser.add_subparsers(title="Subcommands", dest="command")

    # Subcommand for randomization
    randomize_parser = subparsers.add_parser(
        "randomize", help="Randomize two point tables within a raster, preserving their pairwise distances"
    )
    randomize_parser.add_argument("config", help="path to a YAML configuration file")

    return parser


def main() -> None:
    """
    Call randgeo's main
    """
    parser = get_parser()
    argcomplete.autocomplete(parser)
    args = parser.parse_args()

    # Show help if no subcommand is provided
    if not args.command:
        parser.print_help()
        return

    # Set the logging configuration
    logging.basicConfig(level=args.loglevel)

    # Handle randomize subcommand
    if args.command == "randomize":
        try:
            run_from_config(args.config)
        except (RandomizationError, ValueError, FileNotFoundError) as e:
            logging.error(f"Error: {e}")
            raise SystemExit(1) from e


if __name__ == "__main__":
    main()

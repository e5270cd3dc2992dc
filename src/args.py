"""Argument parsing functionality for gemnix."""

import argparse
from constants import Constants

LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']


def build_parser():
    """Builds the argument parser for the program."""
    parser = argparse.ArgumentParser(
        prog="gemnix",
        description=(
            "gemnix - Generate a Nix gemset expression from a Bundler lockfile"
        ),
        add_help=True,
    )

    parser.add_argument("--gemfile",
                        dest="GEMFILE",
                        help="Path to the Gemfile (default: Gemfile)",
                        action="store", type=str,
                        default=Constants.GEMFILE)
    parser.add_argument("--lockfile",
                        dest="LOCKFILE",
                        help="Path to the lockfile (default: Gemfile.lock)",
                        action="store", type=str,
                        default=Constants.LOCKFILE)
    parser.add_argument("--gemset",
                        dest="GEMSET",
                        help="Path to the gemset to write (default: gemset.nix)",
                        action="store", type=str,
                        default=Constants.GEMSET_FILE)

    platform_group = parser.add_mutually_exclusive_group()
    platform_group.add_argument("--platform",
                        dest="PLATFORM",
                        help="Resolve gems for a single platform (default: ruby)",
                        action="store", type=str,
                        default=Constants.DEFAULT_PLATFORM)
    platform_group.add_argument("--platforms",
                        dest="PLATFORMS",
                        help=("Resolve gems for several platforms, writing one gemset "
                              "per platform (comma separated, e.g. ruby,x86_64-linux)"),
                        action="store", type=str)

    parser.add_argument("-l", "--lock",
                        dest="LOCK",
                        help="Run `bundle lock` first when the lockfile is missing or stale",
                        action="store_true")
    parser.add_argument("-c", "--config",
                        dest="CONFIG",
                        help="Path to configuration file (YAML)",
                        action="store",
                        type=str)

    parser.add_argument("--loglevel",
                        dest="LOG_LEVEL",
                        help="Set the logging level",
                        action="store",
                        type=str.upper,
                        choices=LOG_LEVELS,
                        default='INFO')
    parser.add_argument("--logfile",
                        dest="LOG_FILE",
                        help="Log output file",
                        action="store",
                        type=str)
    parser.add_argument("-q", "--quiet",
                        dest="QUIET",
                        help="Only log warnings and errors.",
                        action="store_true")
    parser.add_argument("-v", "--version",
                        action="version",
                        version=f"%(prog)s {Constants.VERSION}")
    return parser


def parse_args(argv=None):
    """Parses the arguments passed to the program."""
    return build_parser().parse_args(argv)

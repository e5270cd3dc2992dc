"""gemnix - Generate a Nix gemset expression from a Bundler lockfile.

    Raises:
        SystemExit: With an ExitCodes value when the run is aborted.

    Returns:
        int: Exit code
"""
import logging
import os
import sys
import tempfile
from pathlib import Path

from args import parse_args
from bundler.gemfile_parser import read_gemfile
from bundler.lockfile_parser import read_lockfile
from bundler.settings import BundlerSettings, gem_caches
from cli_config import apply_config_overrides, load_config
from common.errors import (
    ConfigError,
    ExternalToolError,
    GemnixError,
    GraphIntegrityError,
    LockfileError,
)
from common.logging_utils import Timer, configure_logging, extra_context, is_debug_enabled
from common.shell import run_interactive
from constants import Constants, ExitCodes
from gemset.converter import ConversionPipeline
from gemset.fetcher import ArtifactFetcher
from gemset.nixer import serialize
from gemset.prior import parse_gemset

logger = logging.getLogger(__name__)

# Variables that would make `bundle lock` resolve against an installed bundle
_BUNDLER_RUNTIME_VARS = ("BUNDLE_PATH", "BUNDLE_FROZEN", "BUNDLE_BIN_PATH", "RUBYOPT", "RUBYLIB")


def setup_logging(args):
    """Configure logging based on CLI arguments."""
    level = "WARNING" if getattr(args, "QUIET", False) else getattr(args, "LOG_LEVEL", None)
    configure_logging(level)

    log_file = getattr(args, "LOG_FILE", None)
    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
        logging.getLogger().addHandler(file_handler)
        logger.debug("Logging to file: %s", log_file)


def path_with_platform(path, platform):
    """Insert the platform before the extension of ``path``.

    The generic ``ruby`` platform keeps the path unchanged, so
    ``gemset.nix`` becomes ``gemset.x86_64-linux.nix`` for x86_64-linux.
    """
    if platform == Constants.DEFAULT_PLATFORM:
        return path
    p = Path(path)
    if p.suffix:
        return str(p.with_name(f"{p.stem}.{platform}{p.suffix}"))
    return f"{path}.{platform}"


def platforms_and_paths(args):
    """List the (platform, output path) pairs requested on the command line."""
    if getattr(args, "PLATFORMS", None):
        platforms = [p.strip() for p in args.PLATFORMS.split(",") if p.strip()]
        seen = []
        for platform in platforms:
            if platform not in seen:
                seen.append(platform)
        return [(platform, path_with_platform(args.GEMSET, platform)) for platform in seen]
    return [(args.PLATFORM, args.GEMSET)]


def lockfile_stale(gemfile, lockfile):
    """True when the lockfile is missing or older than the Gemfile."""
    if not os.path.isfile(lockfile):
        return True
    if not os.path.isfile(gemfile):
        return False
    return os.path.getmtime(lockfile) < os.path.getmtime(gemfile)


def lock(gemfile, lockfile, env=None):
    """Run `bundle lock` for ``gemfile`` when its lockfile is stale.

    Raises:
        ExternalToolError: When bundler fails.
    """
    if not lockfile_stale(gemfile, lockfile):
        logger.debug("Lockfile %s is up to date", lockfile)
        return
    child = {k: v for k, v in (os.environ if env is None else env).items() if k not in _BUNDLER_RUNTIME_VARS}
    child["BUNDLE_GEMFILE"] = os.path.abspath(gemfile)
    logger.info("Locking %s", gemfile)
    run_interactive(Constants.BUNDLE, "lock", "--lockfile", os.path.abspath(lockfile), env=child)


def save_gemset(path, gems):
    """Write the gemset atomically with mode 0644."""
    target = os.path.abspath(path)
    directory = os.path.dirname(target)
    fd, tmp_path = tempfile.mkstemp(prefix=".gemset-", suffix=".nix", dir=directory)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(serialize(gems))
            fh.write("\n")
        os.chmod(tmp_path, 0o644)
        os.replace(tmp_path, target)
    except OSError:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise
    logger.info("Wrote %d gems to %s", len(gems), path)


def convert(args, env=None):
    """Run the conversion for every requested platform."""
    env = dict(os.environ if env is None else env)
    root = Path(os.path.abspath(args.LOCKFILE)).parent
    settings = BundlerSettings(root, env=env)
    caches = gem_caches(root, env=env)
    lockfile = read_lockfile(args.LOCKFILE, caches)
    declared = read_gemfile(args.GEMFILE)
    fetcher = ArtifactFetcher(settings.credentials_for, env=env)

    for platform, path in platforms_and_paths(args):
        with Timer() as t:
            pipeline = ConversionPipeline(
                lockfile,
                declared,
                target_platform=platform,
                fetcher=fetcher,
                prior=parse_gemset(path),
                lockfile_path=args.LOCKFILE,
            )
            gems = pipeline.convert()
            save_gemset(path, gems)
        if is_debug_enabled(logger):
            logger.debug(
                "Platform converted",
                extra=extra_context(
                    event="complete",
                    component="cli",
                    target=platform,
                    count=len(gems),
                    duration_ms=t.duration_ms(),
                ),
            )


def _abort(exc, code):
    logger.error("%s", exc)
    sys.exit(code.value)


def main():
    """Main function of the program."""
    args = parse_args()
    setup_logging(args)

    try:
        apply_config_overrides(load_config(getattr(args, "CONFIG", None)))
    except ConfigError as exc:
        _abort(exc, ExitCodes.CONFIG_ERROR)

    try:
        if args.LOCK:
            lock(args.GEMFILE, args.LOCKFILE)
        convert(args)
    except (LockfileError, OSError) as exc:
        _abort(exc, ExitCodes.FILE_ERROR)
    except GraphIntegrityError as exc:
        _abort(exc, ExitCodes.GRAPH_ERROR)
    except ExternalToolError as exc:
        _abort(exc, ExitCodes.TOOL_ERROR)
    except ConfigError as exc:
        _abort(exc, ExitCodes.CONFIG_ERROR)
    except GemnixError as exc:
        _abort(exc, ExitCodes.FILE_ERROR)

    sys.exit(ExitCodes.SUCCESS.value)


if __name__ == "__main__":
    main()

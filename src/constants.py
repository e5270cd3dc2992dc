"""Constants used in the project."""

from enum import Enum


class ExitCodes(Enum):
    """Exit codes for the program.

    Args:
        Enum (int): Exit codes for the program.
    """

    SUCCESS = 0
    FILE_ERROR = 1
    GRAPH_ERROR = 2
    TOOL_ERROR = 3
    CONFIG_ERROR = 4


class SourceTypes(Enum):
    """Source kinds emitted in the ``source`` block of a gemset entry.

    Args:
        Enum (string): Source kinds supported by the program.
    """

    GEM = "gem"
    GIT = "git"
    PATH = "path"


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration constants; not intended to provide behavior.
    """

    NIX_INSTANTIATE = "nix-instantiate"
    NIX_PREFETCH_URL = "nix-prefetch-url"
    NIX_PREFETCH_GIT = "nix-prefetch-git"
    NIX_HASH = "nix-hash"
    BUNDLE = "bundle"

    VERSION = "0.1.0"

    # nix base-32 sha256 digests are always 52 characters long
    SHA256_32_PATTERN = r"^[a-z0-9]{52}$"

    GEMFILE = "Gemfile"
    LOCKFILE = "Gemfile.lock"
    GEMSET_FILE = "gemset.nix"
    DEFAULT_PLATFORM = "ruby"
    BOOTSTRAP_DEPENDENCY = "bundler"
    DEFAULT_GROUP = "default"

    CACHE_DIR_NAME = "gemnix"
    GIT_FETCH_HOME = "/homeless-shelter"

    LOG_FORMAT = "[%(levelname)s] %(message)s"
    LOG_LEVEL_ENV = "GEMNIX_LOG_LEVEL"

    REQUEST_TIMEOUT = 30  # Timeout in seconds for all HTTP requests
    SUBPROCESS_TIMEOUT = 600  # Timeout in seconds for nix/bundle invocations
    HTTP_RETRY_MAX = 3
    HTTP_RETRY_BASE_DELAY_SEC = 0.3
    DOWNLOAD_CHUNK_SIZE = 64 * 1024

    # Extra local .gem cache directories (from the config file)
    GEM_CACHES = []
    # Overrides $XDG_CACHE_HOME/gemnix when set
    CACHE_DIR = None

"""Constants used in the project."""

from enum import Enum


class ExitCodes(Enum):
    """Exit codes for the program.

    Args:
        Enum (int): Exit codes for the program.
    """

    SUCCESS = 0
    FILE_ERROR = 1
    CONNECTION_ERROR = 2
    INPUT_ERROR = 3
    INCOMPLETE_RELEASE = 4


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration constants; not intended to provide behavior.
    """

    LOG_FORMAT = "[%(levelname)s] %(message)s"
    ENV_LOG_LEVEL = "JLLGEN_LOG_LEVEL"
    REQUEST_TIMEOUT = 30  # Timeout in seconds for all HTTP requests

    # Identity scheme inherited from the legacy package namespace
    UUID_PACKAGE = "cfb74b52-ec16-5bb7-a574-95d9e393895e"
    JLL_SUFFIX = "_jll"

    # Package registries consulted for previously published versions
    REGISTRY_URLS = [
        "https://raw.githubusercontent.com/JuliaRegistries/General/master",
    ]
    ENV_REGISTRIES = "JLLGEN_REGISTRIES"

    # Host runtime entries written into every manifest
    HOST_COMPAT = ("julia", "1.0")
    HOST_STDLIBS = {
        "Artifacts": "56f22d72-fd6d-98f1-02f0-08ddc0907c33",
        "Libdl": "8f399da3-3557-5675-b5ff-fb832c97cbdb",
        "Pkg": "44cfe95a-1eb2-52ea-b672-e2afdf69b78f",
    }
    RUNTIME_STDLIBS = ["Libdl", "Pkg"]

    # Generated package layout
    WRAPPERS_DIR = "wrappers"
    ARTIFACTS_TOML = "Artifacts.toml"
    PROJECT_TOML = "Project.toml"

    # Repository hosting
    GITHUB_API_BASE = "https://api.github.com"
    GITHUB_WEB_BASE = "https://github.com"
    ENV_GITHUB_TOKEN = "GITHUB_TOKEN"
    DEFAULT_BRANCH = "master"

    # Recognized CI environment, used for provenance links in READMEs
    ENV_CI_FLAG = "YGGDRASIL"
    ENV_CI_COMMIT = "BUILD_SOURCEVERSION"
    ENV_CI_PROJECT = "PROJECT"
    CI_TREE_URL = "https://github.com/JuliaPackaging/Yggdrasil"
    WRAPPERS_ORG_URL = "https://github.com/JuliaBinaryWrappers"

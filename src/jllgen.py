"""jllgen - generate binary wrapper packages from prebuilt tarballs."""
import logging
import os
import sys

from args import parse_args
from cli_config import ConfigError, load_build_description, load_config
from common.logging_utils import configure_logging, extra_context, is_debug_enabled
from constants import Constants, ExitCodes
from errors import (
    BuildDependencyError,
    IncompleteReleaseError,
    InvalidPackageNameError,
    JLLGenError,
    RegistryError,
    RepositoryError,
)
from identity import jll_uuid
from jllruntime.artifacts import ArtifactError

logger = logging.getLogger(__name__)

_EXIT_CODES = {
    InvalidPackageNameError: ExitCodes.INPUT_ERROR,
    BuildDependencyError: ExitCodes.INPUT_ERROR,
    ConfigError: ExitCodes.INPUT_ERROR,
    RegistryError: ExitCodes.CONNECTION_ERROR,
    RepositoryError: ExitCodes.CONNECTION_ERROR,
    IncompleteReleaseError: ExitCodes.INCOMPLETE_RELEASE,
}


def exit_code_for(exc):
    """Map an exception to the process exit code."""
    for cls in type(exc).__mro__:
        if cls in _EXIT_CODES:
            return _EXIT_CODES[cls]
    return ExitCodes.FILE_ERROR


def _default_code_dir(name):
    return os.path.join(os.getcwd(), f"{name}{Constants.JLL_SUFFIX}")


def cmd_uuid(args):
    print(jll_uuid(args.name))


def cmd_version(args):
    from registry.client import RegistryClient  # pylint: disable=import-outside-toplevel
    from versioning.parser import parse_version  # pylint: disable=import-outside-toplevel
    from versioning.resolver import get_next_wrapper_version  # pylint: disable=import-outside-toplevel

    registry = RegistryClient(args.REGISTRIES) if args.REGISTRIES else None
    print(get_next_wrapper_version(args.name, parse_version(args.source_version), registry=registry))


def cmd_build(args):
    from assembler import build_jll_package  # pylint: disable=import-outside-toplevel

    desc = load_build_description(args.description)
    if not desc.outputs:
        raise ConfigError(f"{args.description} records no build outputs")
    build_jll_package(
        desc.name,
        desc.version,
        desc.sources,
        args.CODE_DIR or _default_code_dir(desc.name),
        desc.outputs,
        desc.dependencies,
        args.BIN_PATH,
        verbose=args.VERBOSE,
        lazy_artifacts=args.LAZY_ARTIFACTS or desc.lazy_artifacts,
        init_block=desc.init_block,
        from_scratch=args.FROM_SCRATCH,
    )


def cmd_rebuild(args):
    from rebuild import rebuild_jll_package  # pylint: disable=import-outside-toplevel

    desc = load_build_description(args.description)
    rebuild_jll_package(
        desc.name,
        desc.version,
        desc.sources,
        desc.platforms,
        desc.products,
        desc.dependencies,
        args.DOWNLOAD_DIR,
        args.UPLOAD_PREFIX,
        code_dir=args.CODE_DIR,
        verbose=args.VERBOSE,
        lazy_artifacts=args.LAZY_ARTIFACTS or desc.lazy_artifacts,
        init_block=desc.init_block,
        from_scratch=not args.KEEP_EXISTING,
    )


def cmd_init(args):
    from repository.provision import init_jll_package  # pylint: disable=import-outside-toplevel

    init_jll_package(
        args.name,
        args.CODE_DIR or _default_code_dir(args.name),
        args.deploy_repo,
        gh_username=args.GH_USERNAME,
    )


COMMANDS = {
    "uuid": cmd_uuid,
    "version": cmd_version,
    "build": cmd_build,
    "rebuild": cmd_rebuild,
    "init": cmd_init,
}


def main(argv=None):
    """Main function of the program."""
    args = parse_args(argv)
    configure_logging(args.LOG_LEVEL, args.LOG_FILE)

    if is_debug_enabled(logger):
        logger.debug(
            "CLI start",
            extra=extra_context(event="function_entry", component="cli", action=args.COMMAND)
        )

    try:
        load_config(args.CONFIG)
        COMMANDS[args.COMMAND](args)
    except JLLGenError as exc:
        logger.error("%s", exc)
        return exit_code_for(exc).value
    except ArtifactError as exc:
        logger.error("%s", exc)
        return ExitCodes.FILE_ERROR.value
    except OSError as exc:
        logger.error("File error: %s", exc)
        return ExitCodes.FILE_ERROR.value
    return ExitCodes.SUCCESS.value


if __name__ == "__main__":
    sys.exit(main())

"""Argument parsing functionality for jllgen."""

import argparse


def _add_common(parser):
    parser.add_argument("--loglevel",
                        dest="LOG_LEVEL",
                        help="Set the logging level",
                        action="store",
                        type=str,
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
                        default=None)
    parser.add_argument("--logfile",
                        dest="LOG_FILE",
                        help="Log output file",
                        action="store",
                        type=str)
    parser.add_argument("-c", "--config",
                        dest="CONFIG",
                        help="Path to configuration file (YAML, YML, or JSON)",
                        action="store",
                        type=str)


def _add_generation(parser):
    parser.add_argument("description",
                        help="Build description file (YAML or JSON)",
                        type=str)
    parser.add_argument("-o", "--code-dir",
                        dest="CODE_DIR",
                        help="Directory the package is generated in (default: ./<Name>_jll)",
                        action="store",
                        type=str)
    parser.add_argument("--lazy-artifacts",
                        dest="LAZY_ARTIFACTS",
                        help="Mark the bound artifacts as lazily downloaded",
                        action="store_true")
    parser.add_argument("-v", "--verbose",
                        dest="VERBOSE",
                        help="Log every generated platform",
                        action="store_true")


def build_parser():
    """Build the top-level parser with one subparser per command."""
    parser = argparse.ArgumentParser(
        prog="jllgen",
        description="Generate binary wrapper packages from prebuilt tarballs",
        add_help=True,
    )
    _add_common(parser)
    sub = parser.add_subparsers(dest="COMMAND", metavar="COMMAND", required=True)

    uuid_p = sub.add_parser("uuid", help="Print the identifier of a wrapper package")
    uuid_p.add_argument("name", help="Package name, including the _jll suffix", type=str)

    version_p = sub.add_parser("version", help="Print the next wrapper version for a source version")
    version_p.add_argument("name", help="Package name without the _jll suffix", type=str)
    version_p.add_argument("source_version", help="Version of the wrapped sources", type=str)
    version_p.add_argument("--registry",
                           dest="REGISTRIES",
                           help="Registry root (URL or local checkout); repeatable",
                           action="append",
                           type=str)

    build_p = sub.add_parser("build", help="Generate a package from recorded build outputs")
    _add_generation(build_p)
    build_p.add_argument("--bin-path",
                         dest="BIN_PATH",
                         help="Download location prefix of the tarballs",
                         action="store",
                         type=str,
                         required=True)
    build_p.add_argument("--from-scratch",
                         dest="FROM_SCRATCH",
                         help="Remove previously generated sources and bindings first",
                         action="store_true")

    rebuild_p = sub.add_parser("rebuild", help="Regenerate a package from downloaded tarballs")
    _add_generation(rebuild_p)
    rebuild_p.add_argument("--download-dir",
                           dest="DOWNLOAD_DIR",
                           help="Directory holding one tarball per platform",
                           action="store",
                           type=str,
                           required=True)
    rebuild_p.add_argument("--upload-prefix",
                           dest="UPLOAD_PREFIX",
                           help="Download location prefix of the tarballs",
                           action="store",
                           type=str,
                           required=True)
    rebuild_p.add_argument("--keep-existing",
                           dest="KEEP_EXISTING",
                           help="Do not remove previously generated sources and bindings",
                           action="store_true")

    init_p = sub.add_parser("init", help="Create and check out the deploy repository of a package")
    init_p.add_argument("name", help="Package name without the _jll suffix", type=str)
    init_p.add_argument("deploy_repo", help="GitHub repository, as owner/name", type=str)
    init_p.add_argument("-o", "--code-dir",
                        dest="CODE_DIR",
                        help="Checkout directory (default: ./<Name>_jll)",
                        action="store",
                        type=str)
    init_p.add_argument("--gh-username",
                        dest="GH_USERNAME",
                        help="User name sent with the token (default: token owner)",
                        action="store",
                        type=str)

    return parser


def parse_args(argv=None):
    """Parses the arguments passed to the program."""
    return build_parser().parse_args(argv)

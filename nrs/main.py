#!/usr/bin/env python3
import argparse
import sys
import os
import importlib
import pkgutil
import importlib.metadata as metadata
from nrs.cli_plugins.base import SubcommandPlugin

PLUGIN_DIR = os.path.join(os.path.dirname(__file__), "cli_plugins")


def get_version():
    """Get the version from importlib.metadata or fall back to version.txt."""
    try:
        return metadata.version("nrs")
    except metadata.PackageNotFoundError:
        # source checkout
        version_file = os.path.join(os.path.dirname(__file__), "..", "version.txt")
        if os.path.exists(version_file):
            with open(version_file) as f:
                return f.read().strip()
    return "unknown"


def discover_plugins():
    """Import every module in cli_plugins and instantiate the SubcommandPlugin classes it defines.

    Classes imported into a module from elsewhere are skipped so a plugin is
    only registered once. A module that fails to import is reported and
    skipped; the remaining sub-commands stay usable.

    Returns:
        list: Plugin instances sorted by order, then by name.
    """
    plugins = []
    for _, name, ispkg in pkgutil.iter_modules([PLUGIN_DIR]):
        if ispkg:
            continue
        try:
            mod = importlib.import_module(f"nrs.cli_plugins.{name}")
        except Exception as e:
            print(f"Warning: Failed to load plugin {name}: {e}", file=sys.stderr)
            continue
        for attr in dir(mod):
            obj = getattr(mod, attr)
            if (
                isinstance(obj, type)
                and issubclass(obj, SubcommandPlugin)
                and obj is not SubcommandPlugin
                and obj.__module__ == mod.__name__
            ):
                plugins.append(obj())

    return sorted(plugins, key=lambda p: (p.get_order(), p.get_name()))


def build_arg_parser(plugins):
    """Build the top-level parser with one sub-parser per plugin.

    The plugins' epilogs are concatenated into the top-level help.
    """
    epilogs = [plugin.get_epilog() for plugin in plugins if plugin.get_epilog().strip()]
    epilog = "\n".join(epilogs) if epilogs else ""

    parser = argparse.ArgumentParser(
        prog="nrs",
        description="N-Run Stability: repeated start/serve/teardown stress test for LLM serving frameworks",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=epilog,
    )
    parser.add_argument("--version", action="version", version=get_version())
    subparsers = parser.add_subparsers(dest="command", help="Available commands")
    for plugin in plugins:
        plugin.get_parser(subparsers)
    return parser


def main(plugins=None, argv=None):
    if plugins is None:
        plugins = discover_plugins()
    parser = build_arg_parser(plugins)
    args = parser.parse_args(argv)

    if hasattr(args, "_plugin"):
        args._plugin.run(args)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()

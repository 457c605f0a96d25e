import sys


class SubcommandPlugin:
    """Base class for nrs sub-commands. Subclasses are discovered from this package at startup."""

    def get_name(self):
        raise NotImplementedError

    def get_parser(self, subparsers):
        """Register the sub-command with argparse and point `_plugin` at self."""
        raise NotImplementedError

    def get_epilog(self):
        """Usage examples appended to the top-level help. Default is empty."""
        return ""

    def get_order(self):
        """Display order in the top-level help, lower first."""
        return 0

    def run(self, args):
        raise NotImplementedError

    @staticmethod
    def fail(message, exit_code=1):
        """Print an error for the operator and leave with a non-zero status."""
        print(f"ERROR: {message}", file=sys.stderr)
        sys.exit(exit_code)

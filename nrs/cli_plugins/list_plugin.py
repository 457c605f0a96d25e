import os

from .base import SubcommandPlugin
from nrs.lib.inference import available_frameworks

INPUT_DIR = os.path.join(os.path.dirname(os.path.dirname(__file__)), "input")
PRESETS_DIR = os.path.join(INPUT_DIR, "presets")


class ListPlugin(SubcommandPlugin):
    @staticmethod
    def discover_presets(presets_dir=PRESETS_DIR):
        """Return sorted preset file names (YAML or JSON) shipped with the package."""
        if not os.path.isdir(presets_dir):
            return []
        return sorted(f for f in os.listdir(presets_dir) if f.endswith((".yaml", ".yml", ".json")))

    def get_name(self):
        return "list"

    def get_parser(self, subparsers):
        parser = subparsers.add_parser("list", help="List packaged presets and supported frameworks")
        parser.set_defaults(_plugin=self)
        return parser

    def get_epilog(self):
        return """
List Commands:
  nrs list                           List presets and frameworks"""

    def run(self, args):
        print("Available presets:")
        presets = self.discover_presets()
        for preset in presets:
            print(f"  - {preset}")
        if not presets:
            print("  <none>")
        print()
        print("Supported frameworks:")
        for name in available_frameworks():
            print(f"  - {name}")

import os
import shutil

from .base import SubcommandPlugin
from .list_plugin import INPUT_DIR, PRESETS_DIR, ListPlugin

PROMPTS_FILE = os.path.join(INPUT_DIR, "prompts.json")


class CopyConfigPlugin(SubcommandPlugin):
    def get_name(self):
        return "copy-config"

    def get_parser(self, subparsers):
        parser = subparsers.add_parser(
            "copy-config", help="List or copy packaged presets. Lists presets if no preset is given."
        )
        parser.add_argument("preset", nargs="?", help="Preset file name (e.g. sglang-glm4-rocm.yaml) or 'prompts.json'")
        parser.add_argument("--output", help="Destination file or directory (default: current directory)")
        parser.add_argument("--force", action="store_true", help="Force overwrite of existing files")
        parser.set_defaults(_plugin=self)
        return parser

    def get_epilog(self):
        return """
Copy-Config Commands:
  nrs copy-config                                       List all packaged presets
  nrs copy-config sglang-glm4-rocm.yaml                 Copy a preset into the current directory
  nrs copy-config sglang-glm4-rocm.yaml --output ~/my.yaml --force   Copy and overwrite
  nrs copy-config prompts.json --output ~/prompts.json  Copy the default prompts file"""

    @staticmethod
    def find_source(name):
        if name == os.path.basename(PROMPTS_FILE):
            return PROMPTS_FILE if os.path.isfile(PROMPTS_FILE) else None
        candidate = os.path.join(PRESETS_DIR, name)
        if os.path.isfile(candidate):
            return candidate
        # allow the extension to be left out
        for ext in (".yaml", ".yml", ".json"):
            if os.path.isfile(candidate + ext):
                return candidate + ext
        return None

    def copy(self, name, output=None, force=False):
        """
        Copy a packaged preset or the prompts file.

        Returns:
            Destination path on success, None otherwise
        """
        src = self.find_source(name)
        if src is None:
            print(f"Config file not found: {name}")
            print("Use 'nrs copy-config' to see available presets.")
            return None

        output = output or os.getcwd()
        output = os.path.expanduser(output)
        if os.path.isdir(output):
            dest = os.path.join(output, os.path.basename(src))
        else:
            dest = output
        if os.path.exists(dest) and not force:
            print(f"Error: File {dest} already exists. Use --force to overwrite.")
            return None
        dest_dir = os.path.dirname(dest)
        if dest_dir:
            os.makedirs(dest_dir, exist_ok=True)
        try:
            shutil.copyfile(src, dest)
        except OSError as e:
            print(f"Error copying {src} to {dest}: {e}")
            return None
        print(f"Copied {src} to {dest}")
        return dest

    def run(self, args):
        if not args.preset:
            print(f"Presets under {PRESETS_DIR}:")
            for preset in ListPlugin.discover_presets():
                print(f"  {preset}")
            print(f"Prompts file: {os.path.basename(PROMPTS_FILE)}")
            return
        if self.copy(args.preset, args.output, args.force) is None:
            self.fail(f"could not copy {args.preset}")

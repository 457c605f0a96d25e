# run_all_unittests.py
import sys

import unittest


def main():
    loader = unittest.TestLoader()
    suite = unittest.TestSuite()

    # every unittests/ directory under the nrs package
    suite.addTests(loader.discover(start_dir="nrs", pattern="test_*.py", top_level_dir="."))

    runner = unittest.TextTestRunner(verbosity=2)
    result = runner.run(suite)

    return 0 if result.wasSuccessful() else 1


if __name__ == "__main__":
    sys.exit(main())

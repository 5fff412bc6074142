"""Allow running as `python -m statelock`."""

import sys

from statelock.cli.main import main

if __name__ == "__main__":
    sys.exit(main())

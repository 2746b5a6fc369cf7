"""Allow running as ``python -m mediaprobe``."""

import sys

from mediaprobe.cli import main

if __name__ == "__main__":
    sys.exit(main())

"""
Module execution entry point.

Allows running with: python -m imagesign_cli
"""

import sys
from imagesign_cli.main import main

if __name__ == "__main__":
    sys.exit(main())

"""
Module execution entry point.

Allows running with: python -m gopipe_cli
"""

import sys
from gopipe_cli.main import main

if __name__ == "__main__":
    sys.exit(main())

"""Allow running the package as a module: python -m stellar_vault"""

import sys

from stellar_vault.cli import main

if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))

"""
Run the wecsubs command-line interface with ``python -m wecsubs``.
"""
import sys

from .cli import main

sys.exit(main())

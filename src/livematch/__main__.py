"""Allow ``python -m livematch``."""
import sys

from .main import main

sys.exit(main())

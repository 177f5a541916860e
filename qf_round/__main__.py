"""Allow ``python -m qf_round``."""

import sys

from qf_round.cli import main

sys.exit(main())

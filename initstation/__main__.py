"""Allow `python -m initstation`."""

import sys

from initstation.cli import main

sys.exit(main())

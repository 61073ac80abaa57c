from __future__ import annotations

import sys
from pathlib import Path

# Let the suite import ``quotaboard`` from a plain checkout without installing it.
_SRC_PATH = Path(__file__).resolve().parents[1] / "src"

if str(_SRC_PATH) not in sys.path:
    sys.path.insert(0, str(_SRC_PATH))

from __future__ import annotations

import sys
from pathlib import Path

# `detect_kit` and `Live_Preview` live at the repo root; make them importable
# when pytest runs from a checkout that was not `pip install -e`'d.
_REPO_ROOT = str(Path(__file__).resolve().parents[1])
if _REPO_ROOT not in sys.path:
    sys.path.insert(0, _REPO_ROOT)

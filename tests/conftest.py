"""Make the buildmedic package importable without installing it."""
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).parent.parent

if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

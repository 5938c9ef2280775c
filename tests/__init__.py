# tests/__init__.py
"""
LogGuard Test Suite

Backend calls go to an in-memory FastAPI app (tests/fake_backend.py).
Run tests with: python -m pytest tests/
"""

import sys
from pathlib import Path

# Add parent directory to path so tests can import from logguard module
# This is needed because tests/ is a sibling of logguard/, not inside it
_parent_dir = Path(__file__).parent.parent
if str(_parent_dir) not in sys.path:
    sys.path.insert(0, str(_parent_dir))

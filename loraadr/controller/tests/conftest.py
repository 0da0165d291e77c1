"""Test configuration for controller tests.

Ensures that the project root is on ``sys.path`` so that the ``loraadr``
package can be imported when tests are executed from within the
``loraadr/controller`` subpackage.
"""

from __future__ import annotations

import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[3]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import sys
import os
from datetime import datetime, timedelta, timezone

import pytest

# Add backend directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from app.models import Lead

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def make_lead():
    """Factory for Lead objects with sensible defaults."""
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        fields = {
            "id": f"lead-{counter['n']}",
            "name": "Sarah Johnson",
            "email": f"sarah{counter['n']}@gmail.com",
            "phone": f"555-010{counter['n']}",
            "createdAt": (NOW - timedelta(hours=1)).isoformat(),
        }
        fields.update(overrides)
        return Lead(**fields)

    return _make

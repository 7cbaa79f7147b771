import sys
from pathlib import Path

SRC = Path(__file__).resolve().parents[1] / "src"

# Allow running the suite from a checkout without installing the package.
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

import pytest
import structlog


@pytest.fixture(autouse=True)
def _reset_structlog():
    # The CLI configures structlog against the (captured) sys.stdout; reset it
    # so later tests don't log into a stream pytest has already closed.
    yield
    structlog.reset_defaults()

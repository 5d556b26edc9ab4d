# backend/tests/conftest.py
from __future__ import annotations

import os
import tempfile

# Settings and the engine are built at import time; point them at a scratch db first.
_TMP = tempfile.mkdtemp(prefix="pgstay-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP, 'test.db')}"
os.environ["AUTH_MODE"] = "dev"
os.environ["APP_ENV"] = "test"
for _k in ("SMTP_HOST", "RAZORPAY_KEY_ID", "RAZORPAY_KEY_SECRET"):
    os.environ.pop(_k, None)

import pytest  # noqa: E402

from pgstay import models  # noqa: E402,F401
from pgstay.db import Base, engine  # noqa: E402


@pytest.fixture(autouse=True)
def _fresh_schema():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield

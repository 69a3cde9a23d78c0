from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

ROOT = Path(__file__).resolve().parent
sys.path.append(str(ROOT))

os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["DATABASE_WRITE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret-key"

from maintdb.database import Base  # noqa: E402
from maintdb.apps.accounts import models as account_models  # noqa: E402
from maintdb.apps.plant import models as plant_models  # noqa: E402
from maintdb.apps.faults import models as fault_models  # noqa: E402
from maintdb.apps.scheduling import models as scheduling_models  # noqa: E402
from maintdb.apps.audit import models as audit_models  # noqa: E402


@pytest.fixture()
def db_session():
    engine = create_engine("sqlite+pysqlite:///:memory:")
    Base.metadata.create_all(
        bind=engine,
        tables=[
            plant_models.Department.__table__,
            account_models.User.__table__,
            plant_models.Machine.__table__,
            fault_models.FaultReport.__table__,
            fault_models.Assignment.__table__,
            fault_models.MaintenanceAction.__table__,
            scheduling_models.MaintenanceSchedule.__table__,
            audit_models.AuditEvent.__table__,
        ],
    )
    TestingSession = sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
    )
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()

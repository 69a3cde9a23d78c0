# backend/maintdb/__init__.py
"""
Import ORM models from each app so that:

- Alembic and Base.metadata.create_all() see all tables.
- String relationship targets ("User", "Machine", ...) resolve no matter
  which app is imported first.

The actual model classes are kept in maintdb/apps/*/models.py.
"""

from .apps.plant import models as plant_models                # departments + machines
from .apps.accounts import models as accounts_models          # users / roles / specialization
from .apps.faults import models as faults_models              # fault reports + assignments + actions
from .apps.scheduling import models as scheduling_models      # planned maintenance calendar
from .apps.audit import models as audit_models                # audit trail

__all__ = [
    "plant_models",
    "accounts_models",
    "faults_models",
    "scheduling_models",
    "audit_models",
]

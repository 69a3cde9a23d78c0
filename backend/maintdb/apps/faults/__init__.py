# backend/maintdb/apps/faults/__init__.py
"""
Faults app

Responsible for:
- Fault reports and their lifecycle (open -> assigned -> in_progress ->
  completed -> closed, edits reset to open)
- Specialization matching and eligible assignees
- The assignment ledger (at most one open assignment per fault)
- Maintenance actions logged against a fault
"""

# backend/maintdb/apps/accounts/__init__.py
"""
Accounts app

Responsible for:
- User accounts and roles
- Specialization of maintenance personnel
- The personnel roster offered when assigning faults
"""

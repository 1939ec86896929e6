"""
Scripts Package.

Operational scripts for the back office.

Scripts:
- create_admin: Seed an administrator account
"""

"""
API Routers.

- health: liveness at / and /api/v1
- dashboard: the caller's balance summary, public flags
- admin: KPIs, users, cash review, positions
- settings: admin-editable flags
"""

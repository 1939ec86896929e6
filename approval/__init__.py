"""
Approval Package.

Admin approval and rejection of registered accounts. A state
change is committed only after the user has been notified.
"""

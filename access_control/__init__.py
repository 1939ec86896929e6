"""
Access Control Package.

Credential hashing, session tokens, registration, login and
password changes.

Modules:
- passwords: Hashing and credential generation
- tokens: Signed session tokens and cookie options
- documents: KYC document storage
- service: register / login / change_password
- dependencies: FastAPI current-user and admin guards
- router: /api/v1/user routes
"""

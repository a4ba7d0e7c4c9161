"""
auth_service package

This package contains the core backend logic for the authentication service.
It includes:

- FastAPI application (`main.py`)
- Authentication flows returning tagged results (`service.py`, `errors.py`)
- Password hashing (`auth.py`) and role-scoped JWT logic (`tokens.py`)
- SQLAlchemy models, database integration and the user store (`models.py`, `db.py`, `users.py`)
- Templated email delivery (`mailer.py`)
- Environment-sourced settings (`config.py`) and Pydantic schemas (`schemas.py`)
"""

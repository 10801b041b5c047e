"""
Healthcare Plus Appointment Service

FastAPI backend for booking and triaging hospital appointments: patient
accounts, an admin-driven appointment lifecycle with email notifications,
dashboard statistics and health tips, persisted as flat JSON files.
"""

__version__ = "1.0.0"

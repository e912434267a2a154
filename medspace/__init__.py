"""
Med-space

A FastAPI backend for patient accounts, appointment booking,
OTP-based password reset and the newsletter mailing list.
"""

__version__ = "1.0.0"

# vrumi/core/constants.py
"""
Application constants.
"""

BRAND_NAME = "Vrumi Connect"

API_TITLE = f"{BRAND_NAME} API"
API_DESCRIPTION = (
    f"Backend API for {BRAND_NAME} - lesson booking, instructor availability "
    "and lesson package balances"
)
API_VERSION = "0.1.0"

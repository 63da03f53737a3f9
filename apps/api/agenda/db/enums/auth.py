"""Auth-related enums."""

from enum import Enum


class Role(str, Enum):
    """
    Tenant roles.

    - OWNER / ADMIN: business management, any provider in the tenant
    - ATTENDANT: front desk, books and cancels for any provider
    - PROVIDER: professional, manages only their own schedule
    """

    OWNER = "owner"
    ADMIN = "admin"
    ATTENDANT = "attendant"
    PROVIDER = "provider"

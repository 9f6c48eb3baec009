"""
Authenticated principal resolved from a Supabase session token.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class AuthenticatedUser:
    id: str
    email: Optional[str] = None

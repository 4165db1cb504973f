from enum import Enum
from dataclasses import dataclass


class UserRole(Enum):
    ADMIN = "ADMIN"
    USER = "USER"


@dataclass
class User:
    user_id: str
    email: str
    name: str
    role: UserRole

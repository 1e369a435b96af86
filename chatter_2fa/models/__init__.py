from .two_factor import UserTwoFactor

__all__ = [
    "UserTwoFactor",
]

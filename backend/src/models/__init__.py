# Package initialization
# Import all models so they are registered on Base.metadata
from .commission_rule import CommissionRule

__all__ = [
    "CommissionRule",
]

"""Category validation consulted before income/expense transactions are created"""

from typing import Iterable, Mapping, Protocol, Set

from billing_ledger.domain.exceptions import BusinessRuleError
from billing_ledger.domain.models import TransactionType


class CategoryValidator(Protocol):
    def validate_category_exists(self, name: str, txn_type: TransactionType) -> None:
        ...


class AllowAllCategories:
    """Default validator: every category is accepted"""

    def validate_category_exists(self, name: str, txn_type: TransactionType) -> None:
        return None


class StaticCategoryValidator:
    """Accepts only the categories configured for each transaction type"""

    def __init__(self, allowed: Mapping[TransactionType, Iterable[str]]):
        self.allowed: dict[TransactionType, Set[str]] = {
            TransactionType(txn_type): {name.upper() for name in names} for txn_type, names in allowed.items()
        }

    def validate_category_exists(self, name: str, txn_type: TransactionType) -> None:
        if name.upper() not in self.allowed.get(TransactionType(txn_type), set()):
            raise BusinessRuleError(f"Unknown {TransactionType(txn_type).value} category: {name}", code="INVALID_CATEGORY")

"""
Contiguous ordering for sibling collections

Quizzes within a section and questions within a quiz both keep their
``order`` values as an unbroken ``1..N`` sequence. ``OrderSequencer`` works
on a snapshot of the sibling set and returns the placement of the affected
item plus the range shifts to apply to everybody else. It never writes;
callers apply the shifts and the row change in one transaction.
"""

from dataclasses import dataclass
from typing import Any, Dict, Hashable, Iterable, List, Mapping, Optional, Sequence, Tuple, TypeVar

from app.core.exceptions import NotFoundException, ValidationException

T = TypeVar("T")


@dataclass(frozen=True)
class OrderShift:
    """Add ``delta`` to every sibling whose order lies in ``[start, end]``"""
    start: int
    end: Optional[int]  # inclusive; None means unbounded
    delta: int
    exclude_id: Optional[Hashable] = None

    def applies_to(self, item_id: Hashable, order: int) -> bool:
        if self.exclude_id is not None and item_id == self.exclude_id:
            return False
        if order < self.start:
            return False
        return self.end is None or order <= self.end


@dataclass(frozen=True)
class Placement:
    order: int
    shifts: Tuple[OrderShift, ...] = ()


def apply_shifts(orders: Mapping[Hashable, int], shifts: Iterable[OrderShift]) -> Dict[Hashable, int]:
    """Replay shift intents against an in-memory ``{id: order}`` mapping"""
    result = dict(orders)
    for shift in shifts:
        result = {
            item_id: order + shift.delta if shift.applies_to(item_id, order) else order
            for item_id, order in result.items()
        }
    return result


def sequenced(items: Sequence[T]) -> List[Tuple[int, T]]:
    """Pair a freshly submitted list with orders ``1..N`` by position"""
    return [(position, item) for position, item in enumerate(items, start=1)]


class OrderSequencer:
    """Order bookkeeping over one sibling set"""

    def __init__(self, siblings: Mapping[Hashable, int], label: str = "Item"):
        self._orders = dict(siblings)
        self.label = label

    @property
    def size(self) -> int:
        return len(self._orders)

    @property
    def max_order(self) -> int:
        return max(self._orders.values(), default=0)

    def order_of(self, item_id: Hashable) -> int:
        if item_id not in self._orders:
            raise NotFoundException(self.label, details={"id": item_id})
        return self._orders[item_id]

    def append(self) -> Placement:
        return Placement(order=self.max_order + 1)

    def insert_at(self, position: int) -> Placement:
        """
        Place a new item at ``position``, pushing occupants down.

        Positions past the end collapse to an append so no gap appears.
        """
        if not _is_positive_int(position):
            raise ValidationException("Order must be a positive number starting from 1")
        if position > self.max_order:
            return self.append()
        if position not in self._orders.values():
            return Placement(order=position)
        return Placement(order=position, shifts=(OrderShift(start=position, end=None, delta=1),))

    def move(self, item_id: Hashable, to: int) -> Placement:
        current = self.order_of(item_id)
        if not _is_positive_int(to) or to > self.size:
            raise ValidationException(
                f"Order must be between 1 and {self.size}",
                details={"order": to, "siblings": self.size},
            )
        if to == current:
            return Placement(order=current)
        if to > current:
            shift = OrderShift(start=current + 1, end=to, delta=-1, exclude_id=item_id)
        else:
            shift = OrderShift(start=to, end=current - 1, delta=1, exclude_id=item_id)
        return Placement(order=to, shifts=(shift,))

    def delete(self, item_id: Hashable) -> Tuple[OrderShift, ...]:
        removed = self.order_of(item_id)
        return (OrderShift(start=removed + 1, end=None, delta=-1, exclude_id=item_id),)

    def reorder(self, assignments: Sequence[Tuple[Hashable, Any]]) -> Dict[Hashable, int]:
        """
        Validate a complete reassignment and return only the changed orders.

        The submitted ids must be exactly the sibling ids and the orders a
        permutation of ``1..N``; nothing is returned for unchanged items, so
        resubmitting the current order writes nothing.
        """
        received = [item_id for item_id, _ in assignments]
        expected = sorted(self._orders, key=self._orders.get)
        missing = [item_id for item_id in expected if item_id not in received]
        extra = [item_id for item_id in received if item_id not in self._orders]
        if missing or extra:
            raise ValidationException(
                f"{self.label} IDs mismatch",
                details={
                    "missingIds": missing,
                    "extraIds": extra,
                    "expected": expected,
                    "received": received,
                },
            )

        for _, order in assignments:
            if not _is_positive_int(order):
                raise ValidationException("Order must be a positive number starting from 1")

        orders = [order for _, order in assignments]
        if len(received) != len(set(received)) or sorted(orders) != list(range(1, self.size + 1)):
            raise ValidationException(
                f"Orders must be unique and cover 1 to {self.size}",
                details={"received": orders},
            )

        return {
            item_id: order
            for item_id, order in assignments
            if self._orders[item_id] != order
        }


def _is_positive_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 1

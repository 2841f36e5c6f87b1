from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Iterable, Iterator, List, Optional, TypeVar, Union

T = TypeVar("T")


class _Empty:
    """The bottom of a stack: an endless supply of filler cells."""

    _instance: Optional["_Empty"] = None

    def __new__(cls) -> "_Empty":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "EMPTY"

    def __bool__(self) -> bool:
        return False


EMPTY = _Empty()


@dataclass(frozen=True, eq=False)
class Node(Generic[T]):
    head: T
    rest: "Stack[T]"

    def __repr__(self) -> str:
        return f"Node({self.head!r}, ...)"


Stack = Union[Node[T], _Empty]


def push(stack: "Stack[T]", value: T) -> Node[T]:
    return Node(value, stack)


def head(stack: "Stack[T]", filler: T) -> T:
    if isinstance(stack, Node):
        return stack.head
    return filler


def rest(stack: "Stack[T]") -> "Stack[T]":
    # Popping an empty stack leaves it empty; the filler is implied.
    if isinstance(stack, Node):
        return stack.rest
    return EMPTY


def iter_stack(stack: "Stack[T]") -> Iterator[T]:
    while isinstance(stack, Node):
        yield stack.head
        stack = stack.rest


@dataclass(frozen=True, eq=False)
class InfiniteTape(Generic[T]):
    """A persistent, unbounded tape in both directions.

    ``left`` holds the cells strictly left of the cursor, nearest first;
    ``right`` holds the cursor cell followed by the cells to its right.
    Every operation returns a new tape and shares the untouched stack
    with the original, so moves and writes are O(1) and older tapes stay
    valid.

    ``position`` is the cursor's offset from where the tape was created.
    It is informational only.
    """

    filler: T
    left: "Stack[T]" = EMPTY
    right: "Stack[T]" = EMPTY
    position: int = 0

    @classmethod
    def blank(cls, filler: T) -> "InfiniteTape[T]":
        return cls(filler=filler)

    @classmethod
    def from_iterable(cls, values: Iterable[T], filler: T) -> "InfiniteTape[T]":
        right: Stack[T] = EMPTY
        for value in reversed(list(values)):
            right = push(right, value)
        return cls(filler=filler, right=right)

    def read(self) -> T:
        return head(self.right, self.filler)

    def write(self, value: T) -> "InfiniteTape[T]":
        return InfiniteTape(
            filler=self.filler,
            left=self.left,
            right=push(rest(self.right), value),
            position=self.position,
        )

    def move_right(self) -> "InfiniteTape[T]":
        return InfiniteTape(
            filler=self.filler,
            left=push(self.left, self.read()),
            right=rest(self.right),
            position=self.position + 1,
        )

    def move_left(self) -> "InfiniteTape[T]":
        return InfiniteTape(
            filler=self.filler,
            left=rest(self.left),
            right=push(self.right, head(self.left, self.filler)),
            position=self.position - 1,
        )

    def window(self, radius: int) -> List[T]:
        """Return ``2 * radius + 1`` cells centred on the cursor."""
        before: List[T] = []
        cursor = self.left
        for _ in range(radius):
            before.append(head(cursor, self.filler))
            cursor = rest(cursor)
        after: List[T] = []
        cursor = self.right
        for _ in range(radius + 1):
            after.append(head(cursor, self.filler))
            cursor = rest(cursor)
        return list(reversed(before)) + after

    def written_prefix(self) -> List[T]:
        """Cells left of the cursor in tape order.

        A tape that is only ever written and then moved right (the output
        tape) keeps everything written on its left stack.
        """
        return list(reversed(list(iter_stack(self.left))))

    def __eq__(self, other: object) -> bool:
        # Equal when every cell is equal; materialized fillers don't count.
        if not isinstance(other, InfiniteTape):
            return NotImplemented
        return (
            self.filler == other.filler
            and _significant(self.left, self.filler) == _significant(other.left, other.filler)
            and _significant(self.right, self.filler) == _significant(other.right, other.filler)
        )

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"InfiniteTape(position={self.position}, cell={self.read()!r})"


def _significant(stack: "Stack[T]", filler: T) -> List[T]:
    cells = list(iter_stack(stack))
    while cells and cells[-1] == filler:
        cells.pop()
    return cells


__all__ = [
    "EMPTY",
    "InfiniteTape",
    "Node",
    "Stack",
    "iter_stack",
]

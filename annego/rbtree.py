"""A red-black tree with bidirectional iterators, and a sorted map built on it.

Iterators stay valid across inserts and across deletion of other elements;
deleting the element an iterator points at invalidates that iterator.
"""

from __future__ import annotations

from typing import Any, Callable, Iterator as TypingIterator, NamedTuple

CompareFunc = Callable[[Any, Any], int]

_RED = 0
_BLACK = 1


def compare_int(a: int, b: int) -> int:
    """Negative, zero or positive as ``a`` is less than, equal to or greater than ``b``."""
    return a - b


def compare_string(a: str, b: str) -> int:
    """Three-way comparison of two strings."""
    return (a > b) - (a < b)


class _Node:
    __slots__ = ("item", "parent", "left", "right", "color", "tree")

    def __init__(self, item: Any = None, parent: _Node | None = None, tree: Tree | None = None):
        self.item = item
        self.parent = parent
        self.left: _Node | None = None
        self.right: _Node | None = None
        self.color = _RED
        self.tree = tree


_NEGATIVE_LIMIT = _Node()


def _color(node: _Node | None) -> int:
    return _BLACK if node is None else node.color


def _sibling(node: _Node) -> _Node | None:
    parent = node.parent
    return parent.right if node is parent.left else parent.left


def _next_node(node: _Node) -> _Node | None:
    if node.right is not None:
        node = node.right
        while node.left is not None:
            node = node.left
        return node
    while node.parent is not None:
        parent = node.parent
        if node is parent.left:
            return parent
        node = parent
    return None


def _prev_node(node: _Node) -> _Node:
    if node.left is not None:
        node = node.left
        while node.right is not None:
            node = node.right
        return node
    while node.parent is not None:
        parent = node.parent
        if node is parent.right:
            return parent
        node = parent
    return _NEGATIVE_LIMIT


class Iterator:
    """A position in a tree: an element, past the end, or before the start."""

    __slots__ = ("_tree", "_node")

    def __init__(self, tree: Tree, node: _Node | None) -> None:
        self._tree = tree
        self._node = node

    @property
    def tree(self) -> Tree:
        return self._tree

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Iterator):
            return NotImplemented
        return self._tree is other._tree and self._node is other._node

    def __hash__(self) -> int:
        return hash((id(self._tree), id(self._node)))

    def __repr__(self) -> str:
        if self.is_limit():
            where = "limit"
        elif self.is_negative_limit():
            where = "negative limit"
        else:
            where = repr(self._node.item)
        return f"{type(self).__name__}({where})"

    def is_limit(self) -> bool:
        """True when the iterator points past the largest element."""
        return self._node is None

    def is_negative_limit(self) -> bool:
        """True when the iterator points before the smallest element."""
        return self._node is _NEGATIVE_LIMIT

    def is_min(self) -> bool:
        return self._node is self._tree._min

    def is_max(self) -> bool:
        return self._node is self._tree._max

    def item(self) -> Any:
        """The element pointed at; IndexError at either limit."""
        if self._node is None or self._node is _NEGATIVE_LIMIT:
            raise IndexError("iterator does not point at an element")
        return self._node.item

    def next(self) -> Iterator:
        """The iterator to the following element; IndexError at the limit."""
        if self._node is None:
            raise IndexError("next() called on the limit iterator")
        if self._node is _NEGATIVE_LIMIT:
            return type(self)(self._tree, self._tree._min)
        return type(self)(self._tree, _next_node(self._node))

    def prev(self) -> Iterator:
        """The iterator to the preceding element; IndexError at the negative limit."""
        if self._node is _NEGATIVE_LIMIT:
            raise IndexError("prev() called on the negative limit iterator")
        if self._node is None:
            last = self._tree._max
            return type(self)(self._tree, last if last is not None else _NEGATIVE_LIMIT)
        return type(self)(self._tree, _prev_node(self._node))


class Tree:
    """A sorted set of items ordered by ``compare``; equal items are stored once."""

    def __init__(self, compare: CompareFunc) -> None:
        self._compare = compare
        self._root: _Node | None = None
        self._min: _Node | None = None
        self._max: _Node | None = None
        self._count = 0

    def __len__(self) -> int:
        return self._count

    def __iter__(self) -> TypingIterator[Any]:
        node = self._min
        while node is not None:
            yield node.item
            node = _next_node(node)

    def __contains__(self, key: Any) -> bool:
        return self._find_ge(key)[1]

    def get(self, key: Any) -> Any:
        """The item equal to ``key``, or None."""
        node, exact = self._find_ge(key)
        return node.item if exact else None

    def min(self) -> Iterator:
        """Iterator to the smallest item; the limit when empty."""
        return Iterator(self, self._min)

    def max(self) -> Iterator:
        """Iterator to the largest item; the negative limit when empty."""
        return Iterator(self, self._max if self._max is not None else _NEGATIVE_LIMIT)

    def limit(self) -> Iterator:
        return Iterator(self, None)

    def negative_limit(self) -> Iterator:
        return Iterator(self, _NEGATIVE_LIMIT)

    def find_ge(self, key: Any) -> Iterator:
        """Iterator to the smallest item >= ``key``, or the limit."""
        return Iterator(self, self._find_ge(key)[0])

    def find_le(self, key: Any) -> Iterator:
        """Iterator to the largest item <= ``key``, or the negative limit."""
        node, exact = self._find_ge(key)
        if exact:
            return Iterator(self, node)
        if node is not None:
            return Iterator(self, _prev_node(node))
        if self._max is None:
            return Iterator(self, _NEGATIVE_LIMIT)
        return Iterator(self, self._max)

    def insert(self, item: Any) -> bool:
        """Insert ``item``; False if an equal item is already present."""
        node = self._do_insert(item)
        if node is None:
            return False
        node.color = _RED
        while True:
            parent = node.parent
            if parent is None:
                node.color = _BLACK
                break
            if parent.color == _BLACK:
                break
            grand = parent.parent
            uncle = grand.right if parent is grand.left else grand.left
            if uncle is not None and uncle.color == _RED:
                parent.color = _BLACK
                uncle.color = _BLACK
                grand.color = _RED
                node = grand
                continue
            if node is parent.right and parent is grand.left:
                self._rotate_left(parent)
                node = node.left
            elif node is parent.left and parent is grand.right:
                self._rotate_right(parent)
                node = node.right
            parent = node.parent
            grand = parent.parent
            parent.color = _BLACK
            grand.color = _RED
            if node is parent.left and parent is grand.left:
                self._rotate_right(grand)
            else:
                self._rotate_left(grand)
            break
        return True

    def delete_with_key(self, key: Any) -> bool:
        """Delete the item equal to ``key``; False if there is none."""
        node, exact = self._find_ge(key)
        if not exact:
            return False
        self._delete_node(node)
        return True

    def delete_with_iterator(self, iterator: Iterator) -> None:
        """Delete the item an iterator of this tree points at."""
        if iterator.tree is not self:
            raise ValueError("iterator does not belong to this tree")
        if iterator.is_limit() or iterator.is_negative_limit():
            raise IndexError("iterator does not point at an element")
        self._delete_node(iterator._node)

    def dump_as_string(self) -> str:
        """One line per item, in order."""
        return "".join(f"node {i:03d}: {item!r}\n" for i, item in enumerate(self))

    def _do_insert(self, item: Any) -> _Node | None:
        if self._root is None:
            node = _Node(item, None, self)
            self._root = self._min = self._max = node
            self._count += 1
            return node
        parent = self._root
        while True:
            comp = self._compare(item, parent.item)
            if comp == 0:
                return None
            if comp < 0:
                if parent.left is None:
                    node = _Node(item, parent, self)
                    parent.left = node
                    self._count += 1
                    if self._compare(item, self._min.item) < 0:
                        self._min = node
                    return node
                parent = parent.left
            else:
                if parent.right is None:
                    node = _Node(item, parent, self)
                    parent.right = node
                    self._count += 1
                    if self._compare(item, self._max.item) > 0:
                        self._max = node
                    return node
                parent = parent.right

    def _find_ge(self, key: Any) -> tuple[_Node | None, bool]:
        node = self._root
        while node is not None:
            comp = self._compare(key, node.item)
            if comp == 0:
                return node, True
            if comp < 0:
                if node.left is None:
                    return node, False
                node = node.left
            else:
                if node.right is None:
                    succ = _next_node(node)
                    if succ is None:
                        return None, False
                    return succ, self._compare(key, succ.item) == 0
                node = node.right
        return None, False

    def _delete_node(self, node: _Node) -> None:
        if node.tree is not self:
            raise ValueError("node does not belong to this tree")
        if node.left is not None and node.right is not None:
            self._swap_with_predecessor(node)
        child = node.right if node.right is not None else node.left
        if node.color == _BLACK:
            node.color = _color(child)
            self._delete_fixup(node)
        self._replace(node, child)
        if node.parent is None and child is not None:
            child.color = _BLACK
        self._count -= 1
        node.tree = None
        if self._count == 0:
            self._min = self._max = None
            return
        if self._min is node:
            self._min = self._extreme("left")
        if self._max is node:
            self._max = self._extreme("right")

    def _extreme(self, side: str) -> _Node | None:
        node = self._root
        if node is None:
            return None
        while getattr(node, side) is not None:
            node = getattr(node, side)
        return node

    def _swap_with_predecessor(self, node: _Node) -> None:
        """Exchange the tree positions and colours of ``node`` and its predecessor."""
        pred = node.left
        while pred.right is not None:
            pred = pred.right
        n_left, n_right = node.left, node.right
        pred_parent, pred_left = pred.parent, pred.left
        self._replace(node, pred)
        if pred_parent is node:
            pred.left = node
            node.parent = pred
        else:
            pred.left = n_left
            n_left.parent = pred
            pred_parent.right = node
            node.parent = pred_parent
        pred.right = n_right
        n_right.parent = pred
        node.left = pred_left
        if pred_left is not None:
            pred_left.parent = node
        node.right = None
        node.color, pred.color = pred.color, node.color

    def _delete_fixup(self, node: _Node) -> None:
        while node.parent is not None:
            sibling = _sibling(node)
            if _color(sibling) == _RED:
                node.parent.color = _RED
                sibling.color = _BLACK
                if node is node.parent.left:
                    self._rotate_left(node.parent)
                else:
                    self._rotate_right(node.parent)
                sibling = _sibling(node)
            black_sibling = (
                _color(sibling) == _BLACK
                and _color(sibling.left) == _BLACK
                and _color(sibling.right) == _BLACK
            )
            if _color(node.parent) == _BLACK and black_sibling:
                sibling.color = _RED
                node = node.parent
                continue
            if _color(node.parent) == _RED and black_sibling:
                sibling.color = _RED
                node.parent.color = _BLACK
            else:
                self._delete_rotate(node)
            break

    def _delete_rotate(self, node: _Node) -> None:
        sibling = _sibling(node)
        if (
            node is node.parent.left
            and _color(sibling) == _BLACK
            and _color(sibling.left) == _RED
            and _color(sibling.right) == _BLACK
        ):
            sibling.color = _RED
            sibling.left.color = _BLACK
            self._rotate_right(sibling)
        elif (
            node is node.parent.right
            and _color(sibling) == _BLACK
            and _color(sibling.right) == _RED
            and _color(sibling.left) == _BLACK
        ):
            sibling.color = _RED
            sibling.right.color = _BLACK
            self._rotate_left(sibling)
        sibling = _sibling(node)
        sibling.color = _color(node.parent)
        node.parent.color = _BLACK
        if node is node.parent.left:
            sibling.right.color = _BLACK
            self._rotate_left(node.parent)
        else:
            sibling.left.color = _BLACK
            self._rotate_right(node.parent)

    def _replace(self, old: _Node, new: _Node | None) -> None:
        parent = old.parent
        if parent is None:
            self._root = new
        elif old is parent.left:
            parent.left = new
        else:
            parent.right = new
        if new is not None:
            new.parent = parent

    def _rotate_left(self, node: _Node) -> None:
        right = node.right
        self._replace(node, right)
        node.right = right.left
        if right.left is not None:
            right.left.parent = node
        right.left = node
        node.parent = right

    def _rotate_right(self, node: _Node) -> None:
        left = node.left
        self._replace(node, left)
        node.left = left.right
        if left.right is not None:
            left.right.parent = node
        left.right = node
        node.parent = left


class Pair(NamedTuple):
    key: Any
    value: Any


class MapIterator(Iterator):
    """An iterator over a :class:`Map`; its items are :class:`Pair` values."""

    __slots__ = ()

    def item(self) -> Pair:
        return super().item()

    def key(self) -> Any:
        return self.item().key

    def value(self) -> Any:
        return self.item().value


class Map:
    """A mapping kept sorted by key with ``compare``."""

    def __init__(self, compare: CompareFunc) -> None:
        self._tree = Tree(lambda a, b: compare(a.key, b.key))

    @property
    def tree(self) -> Tree:
        return self._tree

    def __len__(self) -> int:
        return len(self._tree)

    def __contains__(self, key: Any) -> bool:
        return Pair(key, None) in self._tree

    def __iter__(self) -> TypingIterator[Any]:
        return (pair.key for pair in self._tree)

    def items(self) -> list[Pair]:
        return list(self._tree)

    def _wrap(self, iterator: Iterator) -> MapIterator:
        return MapIterator(self._tree, iterator._node)

    def min(self) -> MapIterator:
        return self._wrap(self._tree.min())

    def max(self) -> MapIterator:
        return self._wrap(self._tree.max())

    def limit(self) -> MapIterator:
        return self._wrap(self._tree.limit())

    def negative_limit(self) -> MapIterator:
        return self._wrap(self._tree.negative_limit())

    def find(self, key: Any) -> MapIterator:
        """Iterator to ``key``, or the limit when it is absent."""
        node, exact = self._tree._find_ge(Pair(key, None))
        return MapIterator(self._tree, node if exact else None)

    def find_ge(self, key: Any) -> MapIterator:
        return self._wrap(self._tree.find_ge(Pair(key, None)))

    def find_le(self, key: Any) -> MapIterator:
        return self._wrap(self._tree.find_le(Pair(key, None)))

    def get(self, key: Any, default: Any = None) -> Any:
        """The value stored for ``key``, or ``default``."""
        node, exact = self._tree._find_ge(Pair(key, None))
        return node.item.value if exact else default

    def set(self, key: Any, value: Any) -> bool:
        """Store ``value`` under ``key``; True if the key was already present."""
        pair = Pair(key, value)
        node, exact = self._tree._find_ge(pair)
        if exact:
            node.item = pair
        else:
            self._tree.insert(pair)
        return exact

    def delete_with_key(self, key: Any) -> bool:
        return self._tree.delete_with_key(Pair(key, None))

    def delete_with_iterator(self, iterator: MapIterator) -> None:
        self._tree.delete_with_iterator(iterator)
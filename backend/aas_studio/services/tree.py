"""
Copy-on-write editing helpers for submodel element trees.

Elements are addressed by their idShort path below a list of root
elements, e.g. ``["GeneralInformation", "ManufacturerName"]``. Every
helper returns a new list of roots; the nodes along the edited path are
rebuilt and everything else is shared with the input tree.
"""

import logging
from collections.abc import Callable, Iterator, Sequence
from typing import Any

from aas_studio.schemas.elements import (
    ELEMENT_CLASSES,
    ElementBase,
    is_container,
    is_deletable,
)
from aas_studio.services.errors import ElementNotFound

logger = logging.getLogger(__name__)

Elements = list[ElementBase]


def walk_elements(
    elements: Sequence[ElementBase],
    prefix: Sequence[str] = (),
) -> Iterator[tuple[list[str], ElementBase]]:
    """
    Iterate elements depth-first in document order.

    Yields:
        (path, element) pairs, the path including the element's own idShort
    """
    for element in elements:
        path = [*prefix, element.idShort]
        yield path, element
        if is_container(element):
            yield from walk_elements(element.value, path)


def find_element(elements: Sequence[ElementBase], path: Sequence[str]) -> ElementBase | None:
    """Look up the element at an idShort path, or None."""
    if not path:
        return None

    current: Sequence[ElementBase] = elements
    found: ElementBase | None = None
    for id_short in path:
        found = next((el for el in current if el.idShort == id_short), None)
        if found is None:
            return None
        current = found.value if is_container(found) else []
    return found


def update_element(
    elements: Sequence[ElementBase],
    path: Sequence[str],
    changes: dict[str, Any],
) -> Elements:
    """
    Replace fields of the element at ``path``.

    The changed node is re-validated through its pydantic model, so an
    invalid change raises ``pydantic.ValidationError`` and leaves the
    input untouched. ``modelType`` cannot be changed.

    Raises:
        ElementNotFound: If nothing exists at ``path``
        ValueError: If a renamed idShort collides with a sibling
    """
    changes = {k: v for k, v in changes.items() if k != "modelType"}

    def apply(element: ElementBase, siblings: Sequence[ElementBase]) -> ElementBase:
        new_id_short = changes.get("idShort")
        if new_id_short and new_id_short != element.idShort:
            _ensure_unique(siblings, new_id_short)
        merged = {**element.model_dump(), **changes}
        return ELEMENT_CLASSES[element.modelType].model_validate(merged)

    return _replace_at(elements, path, apply)


def insert_element(
    elements: Sequence[ElementBase],
    parent_path: Sequence[str],
    element: ElementBase,
    index: int | None = None,
) -> Elements:
    """
    Insert ``element`` as a child of the container at ``parent_path``.

    An empty ``parent_path`` inserts among the root elements. Without an
    index the element is appended.

    Raises:
        ElementNotFound: If the parent does not exist
        ValueError: If the parent is not a container or the idShort is taken
    """

    def add(children: Sequence[ElementBase]) -> Elements:
        _ensure_unique(children, element.idShort)
        result = list(children)
        if index is None:
            result.append(element)
        else:
            result.insert(index, element)
        return result

    if not parent_path:
        return add(elements)
    return _replace_children(elements, parent_path, add)


def delete_element(
    elements: Sequence[ElementBase],
    path: Sequence[str],
    force: bool = False,
) -> Elements:
    """
    Remove the element at ``path``.

    Elements with cardinality ``One``/``OneToMany`` are kept unless
    ``force`` is set.

    Raises:
        ElementNotFound: If nothing exists at ``path``
        ValueError: If the element may not be deleted
    """
    target = find_element(elements, path)
    if target is None:
        raise ElementNotFound(list(path))
    if not force and not is_deletable(target.cardinality):
        raise ValueError(
            f"Element '{target.idShort}' has cardinality {target.cardinality} and cannot be deleted"
        )

    def remove(children: Sequence[ElementBase]) -> Elements:
        index = next(i for i, el in enumerate(children) if el.idShort == path[-1])
        return [*children[:index], *children[index + 1 :]]

    if len(path) == 1:
        return remove(elements)
    return _replace_children(elements, path[:-1], remove)


def reorder_children(
    elements: Sequence[ElementBase],
    parent_path: Sequence[str],
    from_index: int,
    to_index: int,
) -> Elements:
    """
    Move a child of the container at ``parent_path`` to another position.

    Raises:
        ElementNotFound: If the parent does not exist
        ValueError: If an index is out of range
    """

    def move(children: Sequence[ElementBase]) -> Elements:
        size = len(children)
        if not (0 <= from_index < size and 0 <= to_index < size):
            raise ValueError(f"Index out of range for {size} children")
        result = list(children)
        moved = result.pop(from_index)
        result.insert(to_index, moved)
        return result

    if not parent_path:
        return move(elements)
    return _replace_children(elements, parent_path, move)


def _ensure_unique(siblings: Sequence[ElementBase], id_short: str) -> None:
    if any(el.idShort == id_short for el in siblings):
        raise ValueError(f"idShort '{id_short}' already exists at this level")


def _replace_at(
    elements: Sequence[ElementBase],
    path: Sequence[str],
    fn: Callable[[ElementBase, Sequence[ElementBase]], ElementBase],
) -> Elements:
    """Rebuild the spine down to ``path`` with ``fn`` applied to the target."""
    if not path:
        raise ElementNotFound([])

    head, rest = path[0], path[1:]
    result: Elements = []
    found = False
    for element in elements:
        if element.idShort != head:
            result.append(element)
            continue
        found = True
        if not rest:
            result.append(fn(element, elements))
        elif is_container(element):
            try:
                children = _replace_at(element.value, rest, fn)
            except ElementNotFound:
                raise ElementNotFound(list(path)) from None
            result.append(element.model_copy(update={"value": children}))
        else:
            raise ElementNotFound(list(path))

    if not found:
        raise ElementNotFound(list(path))
    return result


def _replace_children(
    elements: Sequence[ElementBase],
    parent_path: Sequence[str],
    fn: Callable[[Sequence[ElementBase]], Elements],
) -> Elements:
    def apply(parent: ElementBase, _siblings: Sequence[ElementBase]) -> ElementBase:
        if not is_container(parent):
            raise ValueError(f"Element '{parent.idShort}' ({parent.modelType}) cannot have children")
        return parent.model_copy(update={"value": fn(parent.value)})

    logger.debug(f"Editing children of {' > '.join(parent_path)}")
    return _replace_at(elements, parent_path, apply)

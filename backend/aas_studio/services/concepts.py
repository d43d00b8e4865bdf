"""
Concept description collection.

Concept descriptions are never stored on their own: they are projected
from the IEC 61360 metadata scattered over the element tree whenever a
document is encoded, and folded back into the tree when a document from
elsewhere is loaded.
"""

import logging
from collections.abc import Sequence

from aas_studio.schemas.concept_description import ConceptDescription
from aas_studio.schemas.elements import ElementBase, Property, is_container

logger = logging.getLogger(__name__)


def collect_concept_descriptions(submodels: Sequence) -> list[ConceptDescription]:
    """
    Collect one concept description per distinct semanticId.

    Walks every submodel depth-first in document order. The first element
    carrying a given semanticId defines the concept description; later
    elements with the same semanticId are ignored.

    Args:
        submodels: Submodels whose element trees are walked

    Returns:
        Concept descriptions in first-seen order
    """
    seen: dict[str, ConceptDescription] = {}

    def visit(elements: Sequence[ElementBase]) -> None:
        for element in elements:
            semantic_id = (element.semanticId or "").strip()
            if semantic_id and semantic_id not in seen:
                seen[semantic_id] = ConceptDescription(
                    id=semantic_id,
                    idShort=element.idShort,
                    preferredName=element.preferredName,
                    shortName=element.shortName,
                    unit=element.unit,
                    dataType=element.dataType,
                    description=element.description,
                    valueType=element.valueType if isinstance(element, Property) else None,
                )
            if is_container(element):
                visit(element.value)

    for submodel in submodels:
        visit(submodel.submodelElements)

    logger.debug(f"Collected {len(seen)} concept descriptions")
    return list(seen.values())


def apply_concept_descriptions(
    submodels: Sequence,
    concept_descriptions: Sequence[ConceptDescription],
) -> list:
    """
    Fill missing IEC 61360 metadata from matching concept descriptions.

    Documents produced by other tools usually keep names, units and data
    types only in their concept descriptions. Fields already set on an
    element are left alone.

    Returns:
        New submodels with enriched element trees
    """
    by_id = {cd.id: cd for cd in concept_descriptions}
    if not by_id:
        return list(submodels)

    def enrich(element: ElementBase) -> ElementBase:
        updates: dict = {}
        cd = by_id.get(element.semanticId or "")
        if cd is not None:
            for field in ("preferredName", "shortName", "unit", "dataType", "description"):
                if not getattr(element, field) and getattr(cd, field):
                    updates[field] = getattr(cd, field)
            if isinstance(element, Property) and not element.valueType and cd.valueType:
                updates["valueType"] = cd.valueType
        if is_container(element):
            updates["value"] = [enrich(child) for child in element.value]
        return element.model_copy(update=updates) if updates else element

    return [
        submodel.model_copy(
            update={"submodelElements": [enrich(el) for el in submodel.submodelElements]}
        )
        for submodel in submodels
    ]

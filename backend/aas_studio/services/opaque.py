"""
Conversion of element kinds without editing support between their AAS
XML and AAS JSON forms.

Range, Blob, Entity, Operation and the other opaque kinds are kept as the
fragment or object they were decoded from. When such an element is saved
in the other format, its content is converted here instead of being
re-encoded from the (empty) editable fields. XML output follows the
metamodel attribute order; fragments carry no namespace, the XML codec
adds it.
"""

import logging
from typing import Any

from lxml import etree

from aas_studio.schemas.elements import MODEL_TYPES

logger = logging.getLogger(__name__)

ELEMENT_HEADER = (
    "extensions",
    "category",
    "idShort",
    "displayName",
    "description",
    "semanticId",
    "supplementalSemanticIds",
    "qualifiers",
    "embeddedDataSpecifications",
)

ELEMENT_FIELDS: dict[str, tuple[str, ...]] = {
    "Property": ("valueType", "value", "valueId"),
    "MultiLanguageProperty": ("value", "valueId"),
    "Range": ("valueType", "min", "max"),
    "Blob": ("value", "contentType"),
    "File": ("value", "contentType"),
    "ReferenceElement": ("value",),
    "SubmodelElementCollection": ("value",),
    "SubmodelElementList": (
        "orderRelevant",
        "semanticIdListElement",
        "typeValueListElement",
        "valueTypeListElement",
        "value",
    ),
    "Entity": ("statements", "entityType", "globalAssetId", "specificAssetIds"),
    "RelationshipElement": ("first", "second"),
    "AnnotatedRelationshipElement": ("first", "second", "annotations"),
    "Operation": ("inputVariables", "outputVariables", "inoutputVariables"),
    "BasicEventElement": (
        "observed",
        "direction",
        "state",
        "messageTopic",
        "messageBroker",
        "lastUpdate",
        "minInterval",
        "maxInterval",
    ),
    "Capability": (),
}

REFERENCE_FIELDS = ("type", "referredSemanticId", "keys")
IEC61360_FIELDS = (
    "preferredName",
    "shortName",
    "unit",
    "unitId",
    "sourceOfDefinition",
    "symbol",
    "dataType",
    "definition",
    "valueFormat",
    "valueList",
    "value",
    "levelType",
)

# List key -> item tag and field order of the items
LIST_ITEMS: dict[str, tuple[str, tuple[str, ...]]] = {
    "keys": ("key", ("type", "value")),
    "qualifiers": (
        "qualifier",
        ("semanticId", "supplementalSemanticIds", "kind", "type", "valueType", "value", "valueId"),
    ),
    "extensions": (
        "extension",
        ("semanticId", "supplementalSemanticIds", "name", "valueType", "value", "refersTo"),
    ),
    "specificAssetIds": (
        "specificAssetId",
        ("semanticId", "supplementalSemanticIds", "name", "value", "externalSubjectId"),
    ),
    "supplementalSemanticIds": ("reference", REFERENCE_FIELDS),
    "refersTo": ("reference", REFERENCE_FIELDS),
    "embeddedDataSpecifications": ("embeddedDataSpecification", ("dataSpecification", "dataSpecificationContent")),
    "inputVariables": ("operationVariable", ("value",)),
    "outputVariables": ("operationVariable", ("value",)),
    "inoutputVariables": ("operationVariable", ("value",)),
    "valueReferencePairs": ("valueReferencePair", ("value", "valueId")),
}

LANG_STRING_ITEMS: dict[str, str] = {
    "description": "langStringTextType",
    "displayName": "langStringNameType",
    "value": "langStringTextType",
    "preferredName": "langStringPreferredNameTypeIec61360",
    "shortName": "langStringShortNameTypeIec61360",
    "definition": "langStringDefinitionTypeIec61360",
}

BOOLEAN_FIELDS = frozenset({"orderRelevant"})
ELEMENT_LIST_KEYS = ("statements", "annotations")
LIST_KEYS = frozenset(LIST_ITEMS) | (frozenset(LANG_STRING_ITEMS) - {"value"}) | frozenset(ELEMENT_LIST_KEYS)


def element_tag(model_type: str) -> str:
    return model_type[0].lower() + model_type[1:]


ELEMENT_TAGS: dict[str, str] = {element_tag(model_type): model_type for model_type in MODEL_TYPES}


def _is_element(data: Any) -> bool:
    return isinstance(data, dict) and data.get("modelType") in MODEL_TYPES


def _scalar_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


# ----------------------------------------------------------------------
# JSON -> XML
# ----------------------------------------------------------------------


def json_to_fragment(payload: dict[str, Any]) -> str:
    """
    Build the XML fragment of an element from its AAS JSON object.

    Fields outside the metamodel (``modelType`` and the editor's flat
    metadata) are not written.
    """
    logger.debug(f"Converting {payload.get('modelType')} {payload.get('idShort')} to XML")
    root = etree.Element("fragment")
    _append_element(root, payload)
    return etree.tostring(root[0], encoding="unicode")


def _append_element(parent: etree._Element, data: dict[str, Any]) -> None:
    model_type = data["modelType"]
    node = etree.SubElement(parent, element_tag(model_type))
    for key in ELEMENT_HEADER + ELEMENT_FIELDS.get(model_type, ()):
        if key in data:
            _append_value(node, key, data[key])


def _append_fields(node: etree._Element, data: dict[str, Any], order: tuple[str, ...]) -> None:
    keys = [key for key in order if key in data]
    keys += [key for key in data if key not in order and key != "modelType"]
    for key in keys:
        _append_value(node, key, data[key])


def _append_value(parent: etree._Element, key: str, value: Any) -> None:
    if value is None:
        return
    child = etree.SubElement(parent, key)

    if isinstance(value, list):
        for item in value:
            _append_item(child, key, item)
    elif _is_element(value):
        _append_element(child, value)
    elif isinstance(value, dict):
        if value.get("modelType") == "DataSpecificationIec61360":
            content = etree.SubElement(child, "dataSpecificationIec61360")
            _append_fields(content, value, IEC61360_FIELDS)
        else:
            _append_fields(child, value, REFERENCE_FIELDS if "keys" in value else ())
    else:
        child.text = _scalar_text(value)


def _append_item(container: etree._Element, key: str, item: Any) -> None:
    if _is_element(item):
        _append_element(container, item)
        return

    if isinstance(item, dict) and "language" in item:
        node = etree.SubElement(container, LANG_STRING_ITEMS.get(key, "langStringTextType"))
        _append_fields(node, item, ("language", "text"))
        return

    tag, order = LIST_ITEMS.get(key, (key[:-1] if key.endswith("s") else key, ()))
    node = etree.SubElement(container, tag)
    if isinstance(item, dict):
        _append_fields(node, item, order)
    elif item is not None:
        node.text = _scalar_text(item)


# ----------------------------------------------------------------------
# XML -> JSON
# ----------------------------------------------------------------------


def fragment_to_json(fragment: str) -> dict[str, Any]:
    """
    Build the AAS JSON object of an element from its namespace-free
    XML fragment.
    """
    parser = etree.XMLParser(remove_blank_text=True, resolve_entities=False, no_network=True)
    result = _element_to_json(etree.fromstring(fragment, parser))
    logger.debug(f"Converted {result['modelType']} {result.get('idShort')} to JSON")
    return result


def _children(node: etree._Element) -> list[etree._Element]:
    return [child for child in node if isinstance(child.tag, str)]


def _element_to_json(node: etree._Element) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for child in _children(node):
        result[child.tag] = _node_value(child, node.tag)
    result["modelType"] = ELEMENT_TAGS.get(node.tag, node.tag[0].upper() + node.tag[1:])
    return result


def _node_value(node: etree._Element, parent_tag: str) -> Any:
    children = _children(node)
    if node.tag in LIST_KEYS:
        return [_item_value(child) for child in children]
    if node.tag == "value" and parent_tag in ("submodelElementCollection", "submodelElementList"):
        return [_element_to_json(child) for child in children if child.tag in ELEMENT_TAGS]
    if not children:
        if node.tag in BOOLEAN_FIELDS:
            return (node.text or "").strip() == "true"
        return node.text or ""

    if all(child.tag.startswith("langString") for child in children):
        return [_item_value(child) for child in children]
    if len(children) == 1 and children[0].tag in ELEMENT_TAGS:
        return _element_to_json(children[0])
    if node.tag == "dataSpecificationContent":
        content = _fields(children[0])
        content["modelType"] = "DataSpecificationIec61360"
        return content
    return _fields(node)


def _fields(node: etree._Element) -> dict[str, Any]:
    return {child.tag: _node_value(child, node.tag) for child in _children(node)}


def _item_value(node: etree._Element) -> Any:
    if node.tag in ELEMENT_TAGS:
        return _element_to_json(node)
    if node.tag.startswith("langString"):
        return {
            "language": node.findtext("language") or node.get("lang") or "",
            "text": node.findtext("text") if node.find("text") is not None else node.text or "",
        }
    if not _children(node):
        return node.text or ""
    return _fields(node)

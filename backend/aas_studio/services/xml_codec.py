"""
AAS XML codec.

Encodes a shell, its submodels and the derived concept descriptions into
a single AAS 3.1 XML document, and decodes AAS XML in the 1.0, 3.0 and
3.1 dialects back into an ``Environment``.

Element ordering inside each element follows the contract the XSD check
expects: header (category, idShort, description), type-specific content,
semanticId, qualifiers, embedded data specifications.
"""

import logging
import uuid
from collections.abc import Iterator, Sequence
from typing import Any

from lxml import etree

from aas_studio.schemas.concept_description import ConceptDescription
from aas_studio.schemas.elements import (
    DEFAULT_CARDINALITY,
    ELEMENT_CLASSES,
    OPAQUE_MODEL_TYPES,
    ElementBase,
    FileElement,
    Key,
    MultiLanguageProperty,
    OpaqueElement,
    Property,
    Reference,
    ReferenceElement,
    SubmodelElementCollection,
    SubmodelElementList,
    parse_cardinality,
    preferred_text,
)
from aas_studio.schemas.environment import AasDialect, Environment, Shell, Submodel, Thumbnail
from aas_studio.services.concepts import collect_concept_descriptions
from aas_studio.services.errors import AasDecodeError
from aas_studio.services.opaque import json_to_fragment
from aas_studio.utils.xsd_mapping import (
    DEFAULT_VALUE_TYPE,
    IEC_DATA_TYPES,
    normalize_value_type,
    resolve_value_type,
)

logger = logging.getLogger(__name__)

AAS_NS_1_0 = "http://www.admin-shell.io/aas/1/0"
AAS_NS_3_0 = "https://admin-shell.io/aas/3/0"
AAS_NS_3_1 = "https://admin-shell.io/aas/3/1"

IEC61360_DATA_SPECIFICATION = (
    "https://admin-shell.io/DataSpecificationTemplates/DataSpecificationIEC61360/3/0"
)

CARDINALITY_QUALIFIER_TYPE = "SMT/Cardinality"
CARDINALITY_QUALIFIER_TYPES = ("Multiplicity", "Cardinality", "cardinality", CARDINALITY_QUALIFIER_TYPE)

MODEL_TYPE_TO_TAG: dict[str, str] = {
    "Property": "property",
    "MultiLanguageProperty": "multiLanguageProperty",
    "SubmodelElementCollection": "submodelElementCollection",
    "SubmodelElementList": "submodelElementList",
    "File": "file",
    "ReferenceElement": "referenceElement",
    "Range": "range",
    "Blob": "blob",
    "Operation": "operation",
    "Entity": "entity",
    "BasicEventElement": "basicEventElement",
    "RelationshipElement": "relationshipElement",
    "AnnotatedRelationshipElement": "annotatedRelationshipElement",
    "Capability": "capability",
}

TAG_TO_MODEL_TYPE: dict[str, str] = {tag: mt for mt, tag in MODEL_TYPE_TO_TAG.items()}
# AAS 1.0 spelling
TAG_TO_MODEL_TYPE["basicEvent"] = "BasicEventElement"

LANG_STRING_TAGS = {
    "description": "langStringTextType",
    "value": "langStringTextType",
    "preferredName": "langStringPreferredNameTypeIec61360",
    "shortName": "langStringShortNameTypeIec61360",
    "definition": "langStringDefinitionTypeIec61360",
}


def unwrap_text(value: Any) -> Any:
    """
    Unwrap the ``{"#text": ...}`` shape some XML-to-object converters emit
    for simple text nodes.
    """
    if isinstance(value, dict) and "#text" in value:
        return value["#text"]
    return value


def detect_dialect(root: etree._Element, text: str | bytes = "") -> AasDialect:
    """Detect the AAS dialect from the root namespace, falling back to a text scan."""
    namespace = etree.QName(root).namespace or ""
    candidates = [namespace, *(ns for ns in (root.nsmap or {}).values() if ns)]
    if isinstance(text, bytes):
        text = text[:4096].decode("utf-8", errors="ignore")
    candidates.append(text[:4096])

    for candidate in candidates:
        if "aas/1/0" in candidate:
            return AasDialect.V1_0
        if "aas/3/0" in candidate:
            return AasDialect.V3_0
        if "aas/3/1" in candidate:
            return AasDialect.V3_1
    return AasDialect.V3_1


def parse_xml(text: str | bytes) -> etree._Element:
    """
    Parse XML text into an lxml tree.

    Raises:
        AasDecodeError: If the text is not well-formed XML
    """
    data = text.encode("utf-8") if isinstance(text, str) else text
    parser = etree.XMLParser(
        remove_blank_text=True,
        remove_comments=True,
        resolve_entities=False,
        no_network=True,
    )
    try:
        return etree.fromstring(data, parser)
    except etree.XMLSyntaxError as e:
        raise AasDecodeError(f"Invalid XML: {e}") from e


def strip_namespaces(root: etree._Element) -> etree._Element:
    """Replace every qualified tag by its local name, in place."""
    for node in root.iter():
        if isinstance(node.tag, str):
            node.tag = etree.QName(node).localname
    etree.cleanup_namespaces(root)
    return root


class XmlCodecService:
    """
    Encoder/decoder between the element tree and AAS XML.
    """

    def __init__(self, default_language: str = "en"):
        self.default_language = default_language

    # ------------------------------------------------------------------
    # Encoding
    # ------------------------------------------------------------------

    def encode(
        self,
        shell: Shell,
        submodels: Sequence[Submodel],
        concept_descriptions: Sequence[ConceptDescription] | None = None,
    ) -> str:
        """
        Encode a shell and its submodels as an AAS 3.1 XML document.

        Args:
            shell: Shell header
            submodels: Submodels in output order
            concept_descriptions: Concept descriptions to emit; collected
                from the element trees when omitted

        Returns:
            Pretty-printed XML text with declaration
        """
        if concept_descriptions is None:
            concept_descriptions = collect_concept_descriptions(submodels)

        root = etree.Element(self._tag("environment"), nsmap={None: AAS_NS_3_1})

        shells_el = self._sub(root, "assetAdministrationShells")
        self._encode_shell(shells_el, shell, submodels)

        if submodels:
            submodels_el = self._sub(root, "submodels")
            for submodel in submodels:
                self._encode_submodel(submodels_el, submodel, shell)

        if concept_descriptions:
            cds_el = self._sub(root, "conceptDescriptions")
            for cd in concept_descriptions:
                self._encode_concept_description(cds_el, cd)

        logger.info(
            f"Encoded XML for shell {shell.idShort}: {len(submodels)} submodels, "
            f"{len(concept_descriptions)} concept descriptions"
        )
        return etree.tostring(
            root, xml_declaration=True, encoding="UTF-8", pretty_print=True
        ).decode("utf-8")

    def _tag(self, name: str) -> str:
        return f"{{{AAS_NS_3_1}}}{name}"

    def _sub(self, parent: etree._Element, name: str, text: str | None = None) -> etree._Element:
        child = etree.SubElement(parent, self._tag(name))
        if text is not None:
            child.text = text
        return child

    def _encode_shell(
        self, parent: etree._Element, shell: Shell, submodels: Sequence[Submodel]
    ) -> None:
        shell_el = self._sub(parent, "assetAdministrationShell")
        self._sub(shell_el, "idShort", shell.idShort)
        self._sub(shell_el, "id", shell.id)

        info_el = self._sub(shell_el, "assetInformation")
        self._sub(info_el, "assetKind", shell.assetKind)
        if shell.globalAssetId:
            self._sub(info_el, "globalAssetId", shell.globalAssetId)
        if shell.thumbnail:
            thumb_el = self._sub(info_el, "defaultThumbnail")
            self._sub(thumb_el, "path", shell.thumbnail.path)
            self._sub(thumb_el, "contentType", shell.thumbnail.contentType)

        refs = [submodel.resolved_id(shell) for submodel in submodels]
        refs += [ref for ref in shell.submodelRefs if ref not in refs]
        if refs:
            refs_el = self._sub(shell_el, "submodels")
            for ref in refs:
                ref_el = self._sub(refs_el, "reference")
                self._encode_reference_body(ref_el, "ModelReference", [Key(type="Submodel", value=ref)])

    def _encode_submodel(self, parent: etree._Element, submodel: Submodel, shell: Shell) -> None:
        sm_el = self._sub(parent, "submodel")
        self._sub(sm_el, "idShort", submodel.idShort)
        self._sub(sm_el, "id", submodel.resolved_id(shell))
        self._sub(sm_el, "kind", submodel.kind)
        if submodel.semanticId:
            self._encode_external_reference(sm_el, "semanticId", submodel.semanticId)
        if submodel.submodelElements:
            qualifier_kind = "TemplateQualifier" if submodel.kind == "Template" else "ConceptQualifier"
            elements_el = self._sub(sm_el, "submodelElements")
            for element in submodel.submodelElements:
                self._encode_element(elements_el, element, qualifier_kind)

    def _encode_concept_description(self, parent: etree._Element, cd: ConceptDescription) -> None:
        cd_el = self._sub(parent, "conceptDescription")
        self._sub(cd_el, "idShort", cd.idShort)
        self._sub(cd_el, "id", cd.id)
        self._encode_iec_block(
            cd_el,
            id_short=cd.idShort,
            preferred_name=cd.preferredName,
            short_name=cd.shortName,
            unit=cd.unit,
            data_type=cd.dataType,
            definition=cd.description,
            value_format=cd.valueType,
        )

    def _encode_element(
        self, parent: etree._Element, element: ElementBase, qualifier_kind: str = "ConceptQualifier"
    ) -> None:
        if isinstance(element, OpaqueElement) and element.xmlFragment:
            self._encode_opaque_fragment(parent, element.xmlFragment)
            return
        if isinstance(element, OpaqueElement) and element.jsonPayload:
            self._encode_opaque_payload(parent, element, qualifier_kind)
            return

        el = self._sub(parent, MODEL_TYPE_TO_TAG[element.modelType])
        if element.category:
            self._sub(el, "category", element.category)
        self._sub(el, "idShort", element.idShort)
        if element.description and element.description.strip():
            self._encode_lang_strings(el, "description", {self.default_language: element.description})

        self._encode_value(el, element, qualifier_kind)

        if element.semanticId and not isinstance(element, ReferenceElement):
            self._encode_external_reference(el, "semanticId", element.semanticId)

        # Template submodels always declare cardinality, instances only when it differs
        if qualifier_kind == "TemplateQualifier" or element.cardinality != DEFAULT_CARDINALITY:
            qualifiers_el = self._sub(el, "qualifiers")
            qualifier_el = self._sub(qualifiers_el, "qualifier")
            self._sub(qualifier_el, "kind", qualifier_kind)
            self._sub(qualifier_el, "type", CARDINALITY_QUALIFIER_TYPE)
            self._sub(qualifier_el, "valueType", "xs:string")
            self._sub(qualifier_el, "value", element.cardinality)

        if element.has_iec_metadata:
            self._encode_iec_block(
                el,
                id_short=element.idShort,
                preferred_name=element.preferredName,
                short_name=element.shortName,
                unit=element.unit,
                data_type=element.dataType,
                definition=element.description,
            )

    def _encode_value(self, el: etree._Element, element: ElementBase, qualifier_kind: str) -> None:
        """Type-specific content, emitted before semanticId."""
        if isinstance(element, Property):
            value_type = resolve_value_type(element.valueType, element.dataType) or DEFAULT_VALUE_TYPE
            self._sub(el, "valueType", value_type)
            self._sub(el, "value", element.value or None)

        elif isinstance(element, MultiLanguageProperty):
            entries = {lang: text for lang, text in element.value.items() if text and text.strip()}
            if entries:
                self._encode_lang_strings(el, "value", entries)
            else:
                self._sub(el, "value")

        elif isinstance(element, FileElement):
            if element.fileData:
                content_type = element.fileData.mimeType
            else:
                content_type = element.contentType or "application/octet-stream"
            self._sub(el, "contentType", content_type)
            self._sub(el, "value", element.value or None)

        elif isinstance(element, SubmodelElementList):
            type_value = element.value[0].modelType if element.value else "SubmodelElement"
            self._sub(el, "typeValueListElement", type_value)
            if element.value:
                value_el = self._sub(el, "value")
                for child in element.value:
                    self._encode_element(value_el, child, qualifier_kind)

        elif isinstance(element, SubmodelElementCollection):
            if element.value:
                value_el = self._sub(el, "value")
                for child in element.value:
                    self._encode_element(value_el, child, qualifier_kind)

        elif isinstance(element, ReferenceElement):
            if isinstance(element.value, Reference) and element.value.keys:
                value_el = self._sub(el, "value")
                self._encode_reference_body(value_el, element.value.type, element.value.keys)
            else:
                literal = element.value if isinstance(element.value, str) and element.value else None
                literal = literal or element.semanticId
                if literal:
                    self._encode_external_reference(el, "valueId", literal)

    def _encode_opaque_fragment(self, parent: etree._Element, xml_fragment: str) -> None:
        fragment = etree.fromstring(xml_fragment)
        for node in fragment.iter():
            if isinstance(node.tag, str):
                node.tag = self._tag(etree.QName(node).localname)
        parent.append(fragment)

    def _encode_opaque_payload(self, parent: etree._Element, element: OpaqueElement, qualifier_kind: str) -> None:
        """Opaque element decoded from JSON, converted to its XML form."""
        payload = dict(element.jsonPayload)
        qualifiers = [q for q in payload.get("qualifiers") or [] if isinstance(q, dict)]
        has_cardinality = any(q.get("type") in CARDINALITY_QUALIFIER_TYPES for q in qualifiers)
        if not has_cardinality and (
            qualifier_kind == "TemplateQualifier" or element.cardinality != DEFAULT_CARDINALITY
        ):
            qualifiers.append(
                {
                    "kind": qualifier_kind,
                    "type": CARDINALITY_QUALIFIER_TYPE,
                    "valueType": "xs:string",
                    "value": element.cardinality,
                }
            )
        if qualifiers:
            payload["qualifiers"] = qualifiers
        payload["modelType"] = element.modelType
        payload["idShort"] = element.idShort
        self._encode_opaque_fragment(parent, json_to_fragment(payload))

    def _encode_external_reference(self, parent: etree._Element, name: str, value: str) -> None:
        ref_el = self._sub(parent, name)
        self._encode_reference_body(ref_el, "ExternalReference", [Key(type="GlobalReference", value=value)])

    def _encode_reference_body(self, ref_el: etree._Element, ref_type: str, keys: Sequence[Key]) -> None:
        self._sub(ref_el, "type", ref_type)
        keys_el = self._sub(ref_el, "keys")
        for key in keys:
            key_el = self._sub(keys_el, "key")
            self._sub(key_el, "type", key.type)
            self._sub(key_el, "value", key.value)

    def _encode_lang_strings(self, parent: etree._Element, name: str, entries: dict[str, str]) -> None:
        container = self._sub(parent, name)
        child_tag = LANG_STRING_TAGS.get(name, "langStringTextType")
        for language, text in entries.items():
            ls_el = self._sub(container, child_tag)
            self._sub(ls_el, "language", language)
            self._sub(ls_el, "text", text)

    def _encode_iec_block(
        self,
        parent: etree._Element,
        id_short: str,
        preferred_name: dict[str, str] | None,
        short_name: dict[str, str] | None,
        unit: str | None,
        data_type: str | None,
        definition: str | None,
        value_format: str | None = None,
    ) -> None:
        eds_el = self._sub(parent, "embeddedDataSpecifications")
        eds_entry = self._sub(eds_el, "embeddedDataSpecification")
        self._encode_external_reference(eds_entry, "dataSpecification", IEC61360_DATA_SPECIFICATION)
        content_el = self._sub(eds_entry, "dataSpecificationContent")
        iec_el = self._sub(content_el, "dataSpecificationIec61360")

        names = {lang: text for lang, text in (preferred_name or {}).items() if text and text.strip()}
        self._encode_lang_strings(iec_el, "preferredName", names or {"en": id_short})

        short_names = {lang: text for lang, text in (short_name or {}).items() if text and text.strip()}
        if short_names:
            self._encode_lang_strings(iec_el, "shortName", short_names)
        if unit:
            self._sub(iec_el, "unit", unit)
        if data_type:
            iec_type = data_type.strip().upper()
            if iec_type in IEC_DATA_TYPES:
                self._sub(iec_el, "dataType", iec_type)
            else:
                logger.debug(f"Dropping unknown IEC 61360 data type {data_type!r} of {id_short}")
        if definition and definition.strip():
            self._encode_lang_strings(iec_el, "definition", {self.default_language: definition})
        if value_format:
            self._sub(iec_el, "valueFormat", value_format)

    # ------------------------------------------------------------------
    # Decoding
    # ------------------------------------------------------------------

    def decode(self, text: str | bytes) -> Environment:
        """
        Decode AAS XML in any supported dialect.

        Args:
            text: XML document

        Returns:
            Environment with the source dialect recorded

        Raises:
            AasDecodeError: If the XML is malformed or not an AAS environment
        """
        root = parse_xml(text)
        dialect = detect_dialect(root, text)
        strip_namespaces(root)

        if root.tag not in ("environment", "aasenv"):
            raise AasDecodeError(f"Unexpected root element <{root.tag}>, expected an AAS environment")

        submodels = [self._decode_submodel(el) for el in self._items(root, "submodels", "submodel")]
        concept_descriptions = [
            cd
            for cd in (
                self._decode_concept_description(el)
                for el in self._items(root, "conceptDescriptions", "conceptDescription")
            )
            if cd is not None
        ]

        shell_els = list(self._items(root, "assetAdministrationShells", "assetAdministrationShell"))
        if shell_els:
            shell = self._decode_shell(shell_els[0], root)
            if len(shell_els) > 1:
                logger.warning(f"Document holds {len(shell_els)} shells, only the first is used")
        elif submodels:
            logger.warning("Document has no AssetAdministrationShell, creating one")
            shell = Shell(
                idShort="Shell",
                id=f"urn:uuid:{uuid.uuid4()}",
                submodelRefs=[sm.id for sm in submodels if sm.id],
            )
        else:
            raise AasDecodeError("Document contains neither a shell nor submodels")

        logger.info(
            f"Decoded AAS {dialect.value} XML: shell {shell.idShort}, "
            f"{len(submodels)} submodels, {len(concept_descriptions)} concept descriptions"
        )
        return Environment(
            shell=shell,
            submodels=submodels,
            conceptDescriptions=concept_descriptions,
            dialect=dialect,
        )

    @staticmethod
    def _child(el: etree._Element | None, name: str) -> etree._Element | None:
        if el is None:
            return None
        for child in el:
            if child.tag == name:
                return child
        return None

    @classmethod
    def _text(cls, el: etree._Element | None, name: str | None = None) -> str | None:
        node = cls._child(el, name) if name else el
        if node is None or node.text is None:
            return None
        text = node.text.strip()
        return text or None

    @staticmethod
    def _value_text(node: etree._Element | None) -> str | None:
        """Element value text, whitespace kept."""
        if node is None or not node.text:
            return None
        return node.text

    @classmethod
    def _items(cls, el: etree._Element, container: str, item: str) -> Iterator[etree._Element]:
        wrapper = cls._child(el, container)
        if wrapper is None:
            return
        for child in wrapper:
            if child.tag == item:
                yield child

    @classmethod
    def _keys(cls, ref_el: etree._Element | None) -> list[Key]:
        """Keys of a reference, as child elements (3.x) or attribute + text (1.0)."""
        keys_el = cls._child(ref_el, "keys")
        if keys_el is None:
            return []
        keys = []
        for key_el in keys_el:
            if key_el.tag != "key":
                continue
            value = cls._text(key_el, "value")
            if value is not None:
                keys.append(Key(type=cls._text(key_el, "type") or "GlobalReference", value=value))
            elif key_el.text and key_el.text.strip():
                keys.append(Key(type=key_el.get("type", "GlobalReference"), value=key_el.text.strip()))
        return keys

    @classmethod
    def _reference(cls, ref_el: etree._Element | None) -> Reference | None:
        keys = cls._keys(ref_el)
        if not keys:
            return None
        return Reference(type=cls._text(ref_el, "type") or "ExternalReference", keys=keys)

    @classmethod
    def _first_key_value(cls, el: etree._Element | None, name: str) -> str | None:
        keys = cls._keys(cls._child(el, name))
        return keys[0].value if keys else None

    @classmethod
    def _lang_map(cls, container: etree._Element | None, strip: bool = True) -> dict[str, str] | None:
        """Language-tagged strings in any of the known spellings."""
        if container is None:
            return None
        result: dict[str, str] = {}
        for child in container:
            if not child.tag.startswith("langString"):
                continue
            if child.get("lang") is not None:
                text = child.text or ""
                result[child.get("lang")] = text.strip() if strip else text
            else:
                language = cls._text(child, "language")
                if not language:
                    continue
                if strip:
                    result[language] = cls._text(child, "text") or ""
                else:
                    result[language] = cls._value_text(cls._child(child, "text")) or ""
        return result or None

    def _preferred_text(self, lang_map: dict[str, str] | None) -> str | None:
        return preferred_text(lang_map, self.default_language)

    @classmethod
    def _identifier(cls, el: etree._Element) -> str | None:
        return cls._text(el, "id") or cls._text(el, "identification")

    def _decode_shell(self, el: etree._Element, root: etree._Element) -> Shell:
        info_el = self._child(el, "assetInformation")
        asset_kind = self._text(info_el, "assetKind")
        global_asset_id = self._text(info_el, "globalAssetId")
        if global_asset_id is None and info_el is not None:
            global_asset_id = self._first_key_value(info_el, "globalAssetId")

        # AAS 1.0 keeps the asset separately and references it
        if global_asset_id is None:
            global_asset_id = self._first_key_value(el, "assetRef")
        if asset_kind is None:
            asset_el = next(self._items(root, "assets", "asset"), None)
            if asset_el is not None:
                asset_kind = self._text(asset_el, "kind")

        thumbnail = None
        thumb_el = self._child(info_el, "defaultThumbnail")
        if thumb_el is not None and self._text(thumb_el, "path"):
            thumbnail = Thumbnail(
                path=self._text(thumb_el, "path"),
                contentType=self._text(thumb_el, "contentType") or "image/png",
            )

        refs: list[str] = []
        for wrapper, item in (("submodels", "reference"), ("submodelRefs", "submodelRef")):
            for ref_el in self._items(el, wrapper, item):
                keys = self._keys(ref_el)
                if not keys:
                    continue
                submodel_key = next((k for k in keys if k.type == "Submodel"), keys[-1])
                refs.append(submodel_key.value)

        return Shell(
            idShort=self._text(el, "idShort") or "Shell",
            id=self._identifier(el) or "",
            assetKind="Type" if asset_kind == "Type" else "Instance",
            globalAssetId=global_asset_id,
            submodelRefs=refs,
            thumbnail=thumbnail,
        )

    def _decode_submodel(self, el: etree._Element) -> Submodel:
        kind = self._text(el, "kind")
        nodes = self._element_nodes(self._child(el, "submodelElements"))
        elements = [element for element in map(self._decode_element, nodes) if element is not None]
        return Submodel(
            idShort=self._text(el, "idShort") or "",
            id=self._identifier(el),
            kind="Template" if kind in ("Template", "Type") else "Instance",
            semanticId=self._first_key_value(el, "semanticId"),
            submodelElements=elements,
        )

    def _decode_concept_description(self, el: etree._Element) -> ConceptDescription | None:
        cd_id = self._identifier(el)
        if not cd_id:
            logger.warning("Skipping concept description without id")
            return None
        iec = self._iec_content(el)
        return ConceptDescription(
            id=cd_id,
            idShort=self._text(el, "idShort") or cd_id,
            preferredName=iec.get("preferredName"),
            shortName=iec.get("shortName"),
            unit=iec.get("unit"),
            dataType=iec.get("dataType"),
            description=self._preferred_text(iec.get("definition"))
            or self._preferred_text(self._lang_map(self._child(el, "description"))),
            valueType=normalize_value_type(iec.get("valueFormat")),
        )

    @staticmethod
    def _element_nodes(container: etree._Element | None) -> Iterator[etree._Element]:
        """Typed element nodes of a container, unwrapping 1.0 ``submodelElement`` entries."""
        if container is None:
            return
        for child in container:
            if child.tag == "submodelElement":
                typed = next((c for c in child if c.tag in TAG_TO_MODEL_TYPE), None)
                if typed is not None:
                    yield typed
            elif child.tag in TAG_TO_MODEL_TYPE:
                yield child

    def _iec_content(self, el: etree._Element) -> dict[str, Any]:
        content = None
        for child in el:
            if child.tag not in ("embeddedDataSpecifications", "embeddedDataSpecification"):
                continue
            content = next(
                (node for node in child.iter() if isinstance(node.tag, str) and node.tag.lower() == "dataspecificationiec61360"),
                None,
            )
            if content is not None:
                break
        if content is None:
            return {}
        return {
            "preferredName": self._lang_map(self._child(content, "preferredName")),
            "shortName": self._lang_map(self._child(content, "shortName")),
            "unit": self._text(content, "unit"),
            "dataType": self._text(content, "dataType"),
            "definition": self._lang_map(self._child(content, "definition")),
            "valueFormat": self._text(content, "valueFormat"),
        }

    def _cardinality(self, el: etree._Element) -> str:
        for child in el:
            if child.tag not in ("qualifiers", "qualifier"):
                continue
            for node in child.iter():
                if node.tag not in ("qualifier", "qualifiers"):
                    continue
                if self._text(node, "type") in CARDINALITY_QUALIFIER_TYPES:
                    cardinality = parse_cardinality(self._text(node, "value"))
                    if cardinality:
                        return cardinality
        return DEFAULT_CARDINALITY

    def _decode_element(self, el: etree._Element) -> ElementBase | None:
        model_type = TAG_TO_MODEL_TYPE.get(el.tag)
        id_short = self._text(el, "idShort")
        if model_type is None or not id_short:
            logger.warning(f"Skipping <{el.tag}> element without idShort or known type")
            return None

        iec = self._iec_content(el)
        data: dict[str, Any] = {
            "idShort": id_short,
            "category": self._text(el, "category"),
            "description": self._preferred_text(self._lang_map(self._child(el, "description")))
            or self._preferred_text(iec.get("definition")),
            "semanticId": self._first_key_value(el, "semanticId"),
            "cardinality": self._cardinality(el),
            "preferredName": iec.get("preferredName"),
            "shortName": iec.get("shortName"),
            "unit": iec.get("unit"),
            "dataType": iec.get("dataType"),
        }
        value_el = self._child(el, "value")

        if model_type == "Property":
            data["valueType"] = normalize_value_type(self._text(el, "valueType"))
            data["value"] = self._value_text(value_el)

        elif model_type == "MultiLanguageProperty":
            data["value"] = self._lang_map(value_el, strip=False) or {}

        elif model_type == "File":
            data["contentType"] = self._text(el, "contentType") or self._text(el, "mimeType")
            data["value"] = self._value_text(value_el)

        elif model_type in ("SubmodelElementCollection", "SubmodelElementList"):
            children = (self._decode_element(node) for node in self._element_nodes(value_el))
            data["value"] = [child for child in children if child is not None]

        elif model_type == "ReferenceElement":
            reference = self._reference(value_el)
            if reference is not None:
                data["value"] = reference
            else:
                data["value"] = self._first_key_value(el, "valueId") or (
                    self._text(value_el) if value_el is not None else None
                )

        elif model_type in OPAQUE_MODEL_TYPES:
            data["modelType"] = model_type
            data["xmlFragment"] = etree.tostring(el, encoding="unicode", with_tail=False)

        logger.debug(f"Decoded {model_type} {id_short}")
        return ELEMENT_CLASSES[model_type].model_validate(data)

"""
AAS JSON codec.

Maps the element tree to and from the AAS JSON environment shape
(``assetAdministrationShells``, ``submodels``, ``conceptDescriptions``).
Elements keep the editor's flat IEC 61360 fields (``preferredName``,
``unit``, ...) and their ``cardinality`` next to the standard AAS keys.
"""

import json
import logging
import uuid
from collections.abc import Sequence
from typing import Any

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
    as_lang_map,
    parse_cardinality,
    preferred_text,
)
from aas_studio.schemas.environment import AasDialect, Environment, Shell, Submodel, Thumbnail
from aas_studio.services.concepts import collect_concept_descriptions
from aas_studio.services.errors import AasDecodeError
from aas_studio.services.opaque import fragment_to_json
from aas_studio.services.xml_codec import (
    CARDINALITY_QUALIFIER_TYPES,
    IEC61360_DATA_SPECIFICATION,
    unwrap_text,
)
from aas_studio.utils.xsd_mapping import DEFAULT_VALUE_TYPE, normalize_value_type, resolve_value_type

logger = logging.getLogger(__name__)


def _lang_list(lang_map: dict[str, str] | None) -> list[dict[str, str]]:
    return [
        {"language": language, "text": text}
        for language, text in (lang_map or {}).items()
        if text and text.strip()
    ]


def _external_reference(value: str) -> dict[str, Any]:
    return {"type": "ExternalReference", "keys": [{"type": "GlobalReference", "value": value}]}


def _reference_value(ref: Any) -> str | None:
    """First key value of a reference object, or the plain string itself."""
    ref = unwrap_text(ref)
    if isinstance(ref, str):
        return ref.strip() or None
    if isinstance(ref, dict):
        keys = ref.get("keys") or []
        if keys and isinstance(keys[0], dict):
            value = unwrap_text(keys[0].get("value"))
            return str(value) if value else None
    return None


def _scalar(value: Any) -> str | None:
    value = unwrap_text(value)
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class JsonCodecService:
    """
    Encoder/decoder between the element tree and AAS JSON.
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
    ) -> dict[str, Any]:
        """
        Encode a shell and its submodels as an AAS JSON environment.

        Returns:
            JSON-serializable environment dict
        """
        if concept_descriptions is None:
            concept_descriptions = collect_concept_descriptions(submodels)

        environment = {
            "assetAdministrationShells": [self._encode_shell(shell, submodels)],
            "submodels": [self._encode_submodel(sm, shell) for sm in submodels],
            "conceptDescriptions": [self._encode_concept_description(cd) for cd in concept_descriptions],
        }
        logger.info(f"Encoded JSON for shell {shell.idShort}: {len(submodels)} submodels")
        return environment

    def dumps(
        self,
        shell: Shell,
        submodels: Sequence[Submodel],
        concept_descriptions: Sequence[ConceptDescription] | None = None,
    ) -> str:
        """Encode to JSON text."""
        return json.dumps(
            self.encode(shell, submodels, concept_descriptions), indent=2, ensure_ascii=False
        )

    def _encode_shell(self, shell: Shell, submodels: Sequence[Submodel]) -> dict[str, Any]:
        asset_information: dict[str, Any] = {"assetKind": shell.assetKind}
        if shell.globalAssetId:
            asset_information["globalAssetId"] = shell.globalAssetId
        if shell.thumbnail:
            asset_information["defaultThumbnail"] = {
                "path": shell.thumbnail.path,
                "contentType": shell.thumbnail.contentType,
            }

        refs = [submodel.resolved_id(shell) for submodel in submodels]
        refs += [ref for ref in shell.submodelRefs if ref not in refs]

        return {
            "idShort": shell.idShort,
            "id": shell.id,
            "modelType": "AssetAdministrationShell",
            "assetInformation": asset_information,
            "submodels": [
                {"type": "ModelReference", "keys": [{"type": "Submodel", "value": ref}]}
                for ref in refs
            ],
        }

    def _encode_submodel(self, submodel: Submodel, shell: Shell) -> dict[str, Any]:
        result: dict[str, Any] = {
            "idShort": submodel.idShort,
            "id": submodel.resolved_id(shell),
            "kind": submodel.kind,
            "modelType": "Submodel",
        }
        if submodel.semanticId:
            result["semanticId"] = _external_reference(submodel.semanticId)
        result["submodelElements"] = [self.encode_element(el) for el in submodel.submodelElements]
        return result

    def _encode_concept_description(self, cd: ConceptDescription) -> dict[str, Any]:
        content: dict[str, Any] = {
            "modelType": "DataSpecificationIec61360",
            "preferredName": _lang_list(cd.preferredName) or [{"language": "en", "text": cd.idShort}],
        }
        if _lang_list(cd.shortName):
            content["shortName"] = _lang_list(cd.shortName)
        if cd.unit:
            content["unit"] = cd.unit
        if cd.dataType:
            content["dataType"] = cd.dataType
        if cd.description:
            content["definition"] = [{"language": self.default_language, "text": cd.description}]
        if cd.valueType:
            content["valueFormat"] = cd.valueType

        return {
            "idShort": cd.idShort,
            "id": cd.id,
            "modelType": "ConceptDescription",
            "embeddedDataSpecifications": [
                {
                    "dataSpecification": _external_reference(IEC61360_DATA_SPECIFICATION),
                    "dataSpecificationContent": content,
                }
            ],
        }

    def encode_element(self, element: ElementBase) -> dict[str, Any]:
        """Encode a single element, recursing into collections and lists."""
        if isinstance(element, OpaqueElement) and element.jsonPayload:
            return dict(element.jsonPayload)
        if isinstance(element, OpaqueElement) and element.xmlFragment:
            result = fragment_to_json(element.xmlFragment)
            result["cardinality"] = element.cardinality
            return result

        result: dict[str, Any] = {"idShort": element.idShort, "modelType": element.modelType}
        if element.category:
            result["category"] = element.category
        if element.description and element.description.strip():
            result["description"] = [{"language": self.default_language, "text": element.description}]
        if element.semanticId and not isinstance(element, ReferenceElement):
            result["semanticId"] = _external_reference(element.semanticId)
        if _lang_list(element.preferredName):
            result["preferredName"] = _lang_list(element.preferredName)
        if _lang_list(element.shortName):
            result["shortName"] = _lang_list(element.shortName)
        if element.unit:
            result["unit"] = element.unit
        if element.dataType:
            result["dataType"] = element.dataType
        result["cardinality"] = element.cardinality

        if isinstance(element, Property):
            result["valueType"] = resolve_value_type(element.valueType, element.dataType) or DEFAULT_VALUE_TYPE
            if element.value is not None:
                result["value"] = element.value

        elif isinstance(element, MultiLanguageProperty):
            result["value"] = _lang_list(element.value)

        elif isinstance(element, FileElement):
            if element.fileData:
                result["contentType"] = element.fileData.mimeType
            else:
                result["contentType"] = element.contentType or "application/octet-stream"
            if element.value:
                result["value"] = element.value

        elif isinstance(element, SubmodelElementList):
            result["typeValueListElement"] = element.value[0].modelType if element.value else "SubmodelElement"
            result["value"] = [self.encode_element(child) for child in element.value]

        elif isinstance(element, SubmodelElementCollection):
            result["value"] = [self.encode_element(child) for child in element.value]

        elif isinstance(element, ReferenceElement):
            if isinstance(element.value, Reference) and element.value.keys:
                result["value"] = element.value.model_dump()
            else:
                literal = element.value if isinstance(element.value, str) and element.value else None
                literal = literal or element.semanticId
                if literal:
                    result["valueId"] = _external_reference(literal)

        return result

    # ------------------------------------------------------------------
    # Decoding
    # ------------------------------------------------------------------

    def decode(self, text: str | bytes | dict[str, Any]) -> Environment:
        """
        Decode an AAS JSON environment.

        Args:
            text: JSON text or an already parsed document

        Returns:
            Environment with dialect ``json``

        Raises:
            AasDecodeError: If the JSON is malformed or not an AAS environment
        """
        if isinstance(text, dict):
            data = text
        else:
            try:
                data = json.loads(text)
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                raise AasDecodeError(f"Invalid JSON: {e}") from e

        if not isinstance(data, dict):
            raise AasDecodeError("Invalid JSON: root must be an object")
        if isinstance(data.get("environment"), dict):
            data = data["environment"]

        submodels = [
            self._decode_submodel(sm) for sm in data.get("submodels") or [] if isinstance(sm, dict)
        ]
        concept_descriptions = [
            cd
            for cd in (
                self._decode_concept_description(raw)
                for raw in data.get("conceptDescriptions") or []
                if isinstance(raw, dict)
            )
            if cd is not None
        ]

        shells = data.get("assetAdministrationShells") or data.get("shells") or []
        if shells and isinstance(shells[0], dict):
            shell = self._decode_shell(shells[0])
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
            f"Decoded AAS JSON: shell {shell.idShort}, {len(submodels)} submodels, "
            f"{len(concept_descriptions)} concept descriptions"
        )
        return Environment(
            shell=shell,
            submodels=submodels,
            conceptDescriptions=concept_descriptions,
            dialect=AasDialect.JSON,
        )

    @staticmethod
    def _identifier(raw: dict[str, Any]) -> str | None:
        identifier = raw.get("id") or raw.get("identification")
        if isinstance(identifier, dict):
            identifier = identifier.get("id")
        return _scalar(identifier)

    def _decode_shell(self, raw: dict[str, Any]) -> Shell:
        info = raw.get("assetInformation")
        if not isinstance(info, dict):
            info = {}
        thumbnail = None
        thumb = info.get("defaultThumbnail")
        if isinstance(thumb, dict) and thumb.get("path"):
            thumbnail = Thumbnail(path=thumb["path"], contentType=thumb.get("contentType") or "image/png")

        refs = []
        for ref in raw.get("submodels") or raw.get("submodelRefs") or []:
            keys = ref.get("keys") if isinstance(ref, dict) else None
            keys = [k for k in keys if isinstance(k, dict)] if isinstance(keys, list) else []
            if not keys:
                continue
            key = next((k for k in keys if k.get("type") == "Submodel"), keys[-1])
            value = _scalar(key.get("value"))
            if value:
                refs.append(value)

        global_asset_id = info.get("globalAssetId")
        if isinstance(global_asset_id, dict):
            global_asset_id = _reference_value(global_asset_id)

        return Shell(
            idShort=_scalar(raw.get("idShort")) or "Shell",
            id=self._identifier(raw) or "",
            assetKind="Type" if info.get("assetKind") == "Type" else "Instance",
            globalAssetId=global_asset_id,
            submodelRefs=refs,
            thumbnail=thumbnail,
        )

    def _decode_submodel(self, raw: dict[str, Any]) -> Submodel:
        raw_elements = raw.get("submodelElements") or raw.get("children") or []
        if not isinstance(raw_elements, list):
            raw_elements = []
        elements = [el for el in (self.decode_element(e) for e in raw_elements) if el is not None]
        kind = _scalar(raw.get("kind"))
        return Submodel(
            idShort=_scalar(raw.get("idShort")) or "",
            id=self._identifier(raw),
            kind="Template" if kind in ("Template", "Type") else "Instance",
            semanticId=_reference_value(raw.get("semanticId")),
            submodelElements=elements,
        )

    def _decode_concept_description(self, raw: dict[str, Any]) -> ConceptDescription | None:
        cd_id = self._identifier(raw)
        if not cd_id:
            logger.warning("Skipping concept description without id")
            return None
        iec = self._iec_content(raw)
        description = preferred_text(as_lang_map(iec.get("definition")), self.default_language)
        return ConceptDescription(
            id=cd_id,
            idShort=_scalar(raw.get("idShort")) or cd_id,
            preferredName=iec.get("preferredName"),
            shortName=iec.get("shortName"),
            unit=_scalar(iec.get("unit")),
            dataType=_scalar(iec.get("dataType")),
            description=description or self._description(raw.get("description")),
            valueType=normalize_value_type(_scalar(iec.get("valueFormat"))),
        )

    @staticmethod
    def _iec_content(raw: dict[str, Any]) -> dict[str, Any]:
        """IEC 61360 content from embeddedDataSpecifications, if any."""
        for eds in raw.get("embeddedDataSpecifications") or []:
            if not isinstance(eds, dict):
                continue
            content = eds.get("dataSpecificationContent")
            if isinstance(content, dict) and (
                "preferredName" in content or content.get("modelType") == "DataSpecificationIec61360"
            ):
                return content
        return {}

    def _description(self, raw: Any) -> str | None:
        raw = unwrap_text(raw)
        if isinstance(raw, str):
            return raw.strip() or None
        return preferred_text(as_lang_map(raw), self.default_language)

    def _cardinality(self, raw: dict[str, Any]) -> str:
        cardinality = parse_cardinality(_scalar(raw.get("cardinality")))
        if cardinality:
            return cardinality
        for qualifier in raw.get("qualifiers") or []:
            if isinstance(qualifier, dict) and qualifier.get("type") in CARDINALITY_QUALIFIER_TYPES:
                cardinality = parse_cardinality(_scalar(qualifier.get("value")))
                if cardinality:
                    return cardinality
        return DEFAULT_CARDINALITY

    def decode_element(self, raw: Any) -> ElementBase | None:
        """
        Decode a single element; returns None for entries that cannot be used.
        """
        if not isinstance(raw, dict):
            return None
        model_type = raw.get("modelType")
        if isinstance(model_type, dict):
            model_type = model_type.get("name")
        id_short = _scalar(raw.get("idShort"))
        if not isinstance(model_type, str) or model_type not in ELEMENT_CLASSES or not id_short:
            logger.warning(f"Skipping element {id_short or '?'} with unusable modelType {model_type!r}")
            return None

        iec = self._iec_content(raw)
        data: dict[str, Any] = {
            "idShort": id_short,
            "category": _scalar(raw.get("category")),
            "description": self._description(raw.get("description"))
            or preferred_text(as_lang_map(iec.get("definition")), self.default_language),
            "semanticId": _reference_value(raw.get("semanticId")),
            "cardinality": self._cardinality(raw),
            "preferredName": raw.get("preferredName") or iec.get("preferredName"),
            "shortName": raw.get("shortName") or iec.get("shortName"),
            "unit": _scalar(raw.get("unit") or iec.get("unit")),
            "dataType": _scalar(raw.get("dataType") or iec.get("dataType")),
        }
        value = raw.get("value")

        if model_type == "Property":
            data["valueType"] = normalize_value_type(_scalar(raw.get("valueType")))
            data["value"] = _scalar(value)

        elif model_type == "MultiLanguageProperty":
            data["value"] = as_lang_map(unwrap_text(value), self.default_language) or {}

        elif model_type == "File":
            data["contentType"] = _scalar(raw.get("contentType") or raw.get("mimeType"))
            data["value"] = _scalar(value) or None

        elif model_type in ("SubmodelElementCollection", "SubmodelElementList"):
            raw_children = value if isinstance(value, list) and value else raw.get("children") or []
            if not isinstance(raw_children, list):
                raw_children = []
            children = (self.decode_element(child) for child in raw_children)
            data["value"] = [child for child in children if child is not None]

        elif model_type == "ReferenceElement":
            if isinstance(value, dict) and value.get("keys"):
                data["value"] = Reference(
                    type=value.get("type") or "ExternalReference",
                    keys=[
                        Key(type=k.get("type") or "GlobalReference", value=str(unwrap_text(k.get("value"))))
                        for k in value["keys"]
                        if isinstance(k, dict) and k.get("value") is not None
                    ],
                )
            else:
                data["value"] = _scalar(value) or _reference_value(raw.get("valueId"))

        elif model_type in OPAQUE_MODEL_TYPES:
            data["modelType"] = model_type
            data["jsonPayload"] = raw

        return ELEMENT_CLASSES[model_type].model_validate(data)

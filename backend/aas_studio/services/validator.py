"""
Structural validation of the element tree.

Checks that do not need the XSD: idShort pattern and uniqueness, value
type resolution, literal/type consistency and required-ness. All issues
are collected in a single pass in document order; the path of every
issue is exact.
"""

import logging
import re
from collections.abc import Sequence
from typing import Any

from aas_studio.schemas.elements import (
    MODEL_TYPES,
    ElementBase,
    FileElement,
    MultiLanguageProperty,
    Property,
    is_container,
    is_required,
)
from aas_studio.schemas.environment import Shell, Submodel
from aas_studio.schemas.validation import Issue, StructuralReport
from aas_studio.utils.xsd_mapping import is_valid_value_for_xsd_type, resolve_value_type

logger = logging.getLogger(__name__)

ID_SHORT_PATTERN = re.compile(r"^[a-zA-Z][a-zA-Z0-9_-]*[a-zA-Z0-9]$|^[a-zA-Z]$")


def is_valid_id_short(value: str | None) -> bool:
    return bool(value) and bool(ID_SHORT_PATTERN.match(value))


class StructuralValidator:
    """
    Validates a shell and its submodels against the AAS structural rules.
    """

    def validate(self, shell: Shell, submodels: Sequence[Submodel]) -> StructuralReport:
        """
        Validate a shell and its submodels.

        Args:
            shell: Shell header
            submodels: Submodels with their element trees

        Returns:
            Report with every issue found, in document order
        """
        issues: list[Issue] = []

        if not is_valid_id_short(shell.idShort):
            issues.append(self._id_short_issue(shell.idShort, [shell.idShort or "<shell>"]))
        if not shell.id or not shell.id.strip():
            issues.append(
                Issue(message="Shell id must not be empty", path=[shell.idShort or "<shell>"], code="missing_id")
            )

        seen_submodels: set[str] = set()
        for submodel in submodels:
            path = [submodel.idShort or "<submodel>"]
            if not is_valid_id_short(submodel.idShort):
                issues.append(self._id_short_issue(submodel.idShort, path))
            elif submodel.idShort in seen_submodels:
                issues.append(
                    Issue(
                        message=f"Duplicate submodel idShort '{submodel.idShort}'",
                        path=path,
                        code="duplicate_id_short",
                    )
                )
            seen_submodels.add(submodel.idShort)
            self._validate_elements(submodel.submodelElements, path, issues)

        logger.info(f"Structural validation of {shell.idShort}: {len(issues)} issues")
        return StructuralReport(valid=not issues, issues=issues)

    @staticmethod
    def _id_short_issue(value: str | None, path: list[str]) -> Issue:
        return Issue(
            message=(
                f"idShort '{value or ''}' is invalid: it must start with a letter, "
                "contain only letters, digits, '_' or '-', and end with a letter or digit"
            ),
            path=path,
            code="invalid_id_short",
        )

    def _validate_elements(
        self, elements: Sequence[ElementBase], parent_path: list[str], issues: list[Issue]
    ) -> None:
        seen: set[str] = set()
        for element in elements:
            path = [*parent_path, element.idShort or "<element>"]

            if not is_valid_id_short(element.idShort):
                issues.append(self._id_short_issue(element.idShort, path))
            elif element.idShort in seen:
                issues.append(
                    Issue(
                        message=f"Duplicate idShort '{element.idShort}' among siblings",
                        path=path,
                        code="duplicate_id_short",
                    )
                )
            seen.add(element.idShort)

            issues.extend(self._check_element(element, path))

            if is_container(element):
                self._validate_elements(element.value, path, issues)

    def _check_element(self, element: ElementBase, path: list[str]) -> list[Issue]:
        issues: list[Issue] = []
        required = is_required(element.cardinality)

        if isinstance(element, Property):
            value_type = resolve_value_type(element.valueType, element.dataType)
            if value_type is None and required:
                issues.append(
                    Issue(
                        message=f"Property '{element.idShort}' has no valid value type",
                        path=path,
                        code="missing_value_type",
                    )
                )
            if value_type and element.value and not is_valid_value_for_xsd_type(value_type, element.value):
                issues.append(
                    Issue(
                        message=f"Value '{element.value}' is not a valid {value_type}",
                        path=path,
                        code="invalid_value",
                    )
                )

        if not required:
            return issues

        if isinstance(element, Property):
            missing = not (element.value and element.value.strip())
        elif isinstance(element, FileElement):
            missing = not (element.value and element.value.strip()) and element.fileData is None
        elif isinstance(element, MultiLanguageProperty):
            missing = not any(text and text.strip() for text in element.value.values())
        elif is_container(element):
            missing = len(element.value) == 0
        else:
            missing = False

        if missing:
            issues.append(
                Issue(
                    message=f"Required {element.modelType} '{element.idShort}' has no value",
                    path=path,
                    code="missing_required",
                )
            )
        return issues


def check_raw_document(data: Any) -> StructuralReport:
    """
    Loose structure check of an uploaded JSON document before decoding.

    Verifies the root holds at least one AAS top-level array, that shells
    and submodels are objects, that every idShort found anywhere matches
    the pattern and that submodel elements carry a known modelType and an
    idShort.
    """
    issues: list[Issue] = []

    if not isinstance(data, dict):
        return StructuralReport(
            valid=False,
            issues=[Issue(message="Document root must be a JSON object", path=["/"], code="invalid_root")],
        )

    if isinstance(data.get("environment"), dict):
        data = data["environment"]

    _check_id_shorts(data, [], issues)

    if not any(data.get(key) for key in ("assetAdministrationShells", "shells", "submodels", "conceptDescriptions")):
        issues.append(
            Issue(
                message=(
                    "Missing AAS structure: Expected at least one of "
                    "assetAdministrationShells, submodels, or conceptDescriptions"
                ),
                path=["/"],
                code="missing_structure",
            )
        )

    for key in ("assetAdministrationShells", "shells", "submodels"):
        entries = data.get(key)
        if entries is None:
            continue
        if not isinstance(entries, list):
            issues.append(Issue(message=f"'{key}' must be an array", path=[key], code="invalid_structure"))
            continue
        for index, entry in enumerate(entries):
            if not isinstance(entry, dict):
                issues.append(
                    Issue(message="Entry must be an object", path=[f"{key}[{index}]"], code="invalid_structure")
                )
            elif key == "submodels":
                _check_raw_elements(entry.get("submodelElements") or [], [f"submodels[{index}]"], issues)

    return StructuralReport(valid=not issues, issues=issues)


def _check_id_shorts(node: Any, path: list[str], issues: list[Issue]) -> None:
    if isinstance(node, dict):
        id_short = node.get("idShort")
        if isinstance(id_short, str) and id_short and not is_valid_id_short(id_short):
            issues.append(
                Issue(
                    message=(
                        f"The value '{id_short}' is not accepted by the pattern "
                        "'[a-zA-Z][a-zA-Z0-9_-]*[a-zA-Z0-9]+'"
                    ),
                    path=[*path, "idShort"],
                    code="invalid_id_short",
                )
            )
        for key, value in node.items():
            if isinstance(value, list):
                for index, item in enumerate(value):
                    _check_id_shorts(item, [*path, f"{key}[{index}]"], issues)
            elif isinstance(value, dict):
                _check_id_shorts(value, [*path, key], issues)


def _check_raw_elements(elements: Any, path: list[str], issues: list[Issue]) -> None:
    if not isinstance(elements, list):
        issues.append(Issue(message="submodelElements must be an array", path=path, code="invalid_structure"))
        return
    for index, element in enumerate(elements):
        element_path = [*path, f"submodelElements[{index}]"]
        if not isinstance(element, dict):
            issues.append(Issue(message="Element must be an object", path=element_path, code="invalid_structure"))
            continue
        model_type = element.get("modelType")
        if isinstance(model_type, dict):
            model_type = model_type.get("name")
        if model_type not in MODEL_TYPES:
            issues.append(
                Issue(
                    message=f"Unknown modelType {model_type!r}",
                    path=element_path,
                    code="invalid_model_type",
                )
            )
        if not element.get("idShort"):
            issues.append(Issue(message="Element is missing idShort", path=element_path, code="missing_id_short"))
        value = element.get("value")
        children = value if isinstance(value, list) and value else element.get("children")
        if model_type in ("SubmodelElementCollection", "SubmodelElementList") and children:
            _check_raw_elements(children, element_path, issues)

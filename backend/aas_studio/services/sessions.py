"""
In-memory editing sessions.

A session owns an environment and tracks whether its last validation
verdict still applies. Every edit bumps the revision; the verdict is
only trusted for export while the content digest it was computed for
matches the current content.
"""

import hashlib
import logging
import threading
import uuid
from collections.abc import Mapping, Sequence
from typing import Any

from aas_studio.schemas.elements import ElementBase
from aas_studio.schemas.environment import Environment, Submodel
from aas_studio.schemas.validation import ValidationReport
from aas_studio.services import tree
from aas_studio.services.errors import ElementNotFound

logger = logging.getLogger(__name__)


def content_digest(environment: Environment) -> str:
    return hashlib.sha256(environment.model_dump_json().encode("utf-8")).hexdigest()


class EditSession:
    """
    Editable environment with explicit validation staleness.

    Element paths start with the submodel idShort, followed by the
    idShort path inside that submodel.
    """

    def __init__(
        self,
        environment: Environment,
        attachments: Mapping[str, bytes] | None = None,
        session_id: str | None = None,
    ):
        self.id = session_id or uuid.uuid4().hex
        self.environment = environment
        self.attachments = dict(attachments or {})
        self.revision = 0
        self.last_report: ValidationReport | None = None
        self._last_digest: str | None = None

    @property
    def is_stale(self) -> bool:
        """True if there is no verdict or the content changed since."""
        return self.last_report is None or self._last_digest != content_digest(self.environment)

    def can_export(self) -> bool:
        return self.last_report is not None and self.last_report.valid and not self.is_stale

    def record_validation(
        self, report: ValidationReport, environment: Environment | None = None
    ) -> ValidationReport:
        """
        Store a verdict.

        Args:
            report: Validation result
            environment: The content that was validated; defaults to the
                current content. If edits happened meanwhile the verdict is
                stale right away.
        """
        validated = environment if environment is not None else self.environment
        self.last_report = report.model_copy(update={"revision": self.revision})
        self._last_digest = content_digest(validated)
        return self.last_report

    def _split(self, path: Sequence[str]) -> tuple[int, list[str]]:
        if not path:
            raise ElementNotFound([])
        for index, submodel in enumerate(self.environment.submodels):
            if submodel.idShort == path[0]:
                return index, list(path[1:])
        raise ElementNotFound(list(path))

    def _replace_elements(self, index: int, elements: list[ElementBase]) -> None:
        submodels = list(self.environment.submodels)
        submodels[index] = submodels[index].model_copy(update={"submodelElements": elements})
        self.environment = self.environment.model_copy(update={"submodels": submodels})
        self.revision += 1
        logger.debug(f"Session {self.id} at revision {self.revision}")

    def add_submodel(self, submodel: Submodel) -> Submodel:
        """Append a submodel; its idShort must be unique in the environment."""
        if self.environment.submodel(submodel.idShort) is not None:
            raise ValueError(f"Duplicate submodel idShort: {submodel.idShort}")
        self.environment = self.environment.model_copy(
            update={"submodels": [*self.environment.submodels, submodel]}
        )
        self.revision += 1
        logger.info(f"Session {self.id} added submodel {submodel.idShort}")
        return submodel

    def find(self, path: Sequence[str]) -> ElementBase:
        index, inner = self._split(path)
        element = tree.find_element(self.environment.submodels[index].submodelElements, inner)
        if element is None:
            raise ElementNotFound(list(path))
        return element

    def update_element(self, path: Sequence[str], changes: dict[str, Any]) -> ElementBase:
        index, inner = self._split(path)
        elements = tree.update_element(self.environment.submodels[index].submodelElements, inner, changes)
        self._replace_elements(index, elements)
        new_path = [*path[:-1], changes.get("idShort") or path[-1]]
        return self.find(new_path)

    def insert_element(
        self, parent_path: Sequence[str], element: ElementBase, index: int | None = None
    ) -> None:
        sm_index, inner = self._split(parent_path)
        elements = tree.insert_element(
            self.environment.submodels[sm_index].submodelElements, inner, element, index
        )
        self._replace_elements(sm_index, elements)

    def delete_element(self, path: Sequence[str], force: bool = False) -> None:
        index, inner = self._split(path)
        elements = tree.delete_element(self.environment.submodels[index].submodelElements, inner, force)
        self._replace_elements(index, elements)

    def reorder_children(self, parent_path: Sequence[str], from_index: int, to_index: int) -> None:
        index, inner = self._split(parent_path)
        elements = tree.reorder_children(
            self.environment.submodels[index].submodelElements, inner, from_index, to_index
        )
        self._replace_elements(index, elements)


class SessionStore:
    """Thread-safe in-memory session registry."""

    def __init__(self):
        self._sessions: dict[str, EditSession] = {}
        self._lock = threading.Lock()

    def create(
        self, environment: Environment, attachments: Mapping[str, bytes] | None = None
    ) -> EditSession:
        session = EditSession(environment, attachments)
        with self._lock:
            self._sessions[session.id] = session
        logger.info(f"Created session {session.id} for shell {environment.shell.idShort}")
        return session

    def get(self, session_id: str) -> EditSession | None:
        with self._lock:
            return self._sessions.get(session_id)

    def delete(self, session_id: str) -> bool:
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def __len__(self) -> int:
        return len(self._sessions)

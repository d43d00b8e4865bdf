"""
AASX package reading and writing.

An AASX file is an OPC package: the ``aasx-origin`` part points to the
AAS document through an ``aas-spec`` relationship, the document points to
its supplementary files through ``aas-suppl`` relationships, and the
package root carries the thumbnail and core properties. The OPC layer is
basyx's ``aasx`` module and its ``pyecma376_2`` package model; the
document itself is written as the codec produced it.
"""

import datetime
import io
import logging
import mimetypes
import posixpath
import zipfile
from collections.abc import Iterable, Mapping

import pyecma376_2
from basyx.aas.adapter import aasx
from lxml import etree
from pydantic import BaseModel, ConfigDict, Field

from aas_studio.schemas.environment import Shell, Thumbnail
from aas_studio.services.errors import AasDecodeError

logger = logging.getLogger(__name__)

REL_AASX_ORIGIN = aasx.RELATIONSHIP_TYPE_AASX_ORIGIN
REL_AASX_ORIGIN_LEGACY = "http://www.admin-shell.io/aasx/relationships/aasx-origin"
REL_AAS_SPEC = aasx.RELATIONSHIP_TYPE_AAS_SPEC
REL_AAS_SPEC_LEGACY = "http://www.admin-shell.io/aasx/relationships/aas-spec"
REL_AAS_SUPPL = aasx.RELATIONSHIP_TYPE_AAS_SUPL
REL_THUMBNAIL = pyecma376_2.RELATIONSHIP_TYPE_THUMBNAIL
REL_CORE_PROPERTIES = pyecma376_2.RELATIONSHIP_TYPE_CORE_PROPERTIES

ORIGIN_PART = aasx.AASXWriter.AASX_ORIGIN_PART_NAME.lstrip("/")
JSON_PART = "aasx/model.json"
FILES_DIR = "aasx/files"

DEFAULT_CONTENT_TYPES = {
    "rels": "application/vnd.openxmlformats-package.relationships+xml",
    "xml": "text/xml",
    "json": "application/json",
}

THUMBNAIL_CANDIDATES = (
    "aasx/Thumbnail.png",
    "aasx/thumbnail.png",
    "Thumbnail.png",
    "thumbnail.png",
    "aasx/Thumbnail.jpg",
    "thumbnail.jpg",
)


class PackageContents(BaseModel):
    """Parts of an AASX package the core works with."""

    model_config = ConfigDict(ser_json_bytes="base64")

    xml_part: str | None = None
    xml_text: str | None = None
    json_text: str | None = None
    attachments: dict[str, bytes] = Field(default_factory=dict)
    thumbnail: Thumbnail | None = None


def guess_mime_type(name: str) -> str:
    mime_type, _ = mimetypes.guess_type(name)
    return mime_type or "application/octet-stream"


def resolve_attachment(attachments: Mapping[str, bytes], path: str | None) -> bytes | None:
    """
    Resolve a File element target against the attachment map.

    Targets may be written with or without a leading slash, and relative
    to the package root or to the ``aasx`` folder.
    """
    if not path:
        return None
    stripped = path.lstrip("/")
    candidates = [path, stripped, f"/{stripped}"]
    if stripped.startswith("aasx/"):
        candidates.append(stripped[len("aasx/"):])
    else:
        candidates.append(f"aasx/{stripped}")
    for candidate in candidates:
        if candidate in attachments:
            return attachments[candidate]
    return None


def _part_name(path: str) -> str:
    return "/" + path.lstrip("/")


class DocumentPackageWriter(aasx.AASXWriter):
    """
    AASXWriter for documents that are already serialized.

    ``AASXWriter.write_aas`` serializes basyx object stores; here the AAS
    XML produced by the codec is stored as the ``aas-spec`` part, so the
    package carries exactly the document that was validated.
    """

    def __init__(self, file):
        super().__init__(file)
        self.writer.content_types.default_types.update(DEFAULT_CONTENT_TYPES)

    def write_document(self, part_name: str, text: str, content_type: str = "text/xml") -> None:
        """Write an AAS document part and register it as ``aas-spec`` target of the origin."""
        self.write_part(part_name, text.encode("utf-8"), content_type)
        self._aas_part_names.append(part_name)

    def write_part(self, part_name: str, data: bytes, content_type: str) -> None:
        with self.writer.open_part(part_name, content_type) as part:
            part.write(data)

    def write_supplementary_files(self, document_part: str, files: Mapping[str, bytes]) -> None:
        """Write supplementary files and the document's ``aas-suppl`` relationships."""
        relationships = []
        for index, name in enumerate(sorted(files), start=1):
            self.write_part(name, files[name], guess_mime_type(name))
            relationships.append(
                pyecma376_2.OPCRelationship(
                    f"suppl-{index}", REL_AAS_SUPPL, name, pyecma376_2.OPCTargetMode.INTERNAL
                )
            )
        if relationships:
            self.writer.write_relationships(relationships, document_part)


class AasxPackager:
    """
    Reads and writes AASX packages.
    """

    def __init__(self, creator: str = "AAS Package Studio"):
        self.creator = creator

    def write(
        self,
        shell: Shell,
        xml_text: str,
        json_text: str | None = None,
        attachments: Mapping[str, bytes] | None = None,
    ) -> bytes:
        """
        Build an AASX package.

        Args:
            shell: Shell whose idShort names the document part and whose
                thumbnail, if it has content, is bundled
            xml_text: Encoded AAS XML document
            json_text: Optional JSON mirror stored as ``aasx/model.json``
            attachments: Supplementary files keyed by package path

        Returns:
            AASX file content

        Raises:
            ValueError: If a part name is not a valid OPC part name
        """
        xml_part = f"/aasx/{shell.idShort}.aas.xml"
        files = {_part_name(path): content for path, content in (attachments or {}).items()}

        thumbnail_part = None
        if shell.thumbnail and shell.thumbnail.content:
            thumbnail_part = _part_name(shell.thumbnail.path)
            files.pop(thumbnail_part, None)

        core_properties = pyecma376_2.OPCCoreProperties()
        core_properties.creator = self.creator
        core_properties.title = shell.idShort
        core_properties.identifier = shell.id
        core_properties.created = datetime.datetime.now(datetime.timezone.utc)

        buffer = io.BytesIO()
        with DocumentPackageWriter(buffer) as writer:
            writer.write_document(xml_part, xml_text)
            writer.write_supplementary_files(xml_part, files)
            if json_text is not None:
                writer.write_part(_part_name(JSON_PART), json_text.encode("utf-8"), "application/json")
            if thumbnail_part:
                writer.write_thumbnail(thumbnail_part, shell.thumbnail.content, shell.thumbnail.contentType)
            writer.write_core_properties(core_properties)

        logger.info(f"Wrote AASX for {shell.idShort} with {len(files)} attachments")
        return buffer.getvalue()

    def read(self, content: bytes) -> PackageContents:
        """
        Read an AASX package.

        The document is found through the origin and ``aas-spec``
        relationships. Archives without OPC bookkeeping are scanned for
        the best scoring document entry instead.

        Args:
            content: AASX file content

        Returns:
            The AAS XML document, the JSON mirror, the attachment map and
            the thumbnail

        Raises:
            AasDecodeError: If the content is not a ZIP archive
        """
        try:
            reader = pyecma376_2.ZipPackageReader(io.BytesIO(content))
        except zipfile.BadZipFile as e:
            raise AasDecodeError(f"Invalid AASX package: {e}") from e
        except (KeyError, etree.XMLSyntaxError) as e:
            logger.warning(f"Package has no usable [Content_Types].xml ({e}), reading loose entries")
            return self._read_loose(content)

        with reader:
            result = self._read_package(reader)
        if result is None:
            logger.warning("Package has no aas-spec relationship, reading loose entries")
            return self._read_loose(content)

        logger.info(
            f"Read AASX: document {result.xml_part}, {len(result.attachments) // 2} attachments"
        )
        return result

    def _read_package(self, reader) -> PackageContents | None:
        root_rels = reader.get_related_parts_by_type()
        origin = next(iter(root_rels[REL_AASX_ORIGIN] or root_rels[REL_AASX_ORIGIN_LEGACY]), None)
        if origin is None:
            return None
        part_names = {name.lstrip("/").lower(): name for name, _ in reader.list_parts()}
        origin_rels = reader.get_related_parts_by_type(origin)
        spec_parts = [
            part
            for part in origin_rels[REL_AAS_SPEC] or origin_rels[REL_AAS_SPEC_LEGACY]
            if part.lstrip("/").lower() in part_names
        ]

        xml_part = next((p for p in spec_parts if self._is_xml(reader, p)), None)
        json_part = next((p for p in spec_parts if self._is_json(reader, p)), None)
        if xml_part is None and json_part is None:
            return None

        if json_part is None and JSON_PART in part_names:
            json_part = part_names[JSON_PART]

        skipped = {origin, xml_part, json_part, *root_rels[REL_CORE_PROPERTIES]}
        skipped = {name.lstrip("/").lower() for name in skipped if name}
        attachments: dict[str, bytes] = {}
        for name, _ in reader.list_parts():
            path = name.lstrip("/")
            if path.lower() in skipped:
                continue
            data = self._read_part(reader, name)
            attachments[path] = data
            attachments[f"/{path}"] = data

        thumbnail = None
        thumbnail_part = next(iter(root_rels[REL_THUMBNAIL]), None)
        if thumbnail_part is not None and thumbnail_part.lstrip("/").lower() in part_names:
            thumbnail = Thumbnail(
                path=thumbnail_part.lstrip("/"),
                contentType=reader.get_content_type(thumbnail_part) or guess_mime_type(thumbnail_part),
                content=self._read_part(reader, thumbnail_part),
            )
        elif thumbnail_part is not None:
            logger.warning(f"Thumbnail part {thumbnail_part} is missing")
        if thumbnail is None:
            thumbnail = self._fallback_thumbnail(list(attachments), attachments)

        return PackageContents(
            xml_part=xml_part.lstrip("/") if xml_part else None,
            xml_text=self._read_part(reader, xml_part).decode("utf-8-sig") if xml_part else None,
            json_text=self._read_part(reader, json_part).decode("utf-8-sig") if json_part else None,
            attachments=attachments,
            thumbnail=thumbnail,
        )

    @staticmethod
    def _read_part(reader, name: str) -> bytes:
        with reader.open_part(name) as part:
            return part.read()

    @staticmethod
    def _is_xml(reader, part_name: str) -> bool:
        content_type = reader.get_content_type(part_name).split(";")[0]
        return content_type in ("text/xml", "application/xml") or part_name.lower().endswith(".xml")

    @staticmethod
    def _is_json(reader, part_name: str) -> bool:
        content_type = reader.get_content_type(part_name).split(";")[0]
        return content_type in ("text/json", "application/json") or part_name.lower().endswith(".json")

    def _read_loose(self, content: bytes) -> PackageContents:
        """Best-effort read of a ZIP archive by entry names."""
        with zipfile.ZipFile(io.BytesIO(content)) as zf:
            names = [info.filename for info in zf.infolist() if not info.is_dir()]

            xml_candidates = [
                name
                for name in names
                if name.lower().endswith(".xml")
                and name != "[Content_Types].xml"
                and "_rels/" not in name
            ]
            xml_part = max(xml_candidates, key=self._score_xml_candidate, default=None)

            json_candidates = [
                name
                for name in names
                if name.lower().endswith(".json")
                and any(marker in posixpath.basename(name).lower() for marker in ("model", "aas", "environment"))
            ]
            json_part = JSON_PART if JSON_PART in names else next(iter(json_candidates), None)

            attachments: dict[str, bytes] = {}
            for name in names:
                lower = name.lower()
                if lower.endswith((".xml", ".json", ".rels")) or name == ORIGIN_PART:
                    continue
                data = zf.read(name)
                attachments[name] = data
                attachments[f"/{name}"] = data

            result = PackageContents(
                xml_part=xml_part,
                xml_text=zf.read(xml_part).decode("utf-8-sig") if xml_part else None,
                json_text=zf.read(json_part).decode("utf-8-sig") if json_part else None,
                attachments=attachments,
                thumbnail=self._fallback_thumbnail(names, attachments),
            )

        logger.info(
            f"Read loose AASX entries: document {xml_part or json_part}, {len(attachments) // 2} attachments"
        )
        return result

    @staticmethod
    def _score_xml_candidate(name: str) -> int:
        lower = name.lower()
        score = 0
        if lower.endswith(".aas.xml"):
            score += 3
        if "aasenv" in lower:
            score += 2
        if "environment" in lower:
            score += 1
        return score

    @staticmethod
    def _fallback_thumbnail(names: Iterable[str], attachments: Mapping[str, bytes]) -> Thumbnail | None:
        names = [name for name in names if not name.startswith("/")]
        target = next((name for name in THUMBNAIL_CANDIDATES if name in names), None)
        if target is None:
            target = next(
                (name for name in names if name.lower().endswith((".png", ".jpg", ".jpeg"))),
                None,
            )
        if target is None:
            return None
        return Thumbnail(path=target, contentType=guess_mime_type(target), content=attachments[target])

"""
Backend services for AAS Package Studio.

Pipeline:
- Codecs: XML/JSON decode into the element tree and encode back
- Validation: structural checks and the XSD gateway
- Export: validation gate and AASX packaging
"""

from aas_studio.services.documents import DocumentService
from aas_studio.services.exporter import ExportService
from aas_studio.services.json_codec import JsonCodecService
from aas_studio.services.packager import AasxPackager
from aas_studio.services.schema_gateway import SchemaValidationGateway
from aas_studio.services.validator import StructuralValidator
from aas_studio.services.xml_codec import XmlCodecService

__all__ = [
    "XmlCodecService",
    "JsonCodecService",
    "StructuralValidator",
    "SchemaValidationGateway",
    "AasxPackager",
    "DocumentService",
    "ExportService",
]

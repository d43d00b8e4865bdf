"""
AAS Package Studio Backend

Reads, edits, validates and writes Asset Administration Shell documents.
The in-memory element tree is decoded from AAS XML (1.0, 3.0, 3.1), AAS
JSON or AASX packages and always exported in the current 3.1 dialect.

Architecture:
- Codecs: XML and JSON encode/decode of the element tree
- Validator: structural checks plus the external XSD check
- Exporter: validation-gated XML, JSON and AASX output
"""

__version__ = "1.0.0"

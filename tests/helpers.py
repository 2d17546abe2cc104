"""
Shared helpers for building uploads and inspecting relayed multipart bodies.
"""

import re
from typing import List, Optional

WEBHOOK_URL = "http://workflow.test/webhook/licitaciones-upload"

# Minimal PDF that is technically valid
MINIMAL_PDF = b"""%PDF-1.4
1 0 obj
<< /Type /Catalog /Pages 2 0 R >>
endobj
2 0 obj
<< /Type /Pages /Kids [3 0 R] /Count 1 >>
endobj
3 0 obj
<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] >>
endobj
xref
0 4
0000000000 65535 f
0000000009 00000 n
0000000058 00000 n
0000000115 00000 n
trailer
<< /Size 4 /Root 1 0 R >>
startxref
196
%%EOF"""


def make_pdf(size: int) -> bytes:
    """Build PDF bytes padded to exactly ``size`` bytes."""
    return MINIMAL_PDF + b"\n" * (size - len(MINIMAL_PDF))


def form_value(content: bytes, name: str) -> Optional[str]:
    """Read a plain form field out of an encoded multipart body."""
    match = re.search(rb'name="' + name.encode() + rb'"\r\n\r\n(.*?)\r\n', content)
    return match.group(1).decode() if match else None


def file_part_names(content: bytes) -> List[str]:
    return [name.decode() for name in re.findall(rb'name="([^"]+)"; filename=', content)]

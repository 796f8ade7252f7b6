"""Insurance claim OCR.

Turns an uploaded claim document (PDF, JPEG or PNG) into raw text with
Tesseract and maps that text onto a fixed set of claim fields.
"""

__version__ = "1.0.0"

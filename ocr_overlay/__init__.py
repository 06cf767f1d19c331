"""Screenshot OCR + translation overlay core."""

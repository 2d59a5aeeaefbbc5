import bleach


def clean_text(value) -> str:
    """Strip every HTML tag (keeping the inner text) and surrounding whitespace."""
    return bleach.clean((value or '').strip(), tags=set(), attributes={}, strip=True).strip()

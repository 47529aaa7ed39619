from typing import List, Literal, Optional


def format_cents(amount: int, currency: str = "$") -> str:
    """Render an integer amount of minor units, e.g. 1397 -> "$13.97"."""
    sign = "-" if amount < 0 else ""
    whole, cents = divmod(abs(int(amount)), 100)
    return f"{sign}{currency}{whole}.{cents:02d}"


def compose_shipping_address(
    first_name: str,
    last_name: str,
    address: str,
    city: str,
    state: str,
    zip_code: str,
    phone: str,
) -> str:
    """Flatten checkout form fields into the single free-text address stored on an order."""
    return (
        f"{first_name} {last_name}, {address}, {city}, {state} {zip_code}. "
        f"Phone: {phone}"
    )


def generate_markdown_table(
    headers: Optional[List[str]],
    rows: List[List[str]],
    aligns: Optional[List[Literal["l", "c", "r"]]] = None,
) -> str:
    """
    Generate a Markdown table.

    Args:
        headers: column headers, or None to use the first row as headers.
        rows: list of rows, each a list of cells (stringified).
        aligns: 'l', 'c' or 'r' per column; all left when omitted.

    Returns:
        str: the table, or "" when there are no rows.
    """
    if not rows:
        return ""

    if not headers:
        headers, rows = rows[0], rows[1:]

    headers = [str(h) for h in headers]
    if aligns is None:
        aligns = ["l"] * len(headers)
    elif len(aligns) != len(headers):
        raise ValueError("Length of aligns must match number of headers.")

    markers = {"l": ":---", "c": ":---:", "r": "---:"}

    def line(cells) -> str:
        return "| " + " | ".join(str(c) for c in cells) + " |"

    return "\n".join(
        [line(headers), line(markers[a] for a in aligns), *(line(r) for r in rows)]
    )

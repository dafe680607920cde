from pathlib import Path
from typing import Any, Mapping, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from constants.alerts import PI_UPLOAD, PO_DELETED


_TEMPLATES_DIR = Path(__file__).parent / "templates"
_env = Environment(
    loader=FileSystemLoader(str(_TEMPLATES_DIR)),
    autoescape=select_autoescape(["html", "xml"]),
)

_HEADINGS = {
    PI_UPLOAD: "Proforma Invoice Alert",
    PO_DELETED: "Purchase Order Deleted",
}


def render_po_alert_email(
    alert_message: str,
    snapshot: Mapping[str, Any],
    alert_type: Optional[str],
    company_name: Optional[str],
    product_name: str,
) -> str:
    """
    Render the PO/PI alert email HTML body from template.
    """
    template = _env.get_template("po_alert.html")
    return template.render(
        heading=_HEADINGS.get(alert_type or "", "Purchase Order Alert"),
        alert_message=alert_message,
        buyer_name=snapshot.get("buyer_name"),
        supplier_name=snapshot.get("supplier_name"),
        po_number=snapshot.get("po_number"),
        quantity=snapshot.get("quantity_ordered"),
        amount=snapshot.get("amount"),
        currency=snapshot.get("currency"),
        date=snapshot.get("po_received_date"),
        company_name=company_name or product_name,
    )


def alert_subject(snapshot: Mapping[str, Any]) -> str:
    return f"New Alert: {snapshot.get('buyer_name') or 'Purchase Order'}"

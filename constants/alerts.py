"""
Alert types written to alerts.alert_type.
Rows created before types existed carry NULL.
"""

PO_UPLOAD = "PO_UPLOAD"
PI_UPLOAD = "PI_UPLOAD"
PO_DELETED = "PO_DELETED"


import logging
from typing import Any, Dict, List, Optional

import httpx

from common.exceptions import ConfigurationError, DependencyError
from settings.config import Settings, get_settings

logger = logging.getLogger(__name__)

ADMIN_CUSTOMERS_QUERY = """
query AdminCustomers($first: Int!) {
  customers(first: $first, query: "metafields.custom.isadmin:true") {
    edges {
      node {
        id
        email
        firstName
        lastName
        metafield(namespace: "custom", key: "isadmin") {
          value
        }
      }
    }
  }
}
"""


class ShopifyAdminClient:
    """
    Minimal Shopify Admin GraphQL client.
    Only used to find the storefront admins that receive legacy PO alerts.
    """

    def __init__(self, settings: Optional[Settings] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings or get_settings()
        self._transport = transport

    def _graphql_url(self) -> str:
        if not self.settings.SHOPIFY_STORE or not self.settings.SHOPIFY_ADMIN_TOKEN:
            raise ConfigurationError("Shopify Admin credentials not configured")
        return f"https://{self.settings.SHOPIFY_STORE}/admin/api/{self.settings.SHOPIFY_API_VERSION}/graphql.json"

    async def graphql(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = self._graphql_url()
        headers = {
            "Content-Type": "application/json",
            "X-Shopify-Access-Token": self.settings.SHOPIFY_ADMIN_TOKEN or "",
        }
        try:
            async with httpx.AsyncClient(timeout=self.settings.SHOPIFY_TIMEOUT_SECONDS, transport=self._transport) as client:
                response = await client.post(url, json={"query": query, "variables": variables or {}}, headers=headers)
                response.raise_for_status()
                body = response.json()
        except httpx.HTTPError as exc:
            raise DependencyError("Shopify request failed", details=str(exc)) from exc

        if body.get("errors"):
            raise DependencyError("Shopify GraphQL errors", details=body["errors"])
        return body.get("data") or {}

    async def get_admin_customers(self, first: int = 250) -> List[Dict[str, Any]]:
        """
        Customers whose custom.isadmin metafield is "true", as
        {"id", "email", "name"} dicts with the numeric customer id.
        """
        data = await self.graphql(ADMIN_CUSTOMERS_QUERY, {"first": first})
        edges = ((data.get("customers") or {}).get("edges")) or []

        admins = []
        for edge in edges:
            node = edge.get("node") or {}
            if (node.get("metafield") or {}).get("value") != "true":
                continue
            full_name = f"{node.get('firstName') or ''} {node.get('lastName') or ''}".strip()
            admins.append(
                {
                    # gid://shopify/Customer/123456 -> 123456
                    "id": str(node.get("id", "")).rsplit("/", 1)[-1],
                    "email": node.get("email"),
                    "name": full_name or node.get("email"),
                }
            )
        logger.info("Found %d admin customers", len(admins))
        return admins

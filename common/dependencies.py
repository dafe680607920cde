"""
FastAPI dependencies returning the collaborators built once in main.create_app().
"""
from fastapi import Request

from apps.alerts.service import AlertNotifier
from apps.shopify.client import ShopifyAdminClient
from apps.storage.service import ObjectStore


def get_po_store(request: Request) -> ObjectStore:
    return request.app.state.po_store


def get_invoice_store(request: Request) -> ObjectStore:
    return request.app.state.invoice_store


def get_travel_bill_store(request: Request) -> ObjectStore:
    return request.app.state.travel_bill_store


def get_shopify_client(request: Request) -> ShopifyAdminClient:
    return request.app.state.shopify_client


def get_alert_notifier(request: Request) -> AlertNotifier:
    return request.app.state.alert_notifier

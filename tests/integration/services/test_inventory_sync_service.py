# tests/integration/services/test_inventory_sync_service.py
from datetime import timedelta

import httpx
import pytest
from sqlalchemy import func, select

from app.core.enums import AlertStatus, SyncKind, SyncLogStatus, SyncTrigger
from app.core.exceptions import ConnectorConfigurationError
from app.integrations.events import StockAlertTriggeredEvent, SyncCompletedEvent
from app.integrations.platforms.shopify import ShopifyConnector
from app.models import InventorySyncLog, Product
from app.services.inventory_sync_service import InventorySyncService
from tests.conftest import FIXED_NOW
from tests.mocks.mock_http import RecordingTransport
from tests.mocks.mock_platform import ConnectorFactory


@pytest.fixture
def factory():
    return ConnectorFactory()


@pytest.fixture
def service(db_session, factory, clock, events):
    return InventorySyncService(db_session, connector_factory=factory, clock=clock, events=events)


async def all_logs(db_session):
    result = await db_session.execute(select(InventorySyncLog).order_by(InventorySyncLog.id))
    return result.scalars().all()


async def product_count(db_session):
    return (await db_session.execute(select(func.count(Product.id)))).scalar_one()


"""
Full catalog sync
"""

@pytest.mark.asyncio
async def test_full_sync_creates_products(service, db_session, factory, make_integration, sample_items, events):
    integration = await make_integration()
    factory.catalogs[integration.id] = sample_items

    result = await service.sync_all_products(integration)

    assert result.success is True
    assert result.data["created"] == 3
    assert result.data["updated"] == 0
    assert result.data["skipped"] == 0
    assert await product_count(db_session) == 3

    sync_log = (await all_logs(db_session))[0]
    assert result.data["sync_log_id"] == sync_log.id
    assert sync_log.kind == SyncKind.FULL
    assert sync_log.trigger == SyncTrigger.MANUAL
    assert sync_log.status == SyncLogStatus.COMPLETED
    assert sync_log.products_synced == 3
    assert sync_log.message == "Sync completed: 3 products created, 0 updated, 0 skipped"
    assert [entry["changes"] for entry in sync_log.changes] == [{"new_product": True}] * 3

    assert integration.last_sync_at == FIXED_NOW
    assert integration.products_count == 3

    completed = [e for e in events.emitted if isinstance(e, SyncCompletedEvent)]
    assert len(completed) == 1
    assert completed[0].sync_log_id == sync_log.id
    assert completed[0].owner_id == 7
    assert completed[0].kind == "full"


@pytest.mark.asyncio
async def test_repeated_sync_of_unchanged_data_is_idempotent(
    service, db_session, factory, make_integration, sample_items
):
    integration = await make_integration()
    factory.catalogs[integration.id] = sample_items

    await service.sync_all_products(integration)
    second = await service.sync_all_products(integration)

    assert second.success is True
    assert second.data["created"] == 0
    assert second.data["updated"] == 0
    assert second.data["skipped"] == 3
    assert await product_count(db_session) == 3

    logs = await all_logs(db_session)
    assert len(logs) == 2
    assert logs[1].products_synced == 0
    assert logs[1].changes == []


@pytest.mark.asyncio
async def test_quantity_drop_updates_product_and_triggers_alert(
    service, db_session, factory, make_integration, make_alert, sample_items, events
):
    """Stock falls from 10 to 3 upstream with an alert at 5"""
    integration = await make_integration()
    factory.catalogs[integration.id] = sample_items
    await service.sync_all_products(integration)

    product = (await db_session.execute(select(Product).where(Product.external_id == "1001"))).scalar_one()
    alert = await make_alert(product, threshold=5)
    sample_items[0].quantity = 3

    result = await service.sync_all_products(integration)

    assert result.data["updated"] == 1
    assert result.data["skipped"] == 2
    assert product.quantity == 3

    sync_log = (await all_logs(db_session))[-1]
    assert sync_log.changes == [{
        "product_id": product.id,
        "external_id": "1001",
        "title": "Test Guitar 1",
        "changes": {"fields": [{"field": "quantity", "from": 10, "to": 3}]},
    }]

    assert alert.status == AlertStatus.TRIGGERED
    assert alert.triggered_at == FIXED_NOW
    triggered = [e for e in events.emitted if isinstance(e, StockAlertTriggeredEvent)]
    assert [(e.product_id, e.current_quantity, e.threshold) for e in triggered] == [(product.id, 3, 5)]


@pytest.mark.asyncio
async def test_negative_upstream_quantity_is_skipped(service, db_session, factory, make_integration, sample_items):
    integration = await make_integration()
    sample_items[1].quantity = -2
    factory.catalogs[integration.id] = sample_items

    result = await service.sync_all_products(integration)

    assert result.success is True
    assert result.data["created"] == 2
    assert result.data["skipped"] == 1
    assert await product_count(db_session) == 2


@pytest.mark.asyncio
async def test_inactive_integration_fails_fast(service, db_session, factory, make_integration):
    integration = await make_integration(is_active=False)

    result = await service.sync_all_products(integration)

    assert result.success is False
    assert result.error == "Store integration is not active"
    assert result.sync_log_id is None
    assert factory.calls == 0
    assert await all_logs(db_session) == []


@pytest.mark.asyncio
async def test_connector_failure_finalizes_log_as_failed(service, db_session, factory, make_integration, events):
    integration = await make_integration()
    factory.failing.add(integration.id)

    result = await service.sync_all_products(integration)

    assert result.success is False
    assert result.error == "Service unavailable"

    sync_log = (await all_logs(db_session))[0]
    assert result.sync_log_id == sync_log.id
    assert sync_log.status == SyncLogStatus.FAILED
    assert sync_log.message == "Service unavailable"
    assert integration.last_sync_at is None
    assert list(events.emitted) == []


@pytest.mark.asyncio
async def test_connector_configuration_error_is_logged(db_session, make_integration, clock):
    integration = await make_integration()

    def broken_factory(integration):
        raise ConnectorConfigurationError("Shopify integration is missing required field(s): api_key")

    service = InventorySyncService(db_session, connector_factory=broken_factory, clock=clock)
    result = await service.sync_all_products(integration)

    assert result.success is False
    sync_log = (await all_logs(db_session))[0]
    assert sync_log.status == SyncLogStatus.FAILED
    assert "api_key" in sync_log.message


@pytest.mark.asyncio
async def test_unexpected_error_rolls_back_catalog_writes(
    service, db_session, factory, make_integration, sample_items, mocker
):
    integration = await make_integration()
    factory.catalogs[integration.id] = sample_items
    mocker.patch.object(service.recorder, "complete", side_effect=RuntimeError("disk full"))

    result = await service.sync_all_products(integration)

    assert result.success is False
    assert result.error == "disk full"
    assert await product_count(db_session) == 0

    sync_log = (await all_logs(db_session))[0]
    assert result.sync_log_id == sync_log.id
    assert sync_log.status == SyncLogStatus.FAILED
    assert sync_log.message == "disk full"


"""
Single product sync
"""

@pytest.mark.asyncio
async def test_sync_product_updates_existing_row(
    service, db_session, factory, make_integration, make_product, sample_items
):
    integration = await make_integration()
    product = await make_product(integration, external_id="1001", sku="TG-1001", title="Old title", quantity=10)
    sample_items[0].quantity = 4
    factory.catalogs[integration.id] = sample_items

    result = await service.sync_product(product)

    assert result.success is True
    assert result.data["status"] == "updated"
    assert result.data["product"] is product
    assert product.quantity == 4
    assert product.title == "Test Guitar 1"

    sync_log = (await all_logs(db_session))[0]
    assert sync_log.kind == SyncKind.SINGLE
    assert sync_log.product_id == product.id
    assert sync_log.products_synced == 1
    assert sync_log.message == "Product updated successfully"
    fields = [change["field"] for change in sync_log.changes[0]["changes"]["fields"]]
    assert fields == ["title", "quantity"]


@pytest.mark.asyncio
async def test_sync_product_not_found_remotely(service, db_session, factory, make_integration, make_product):
    integration = await make_integration()
    product = await make_product(integration, external_id="404404")

    result = await service.sync_product(product)

    assert result.success is False
    assert result.error == "Product not found"
    sync_log = (await all_logs(db_session))[0]
    assert result.sync_log_id == sync_log.id
    assert sync_log.status == SyncLogStatus.FAILED


@pytest.mark.asyncio
async def test_sync_product_without_sku_fails_with_identifier_reason(
    db_session, clock, events, settings, sleeper, make_integration, make_product
):
    """A remote record with no SKU cannot be matched, so the single sync fails and says why"""
    transport = RecordingTransport([httpx.Response(200, json={"product": {
        "id": 1001,
        "title": "Test Guitar 1",
        "status": "active",
        "variants": [{"id": 10010, "sku": "", "inventory_quantity": 4}],
    }})])
    service = InventorySyncService(
        db_session,
        connector_factory=lambda integration: ShopifyConnector(
            integration, sleep=sleeper, transport=transport.transport, settings=settings
        ),
        clock=clock,
        events=events,
    )
    integration = await make_integration()
    product = await make_product(integration, external_id="1001", quantity=10)

    result = await service.sync_product(product)

    assert result.success is False
    assert result.error == "Product has no usable identifier: product 1001 has no SKU"
    assert product.quantity == 10
    sync_log = (await all_logs(db_session))[0]
    assert result.sync_log_id == sync_log.id
    assert sync_log.status == SyncLogStatus.FAILED
    assert sync_log.message == result.error
    assert transport.paths() == ["/admin/api/2023-07/products/1001.json"]


"""
Inventory push
"""

@pytest.mark.asyncio
async def test_push_updates_remote_then_local(
    service, db_session, factory, make_integration, make_product, make_alert, sample_items, events
):
    integration = await make_integration()
    factory.catalogs[integration.id] = sample_items
    product = await make_product(integration, external_id="1001", quantity=10)
    alert = await make_alert(product, threshold=5)

    result = await service.push_inventory_update(product, 3)

    assert result.success is True
    assert factory.connectors[integration.id].push_calls == [{"external_id": "1001", "quantity": 3}]
    assert product.quantity == 3
    assert product.last_synced_at == FIXED_NOW

    sync_log = (await all_logs(db_session))[0]
    assert sync_log.kind == SyncKind.PUSH
    assert sync_log.status == SyncLogStatus.COMPLETED
    assert sync_log.products_synced == 1
    assert sync_log.message == "Inventory updated to 3 units"
    assert sync_log.changes[0]["changes"] == {"fields": [{"field": "quantity", "from": 10, "to": 3}]}
    assert alert.status == AlertStatus.TRIGGERED
    assert any(isinstance(e, StockAlertTriggeredEvent) for e in events.emitted)


@pytest.mark.asyncio
async def test_push_failure_leaves_local_quantity(service, db_session, factory, make_integration, make_product):
    integration = await make_integration()
    product = await make_product(integration, quantity=10)
    factory.failing.add(integration.id)

    result = await service.push_inventory_update(product, 4)

    assert result.success is False
    assert product.quantity == 10
    sync_log = (await all_logs(db_session))[0]
    assert sync_log.status == SyncLogStatus.FAILED
    assert sync_log.message == "Service unavailable"


@pytest.mark.asyncio
async def test_push_rejects_negative_quantity(service, db_session, factory, make_integration, make_product):
    integration = await make_integration()
    product = await make_product(integration, quantity=10)

    result = await service.push_inventory_update(product, -1)

    assert result.success is False
    assert "Invalid quantity" in result.error
    assert factory.calls == 0
    assert await all_logs(db_session) == []


"""
Bulk sync and recommendations
"""

@pytest.mark.asyncio
async def test_bulk_sync_continues_past_failures(
    service, db_session, factory, make_integration, sample_items
):
    first = await make_integration(name="First")
    broken = await make_integration(name="Broken")
    third = await make_integration(name="Third")
    await make_integration(name="Disabled", is_active=False)
    factory.catalogs[first.id] = sample_items
    factory.catalogs[third.id] = sample_items[:1]
    factory.failing.add(broken.id)

    result = await service.sync_all_active_integrations(trigger=SyncTrigger.SCHEDULED)

    assert result.success is True
    assert list(result.data) == [first.id, broken.id, third.id]
    assert result.data[first.id].data["created"] == 3
    assert result.data[broken.id].success is False
    assert result.data[third.id].data["created"] == 1

    logs = await all_logs(db_session)
    assert [log.trigger for log in logs] == [SyncTrigger.SCHEDULED] * 3

    payload = result.to_dict()
    assert payload["success"] is True
    assert payload["data"][broken.id]["error"] == "Service unavailable"


@pytest.mark.asyncio
async def test_recommendations(service, make_integration, make_product, make_alert, db_session):
    never_synced = await make_integration(name="Never synced")
    fresh = await make_integration(name="Fresh", last_sync_at=FIXED_NOW - timedelta(hours=1))
    stale_product = await make_product(fresh, external_id="1", quantity=1,
                                       last_synced_at=FIXED_NOW - timedelta(hours=13))
    await make_product(fresh, external_id="2", quantity=1, last_synced_at=FIXED_NOW - timedelta(hours=13))
    alert = await make_alert(stale_product, threshold=5, triggered_at=FIXED_NOW - timedelta(hours=2),
                             status=AlertStatus.TRIGGERED)

    recommendations = await service.get_sync_recommendations()

    assert [r.get("integration_id") for r in recommendations if "integration_id" in r] == [never_synced.id]
    product_entries = [r for r in recommendations if "product_id" in r]
    assert [r["product_id"] for r in product_entries] == [stale_product.id]
    assert product_entries[0]["store_integration_id"] == fresh.id
    assert alert.product_id == stale_product.id


@pytest.mark.asyncio
async def test_result_serialization(service, factory, make_integration, make_product, sample_items):
    integration = await make_integration()
    factory.catalogs[integration.id] = sample_items
    product = await make_product(integration, external_id="1001", quantity=10)

    result = await service.push_inventory_update(product, 7)

    payload = result.to_dict()
    assert payload["success"] is True
    assert payload["data"]["product"]["quantity"] == 7
    assert payload["data"]["product"]["sku"] == "TG-1001"
    assert payload["data"]["sync_log_id"] == result.sync_log_id

# tests/integration/services/test_stock_alert_service.py
import pytest

from app.core.enums import AlertStatus
from app.integrations.events import StockAlertTriggeredEvent
from app.services.stock_alert_service import StockAlertService
from tests.conftest import FIXED_NOW


@pytest.fixture
def alert_service(db_session, clock, events):
    return StockAlertService(db_session, clock=clock, events=events)


@pytest.mark.asyncio
async def test_quantity_at_threshold_triggers(alert_service, make_integration, make_product, make_alert, events):
    integration = await make_integration()
    product = await make_product(integration, quantity=5)
    alert = await make_alert(product, threshold=5)

    fired = await alert_service.evaluate_product(product)

    assert fired == [alert]
    assert alert.status == AlertStatus.TRIGGERED
    assert alert.triggered_at == FIXED_NOW

    event = events.emitted[-1]
    assert isinstance(event, StockAlertTriggeredEvent)
    assert event.alert_id == alert.id
    assert event.owner_id == 7
    assert event.current_quantity == 5
    assert event.threshold == 5
    assert event.notification_method == "email"
    assert event.sku == "TG-1001"


@pytest.mark.asyncio
async def test_quantity_above_threshold_does_not_trigger(alert_service, make_integration, make_product, make_alert):
    integration = await make_integration()
    product = await make_product(integration, quantity=6)
    alert = await make_alert(product, threshold=5)

    assert await alert_service.evaluate_product(product) == []
    assert alert.status == AlertStatus.PENDING
    assert alert.triggered_at is None


@pytest.mark.asyncio
async def test_triggered_alert_stays_quiet_until_reset(
    alert_service, make_integration, make_product, make_alert, events
):
    integration = await make_integration()
    product = await make_product(integration, quantity=2)
    alert = await make_alert(product, threshold=5)

    await alert_service.evaluate_product(product)
    assert await alert_service.evaluate_product(product) == []
    assert len(events.emitted) == 1

    await alert_service.reset(alert)
    assert alert.status == AlertStatus.PENDING
    assert alert.triggered_at is None

    assert await alert_service.evaluate_product(product) == [alert]
    assert len(events.emitted) == 2


@pytest.mark.asyncio
async def test_inactive_alerts_are_ignored(alert_service, make_integration, make_product, make_alert):
    integration = await make_integration()
    product = await make_product(integration, quantity=0)
    alert = await make_alert(product, threshold=5, is_active=False)

    assert await alert_service.evaluate_product(product) == []
    assert alert.triggered_at is None


@pytest.mark.asyncio
async def test_reset_is_idempotent(alert_service, make_integration, make_product, make_alert):
    integration = await make_integration()
    product = await make_product(integration, quantity=50)
    alert = await make_alert(product, threshold=5)

    await alert_service.reset(alert)
    await alert_service.reset(alert)

    assert alert.status == AlertStatus.PENDING
    assert alert.triggered_at is None


@pytest.mark.asyncio
async def test_check_all_alerts_scans_every_product(alert_service, make_integration, make_product, make_alert):
    integration = await make_integration()
    low = await make_product(integration, external_id="1", sku="LOW", quantity=1)
    high = await make_product(integration, external_id="2", sku="HIGH", quantity=40)
    low_alert = await make_alert(low, threshold=3)
    await make_alert(high, threshold=3)

    fired = await alert_service.check_all_alerts()

    assert fired == [low_alert]


@pytest.mark.asyncio
async def test_evaluate_integration_covers_all_products(alert_service, make_integration, make_product, make_alert):
    integration = await make_integration()
    other = await make_integration(name="Second store")
    mine = await make_product(integration, external_id="1", quantity=0)
    theirs = await make_product(other, external_id="1", quantity=0)
    mine_alert = await make_alert(mine, threshold=1)
    await make_alert(theirs, threshold=1)

    fired = await alert_service.evaluate_integration(integration)

    assert fired == [mine_alert]

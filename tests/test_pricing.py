"""
Tests for the service pricing service
"""

import pytest

from dispatch_engine.config import CommissionRates
from dispatch_engine.config.constants import DEFAULT_SERVICE_PRICING
from dispatch_engine.infra import InMemoryPricingStore
from dispatch_engine.models import ServiceType
from dispatch_engine.settlement import PricingService, price_change_message
from dispatch_engine.utils.errors import InvalidPricing


@pytest.fixture
def pricing_service(event_bus):
    return PricingService(InMemoryPricingStore(), event_bus)


def _prices(**changes):
    prices = {service.value: price for service, price in DEFAULT_SERVICE_PRICING.items()}
    prices.update(changes)
    return prices


def test_missing_record_falls_back_to_defaults(pricing_service):
    pricing = pricing_service.get_current_pricing()

    assert pricing.prices == DEFAULT_SERVICE_PRICING
    assert pricing.updated_by == "system"
    assert pricing_service.get_service_price(ServiceType.REPAIR) == 200.0


def test_preview_does_not_save(pricing_service):
    impacts = pricing_service.preview(_prices(installation=600.0))

    assert [i.service_type for i in impacts] == [ServiceType.INSTALLATION]
    assert pricing_service.get_current_pricing().price_for(ServiceType.INSTALLATION) == 500.0


def test_update_saves_and_notifies(pricing_service, published):
    notifications = pricing_service.update_pricing(
        _prices(installation=600.0, inspection=80.0), actor="admin_1", actor_name="Admin Ama"
    )

    stored = pricing_service.get_current_pricing()
    assert stored.price_for(ServiceType.INSTALLATION) == 600.0
    assert stored.updated_by == "admin_1"

    assert [n.message for n in notifications] == [
        "Installation service price increased from GHC 500 to GHC 600 (20.0% increase)",
        "Inspection service price decreased from GHC 100 to GHC 80 (20.0% decrease)",
    ]
    assert all(n.created_by == "Admin Ama" and n.is_active for n in notifications)
    assert notifications[1].change_percentage == -20.0

    event = published[-1]
    assert event.event == "pricing_updated"
    assert event.payload["prices"]["installation"] == 600.0


def test_missing_service_type_is_invalid(pricing_service):
    prices = _prices()
    del prices["repair"]

    with pytest.raises(InvalidPricing):
        pricing_service.update_pricing(prices, actor="admin_1")


def test_negative_price_is_invalid(pricing_service):
    with pytest.raises(InvalidPricing):
        pricing_service.preview(_prices(maintenance=-5.0))


def test_unchanged_update_has_no_notifications(pricing_service):
    assert pricing_service.update_pricing(_prices(), actor="admin_1") == []


def test_message_keeps_fractional_prices():
    message = price_change_message(ServiceType.MAINTENANCE, 150.0, 162.5)
    assert message == "Maintenance service price increased from GHC 150 to GHC 162.5 (8.3% increase)"


def test_injected_rates_drive_preview_and_messages():
    rates = CommissionRates(technician_payout_rate=0.8, currency_code="USD")
    service = PricingService(InMemoryPricingStore(), commission_rates=rates)

    (impact,) = service.preview(_prices(installation=600.0))
    assert impact.technician_impact == 80.0
    assert impact.technician_impact_label == "+USD 80.00 per job"

    (notification,) = service.update_pricing(_prices(installation=600.0), actor="admin_1")
    assert notification.message.startswith("Installation service price increased from USD 500 to USD 600")


def test_payout_rate_argument_overrides_injected_rates():
    rates = CommissionRates(technician_payout_rate=0.8)
    service = PricingService(InMemoryPricingStore(), technician_payout_rate=0.5, commission_rates=rates)

    (impact,) = service.preview(_prices(installation=600.0))
    assert impact.technician_impact == 50.0

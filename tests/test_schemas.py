from datetime import datetime, timezone
import math
import pytest
from pydantic import ValidationError
from tms.application.schemas import (
    PageRequest,
    RegisterInput,
    ShipmentFilter,
    UpdateShipmentInput,
    paginate,
)
from tms.domain.models import ShipmentStatus

@pytest.mark.parametrize("total,limit", [(0, 1), (0, 10), (1, 10), (10, 10), (11, 10), (25, 10), (7, 3), (100, 1)])
def test_total_pages_is_ceiling(total, limit):
    assert paginate(total, 1, limit).total_pages == math.ceil(total / limit)

@pytest.mark.parametrize("page", [1, 2, 3, 4])
def test_page_flags_follow_page_position(page):
    info = paginate(25, page, 10)
    assert info.has_next_page == (page < 3)
    assert info.has_prev_page == (page > 1)

def test_empty_result_has_no_neighbours():
    info = paginate(0, 1, 10)
    assert info.total_pages == 0
    assert not info.has_next_page
    assert not info.has_prev_page

def test_page_request_defaults_and_skip():
    request = PageRequest()
    assert (request.page, request.limit, request.sort_by, request.sort_order.value) == (1, 10, "createdAt", "DESC")
    assert request.skip == 0
    assert PageRequest(page=3, limit=20).skip == 40

@pytest.mark.parametrize("kwargs", [{"page": 0}, {"limit": 0}, {"sort_by": "password"}, {"sort_order": "UP"}])
def test_page_request_rejects_invalid_values(kwargs):
    with pytest.raises(ValidationError):
        PageRequest(**kwargs)

def test_filter_treats_blank_text_as_absent():
    f = ShipmentFilter(carrier_name="  ", search="", shipper_name="Acme")
    assert f.carrier_name is None
    assert f.search is None
    assert f.shipper_name == "Acme"

def test_filter_dates_are_parsed_as_utc():
    f = ShipmentFilter(date_from="2026-01-05", date_to="2026-01-10T12:00:00+02:00")
    assert f.date_from == datetime(2026, 1, 5, tzinfo=timezone.utc)
    assert f.date_to == datetime(2026, 1, 10, 10, tzinfo=timezone.utc)

def test_filter_rejects_inverted_date_range():
    with pytest.raises(ValidationError):
        ShipmentFilter(date_from="2026-02-01", date_to="2026-01-01")

def test_filter_rejects_unknown_status():
    with pytest.raises(ValidationError):
        ShipmentFilter(status="LOST")
    assert ShipmentFilter(status="DELIVERED").status is ShipmentStatus.DELIVERED

def test_update_changes_contain_only_supplied_fields():
    update = UpdateShipmentInput(rate=250.0, notes=None)
    assert update.changes() == {"rate": 250.0, "notes": None}

def test_update_rejects_null_for_required_fields():
    with pytest.raises(ValidationError):
        UpdateShipmentInput(shipper_name=None)
    with pytest.raises(ValidationError):
        UpdateShipmentInput(rate=-1)

def test_register_normalises_email_and_defaults_role():
    data = RegisterInput(email="  Someone@Example.COM ", password="secret123", name="Some One")
    assert data.email == "someone@example.com"
    assert data.role.value == "employee"

@pytest.mark.parametrize("kwargs", [
    {"email": "not-an-email"},
    {"password": "short"},
    {"password": "x" * 80},
    {"name": "A"},
])
def test_register_validation(kwargs):
    payload = {"email": "a@b.com", "password": "secret123", "name": "Valid Name", **kwargs}
    with pytest.raises(ValidationError):
        RegisterInput(**payload)

import pytest

from refurb_api.core.errors import NotFound, ValidationFailed
from refurb_api.db.models.enums import ChecklistResult, DeviceCategory
from refurb_api.services import checklist


@pytest.mark.parametrize("category", list(DeviceCategory))
def test_every_category_has_twenty_ordered_items(category):
    items = checklist.get_checklist(category)
    assert [i.index for i in items] == list(range(1, 21))
    assert all(i.text for i in items)


def test_lookup_accepts_plain_strings():
    assert checklist.get_checklist("MONITOR") is checklist.get_checklist(DeviceCategory.MONITOR)


def test_unknown_category_is_not_found():
    with pytest.raises(NotFound):
        checklist.get_checklist("PHONE")


def test_validate_results_reports_missing_duplicate_and_unknown():
    indexes = list(range(1, 20)) + [3, 25]
    with pytest.raises(ValidationFailed) as exc:
        checklist.validate_results(DeviceCategory.LAPTOP, indexes)
    assert exc.value.details == {"unknown": [25], "duplicate": [3], "missing": [20]}


def test_validate_results_returns_catalog_by_index():
    catalog = checklist.validate_results(DeviceCategory.SERVER, range(20, 0, -1))
    assert catalog[1].text == "Rack mounting hardware intact and complete"


def test_not_applicable_is_not_a_failure():
    assert checklist.is_failure(ChecklistResult.FAIL)
    assert not checklist.is_failure(ChecklistResult.NOT_APPLICABLE)
    assert not checklist.is_failure("PASS")


def test_format_item_with_and_without_notes():
    item = checklist.get_checklist(DeviceCategory.LAPTOP)[7]
    assert checklist.format_item(item, "45% capacity") == (
        "[8] Battery health check (minimum 70% acceptable): 45% capacity"
    )
    assert checklist.format_item(item, "  ") == "[8] Battery health check (minimum 70% acceptable)"

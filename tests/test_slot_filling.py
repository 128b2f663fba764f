"""Tests for slot definitions, first-write-wins merging and the next-slot order."""

import pytest

from citabot.conversation.slot_manager import (
    all_required_filled,
    discard_slot,
    get_definition,
    get_missing_slots,
    get_next_missing_slot,
    merge_slots,
    required_slots,
)
from citabot.schemas.session_schema import BookingSlots


class TestRequiredSlots:
    def test_worker_not_required_for_single_worker(self):
        names = [d.name for d in required_slots(worker_required=False)]
        assert names == ["name", "service", "date", "time"]

    def test_worker_required_last(self):
        names = [d.name for d in required_slots(worker_required=True)]
        assert names == ["name", "service", "date", "time", "worker"]

    def test_unknown_definition(self):
        with pytest.raises(ValueError):
            get_definition("phone")


class TestMerge:
    def test_fills_empty_slots(self):
        slots = BookingSlots()
        filled = merge_slots(slots, {"name": "Ana", "service": "Corte"})
        assert filled == ["name", "service"]
        assert slots.name == "Ana"

    def test_first_write_wins(self):
        slots = BookingSlots(name="Ana")
        filled = merge_slots(slots, {"name": "María"})
        assert filled == []
        assert slots.name == "Ana"

    def test_disagreeing_passes_never_alter_filled_slots(self):
        slots = BookingSlots()
        merge_slots(slots, {"name": "Ana", "date": "lunes"})
        merge_slots(slots, {"name": "Pedro", "date": "martes", "time": "10:00 AM"})
        merge_slots(slots, {"time": "5:00 PM"})
        assert slots.to_dict() == {"name": "Ana", "date": "lunes", "time": "10:00 AM"}

    @pytest.mark.parametrize("empty", ["", "   ", "null", "NULL"])
    def test_empty_values_are_ignored(self, empty):
        slots = BookingSlots()
        assert merge_slots(slots, {"service": empty}) == []
        assert slots.service is None

    def test_values_are_stripped(self):
        slots = BookingSlots()
        merge_slots(slots, {"service": "  Corte  "})
        assert slots.service == "Corte"


class TestNextSlot:
    def test_next_prompt_is_date_after_name_and_service(self):
        slots = BookingSlots(name="Ana", service="Corte", date="", time="")
        nxt = get_next_missing_slot(slots, worker_required=False)
        assert nxt.name == "date"

    def test_empty_session_asks_name_first(self):
        assert get_next_missing_slot(BookingSlots(), worker_required=False).name == "name"

    def test_out_of_order_fill_still_asks_in_priority_order(self):
        slots = BookingSlots(time="3:00 PM", date="lunes")
        missing = [d.name for d in get_missing_slots(slots, worker_required=False)]
        assert missing == ["name", "service"]

    def test_worker_asked_only_when_required(self):
        slots = BookingSlots(name="Ana", service="Corte", date="lunes", time="10")
        assert get_next_missing_slot(slots, worker_required=False) is None
        assert get_next_missing_slot(slots, worker_required=True).name == "worker"
        assert not all_required_filled(slots, worker_required=True)
        assert all_required_filled(slots, worker_required=False)


class TestDiscard:
    def test_discarded_slot_is_asked_again(self):
        slots = BookingSlots(name="Ana", service="Corte", date="el 45", time="10")
        discard_slot(slots, "date")
        assert get_next_missing_slot(slots, worker_required=False).name == "date"

    def test_discard_unknown_slot(self):
        with pytest.raises(ValueError):
            discard_slot(BookingSlots(), "phone")

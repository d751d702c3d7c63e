"""Tests for team capacity tracking."""

import threading

import pytest

from lead_assignment.assignment import CapacityTracker, NotFoundError, ValidationError


class TestCapacityTracker:
    """Tests for CapacityTracker."""

    def setup_method(self):
        self.tracker = CapacityTracker()
        self.tracker.set_capacity("u1", 10, ["enterprise"], True)
        self.tracker.set_capacity("u2", 2, [], True)
        self.tracker.set_capacity("u3", 5, [], False)

    def test_registration_order_kept(self):
        assert [m.user_id for m in self.tracker.list_all()] == ["u1", "u2", "u3"]

    def test_set_capacity_keeps_current_count(self):
        self.tracker.update_current_leads("u1", 4)
        member = self.tracker.set_capacity("u1", 20, ["smb"], True)
        assert member.current_leads == 4
        assert member.max_leads == 20
        assert [m.user_id for m in self.tracker.list_all()] == ["u1", "u2", "u3"]

    def test_list_available(self):
        self.tracker.update_current_leads("u2", 2)
        assert [m.user_id for m in self.tracker.list_available()] == ["u1", "u2"]

    def test_list_with_spare_capacity(self):
        self.tracker.update_current_leads("u2", 2)
        assert [m.user_id for m in self.tracker.list_with_spare_capacity()] == ["u1"]

    def test_validate(self):
        assert self.tracker.validate("u1")
        assert not self.tracker.validate("u3")
        assert not self.tracker.validate("nobody")
        self.tracker.update_current_leads("u2", 2)
        assert not self.tracker.validate("u2")

    def test_set_availability(self):
        self.tracker.set_availability("u3", True)
        assert self.tracker.validate("u3")
        with pytest.raises(NotFoundError):
            self.tracker.set_availability("nobody", True)

    def test_negative_counts_rejected(self):
        with pytest.raises(ValidationError):
            self.tracker.update_current_leads("u1", -1)
        with pytest.raises(ValidationError):
            self.tracker.set_capacity("u4", -5)
        assert self.tracker.get("u1").current_leads == 0

    def test_reserve_stops_at_capacity(self):
        assert self.tracker.reserve("u2")
        assert self.tracker.reserve("u2")
        assert not self.tracker.reserve("u2")
        assert self.tracker.get("u2").current_leads == 2
        assert not self.tracker.reserve("u3")

    def test_concurrent_reserve_never_overfills(self):
        """Parallel reservations cannot push a member past max_leads."""
        self.tracker.set_capacity("busy", 25)
        results = []

        def worker():
            for _ in range(10):
                results.append(self.tracker.reserve("busy"))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count(True) == 25
        assert self.tracker.get("busy").current_leads == 25

    def test_reset_and_remove(self):
        self.tracker.update_current_leads("u1", 7)
        self.tracker.reset_current_leads()
        assert all(m.current_leads == 0 for m in self.tracker.list_all())

        self.tracker.remove("u3")
        assert self.tracker.get("u3") is None
        with pytest.raises(NotFoundError):
            self.tracker.remove("u3")

    def test_persistence(self, temp_data_dir):
        path = temp_data_dir / "capacity.json"
        tracker = CapacityTracker(data_path=path)
        tracker.set_capacity("u1", 10, ["smb"], True, territory="west")
        tracker.reserve("u1")

        reloaded = CapacityTracker(data_path=path)
        member = reloaded.get("u1")
        assert member.current_leads == 1
        assert member.specialties == ["smb"]
        assert member.territory == "west"

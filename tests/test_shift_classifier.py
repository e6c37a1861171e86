import pytest

from conftest import at
from damage_capture.core.shift_classifier import Shift, ShiftClassifier


class TestClassify:
    @pytest.mark.parametrize("hour, minute, expected", [
        (4, 0, Shift.EARLY),
        (9, 30, Shift.EARLY),
        (12, 59, Shift.EARLY),
        (13, 0, Shift.LATE),
        (23, 59, Shift.LATE),
        (0, 0, Shift.LATE),
        (3, 59, Shift.LATE),
    ])
    def test_boundaries(self, classifier, hour, minute, expected):
        assert classifier.classify(at(hour, minute)) is expected

    def test_night_policy_is_configurable(self):
        classifier = ShiftClassifier(night_shift="early")
        assert classifier.classify(at(2)) is Shift.EARLY
        assert classifier.classify(at(14)) is Shift.LATE

    def test_custom_boundaries(self):
        classifier = ShiftClassifier(early_start_hour=6, late_start_hour=14)
        assert classifier.classify(at(5, 59)) is Shift.LATE
        assert classifier.classify(at(13, 59)) is Shift.EARLY

    def test_invalid_boundaries(self):
        with pytest.raises(ValueError):
            ShiftClassifier(early_start_hour=13, late_start_hour=4)


class TestCanFinalize:
    @pytest.mark.parametrize("shift, hour, minute, allowed", [
        (Shift.EARLY, 11, 59, False),
        (Shift.EARLY, 12, 0, True),
        (Shift.EARLY, 23, 0, True),
        (Shift.EARLY, 2, 0, True),
        (Shift.EARLY, 4, 0, False),
        (Shift.LATE, 20, 59, False),
        (Shift.LATE, 21, 0, True),
        (Shift.LATE, 3, 59, True),
        (Shift.LATE, 13, 0, False),
    ])
    def test_windows(self, classifier, shift, hour, minute, allowed):
        assert classifier.can_finalize_now(shift, at(hour, minute)).allowed is allowed

    def test_reason_names_earliest_hour(self, classifier):
        window = classifier.can_finalize_now(Shift.EARLY, at(10))
        assert "12:00" in window.reason
        assert "BRC-ERC" in window.reason
        window = classifier.can_finalize_now(Shift.LATE, at(15))
        assert "21:00" in window.reason

    def test_allowed_has_no_reason(self, classifier):
        assert classifier.can_finalize_now(Shift.LATE, at(22)).reason is None

    def test_accepts_labels(self, classifier):
        assert classifier.can_finalize_now("IRC-KRC", at(22)).allowed is True
        assert classifier.can_finalize_now("early", at(12)).allowed is True


def test_shift_parse_rejects_unknown():
    with pytest.raises(ValueError):
        Shift.parse("NIGHT")

import pytest

from damage_capture.core.barcode_processor import BarcodeProcessor, normalize, normalize_manual
from damage_capture.utils.exceptions import InvalidCode, RejectReason


class TestNormalize:
    def test_keeps_trailing_six_digits(self):
        assert normalize("AB123456789012") == "789012"

    def test_strips_separators(self):
        assert normalize("12-34 56") == "123456"

    def test_exactly_six_digits(self):
        assert normalize("000123") == "000123"

    @pytest.mark.parametrize("raw", ["", "ABC", "12345", "1a2b3c4d5", None])
    def test_too_short_is_rejected(self, raw):
        with pytest.raises(InvalidCode) as exc:
            normalize(raw)
        assert exc.value.reason is RejectReason.TOO_SHORT


class TestNormalizeManual:
    def test_accepts_six_digits(self):
        assert normalize_manual(" 654321 ") == "654321"

    def test_longer_entry_is_rejected_not_truncated(self):
        with pytest.raises(InvalidCode) as exc:
            normalize_manual("1234567")
        assert exc.value.reason is RejectReason.WRONG_LENGTH

    def test_short_entry(self):
        with pytest.raises(InvalidCode) as exc:
            normalize_manual("12345")
        assert exc.value.reason is RejectReason.WRONG_LENGTH

    @pytest.mark.parametrize("typed", ["12a456", "12-456", "１２３４５６"])
    def test_non_digits(self, typed):
        with pytest.raises(InvalidCode) as exc:
            normalize_manual(typed)
        assert exc.value.reason is RejectReason.NOT_NUMERIC

    def test_empty(self):
        with pytest.raises(InvalidCode) as exc:
            normalize_manual("   ")
        assert exc.value.reason is RejectReason.EMPTY


class TestBarcodeProcessor:
    def test_repeated_read_within_delay_is_ignored(self):
        processor = BarcodeProcessor(scan_delay=1.0)
        assert processor.process_barcode("TAG111111", current_time=10.0) == "111111"
        assert processor.process_barcode("XX111111", current_time=10.5) is None
        assert processor.process_barcode("TAG111111", current_time=11.0) == "111111"

    def test_different_codes_are_never_held_back(self):
        processor = BarcodeProcessor(scan_delay=1.0)
        assert processor.process_barcode("TAG111111", current_time=10.0) == "111111"
        assert processor.process_barcode("TAG222222", current_time=10.1) == "222222"
        assert processor.process_barcode("TAG111111", current_time=10.2) is None

    def test_first_read_with_default_clock(self):
        processor = BarcodeProcessor()
        assert processor.process_barcode("TAG111111") == "111111"
        assert processor.process_barcode("TAG222222") == "222222"

    def test_rejected_read_does_not_arm_delay(self):
        processor = BarcodeProcessor(scan_delay=1.0)
        with pytest.raises(InvalidCode):
            processor.process_barcode("123", current_time=10.0)
        assert processor.process_barcode("333333", current_time=10.1) == "333333"

    def test_reset(self):
        processor = BarcodeProcessor(scan_delay=1.0)
        processor.process_barcode("111111", current_time=10.0)
        processor.reset()
        assert processor.process_barcode("111111", current_time=10.1) == "111111"

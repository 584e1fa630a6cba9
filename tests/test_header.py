"""Tests for EDF/BDF header encoding and decoding."""

import io
from datetime import datetime

import pytest

from edf_module.core.config import RecordingConfig, SignalConfig
from edf_module.core.errors import HeaderParsingError
from edf_module.core.header import (
    FileType,
    decode_header,
    detect_file_type,
    encode_header,
    header_size,
    header_to_string,
    read_header,
)

# Offsets inside the fixed part of the header
RESERVED_OFFSET = 192
NUM_RECORDS_OFFSET = 236
DURATION_OFFSET = 244
NUM_SIGNALS_OFFSET = 252


def make_config(start_time_ms=None):
    if start_time_ms is None:
        start_time_ms = int(datetime(2024, 3, 15, 13, 45, 30).timestamp() * 1000)
    return RecordingConfig(
        patient_id="MCH-0234567 F 02-MAY-1951 Haagse_Harry",
        recording_id="Startdate 02-MAR-2002 PSG-1234/2002 NN Telemetry03",
        start_time_ms=start_time_ms,
        record_duration=1.0,
        num_records=42,
        signals=[
            SignalConfig(
                label="EEG Fpz-Cz",
                transducer="AgAgCl cup electrodes",
                physical_dimension="uV",
                physical_min=-440.0,
                physical_max=510.0,
                digital_min=-2048,
                digital_max=2047,
                prefiltering="HP:0.1Hz LP:75Hz",
                samples_per_record=100,
            ),
            SignalConfig(
                label="Temp rectal",
                transducer="Rectal thermistor",
                physical_dimension="degC",
                physical_min=34.4,
                physical_max=40.2,
                digital_min=-2048,
                digital_max=2047,
                samples_per_record=1,
            ),
        ],
    )


class TestEncodeHeader:
    """Test header record encoding."""

    def test_size(self):
        """Test header is 256 bytes per signal plus the fixed block."""
        assert header_size(0) == 256
        assert header_size(2) == 768
        assert len(encode_header(make_config(), FileType.EDF_16BIT)) == 768

    def test_edf_version(self):
        """Test EDF header starts with '0' and a blank version text."""
        header = encode_header(make_config(), FileType.EDF_16BIT)
        assert header[:8] == b"0       "
        assert header[RESERVED_OFFSET : RESERVED_OFFSET + 44] == b" " * 44

    def test_bdf_version(self):
        """Test BDF header starts with 0xFF, BIOSEMI and 24BIT."""
        header = encode_header(make_config(), FileType.BDF_24BIT)
        assert header[0] == 0xFF
        assert header[1:8] == b"BIOSEMI"
        assert header[RESERVED_OFFSET : RESERVED_OFFSET + 5] == b"24BIT"

    def test_fixed_fields(self):
        """Test counts and duration formatting."""
        header = encode_header(make_config(), FileType.EDF_16BIT)
        assert header[NUM_RECORDS_OFFSET : NUM_RECORDS_OFFSET + 8] == b"42      "
        assert header[DURATION_OFFSET : DURATION_OFFSET + 8] == b"1.000000"
        assert header[NUM_SIGNALS_OFFSET:256] == b"2   "

    def test_start_date_time(self):
        """Test start is written as dd.mm.yy and hh.mm.ss."""
        header = encode_header(make_config(), FileType.EDF_16BIT)
        assert header[168:176] == b"15.03.24"
        assert header[176:184] == b"13.45.30"

    def test_signal_fields_grouped(self):
        """Test per-signal fields are grouped by field kind."""
        header = encode_header(make_config(), FileType.EDF_16BIT)
        labels = header[256 : 256 + 32]
        assert labels == b"EEG Fpz-Cz      Temp rectal     "

    def test_long_text_truncated(self):
        """Test text longer than the field width is cut."""
        config = make_config()
        config.signals[0].label = "A" * 30
        header = encode_header(config, FileType.EDF_16BIT)
        assert header[256:272] == b"A" * 16
        assert len(header) == 768

    def test_non_ascii_replaced(self):
        """Test non-ASCII text does not change the header size."""
        config = make_config()
        config.patient_id = "José"
        header = encode_header(config, FileType.EDF_16BIT)
        assert len(header) == 768
        assert header[8:13] == b"Jos? "


class TestDecodeHeader:
    """Test header record decoding."""

    @pytest.mark.parametrize("file_type", [FileType.EDF_16BIT, FileType.BDF_24BIT])
    def test_roundtrip(self, file_type):
        """Test decoded header matches the encoded configuration."""
        config = make_config()
        decoded = decode_header(encode_header(config, file_type))
        assert decoded.patient_id == config.patient_id
        assert decoded.recording_id == config.recording_id
        assert decoded.start_time_ms == config.start_time_ms
        assert decoded.num_records == 42
        assert decoded.record_duration == pytest.approx(1.0)
        assert decoded.num_signals == 2
        for got, expected in zip(decoded.signals, config.signals):
            assert got.label == expected.label
            assert got.transducer == expected.transducer
            assert got.physical_dimension == expected.physical_dimension
            assert got.physical_min == pytest.approx(expected.physical_min)
            assert got.physical_max == pytest.approx(expected.physical_max)
            assert got.digital_min == expected.digital_min
            assert got.digital_max == expected.digital_max
            assert got.prefiltering == expected.prefiltering
            assert got.samples_per_record == expected.samples_per_record

    def test_unknown_record_count(self):
        """Test -1 record count survives encoding."""
        config = make_config()
        config.num_records = -1
        decoded = decode_header(encode_header(config, FileType.EDF_16BIT))
        assert decoded.num_records == -1

    def test_long_number_truncated(self):
        """Test numbers wider than 8 characters are cut, not rejected."""
        config = make_config()
        config.signals[0].physical_min = -3200.123456
        decoded = decode_header(encode_header(config, FileType.EDF_16BIT))
        assert decoded.signals[0].physical_min == pytest.approx(-3200.12)

    def test_detect_file_type(self):
        """Test format detection from the first byte."""
        assert detect_file_type(b"0       ") is FileType.EDF_16BIT
        assert detect_file_type(b"\xffBIOSEMI") is FileType.BDF_24BIT

    def test_bad_first_byte(self):
        """Test any other first byte is rejected."""
        header = b"1" + encode_header(make_config(), FileType.EDF_16BIT)[1:]
        with pytest.raises(HeaderParsingError):
            decode_header(header)

    def test_bad_number(self):
        """Test unparsable numeric field reports its name."""
        header = bytearray(encode_header(make_config(), FileType.EDF_16BIT))
        header[NUM_RECORDS_OFFSET : NUM_RECORDS_OFFSET + 8] = b"abc     "
        with pytest.raises(HeaderParsingError) as exc_info:
            decode_header(bytes(header))
        assert exc_info.value.field == "num_records"

    def test_bad_start_date(self):
        """Test unparsable start date is rejected."""
        header = bytearray(encode_header(make_config(), FileType.EDF_16BIT))
        header[168:176] = b"xx.yy.zz"
        with pytest.raises(HeaderParsingError):
            decode_header(bytes(header))

    def test_header_size_mismatch(self):
        """Test header byte count must match the signal count."""
        header = bytearray(encode_header(make_config(), FileType.EDF_16BIT))
        header[184:192] = b"512     "
        with pytest.raises(HeaderParsingError):
            decode_header(bytes(header))

    def test_truncated(self):
        """Test a header shorter than its signal blocks is rejected."""
        header = encode_header(make_config(), FileType.EDF_16BIT)
        with pytest.raises(HeaderParsingError):
            decode_header(header[:600])

    def test_invalid_signal_values(self):
        """Test configuration errors surface as parsing errors."""
        config = make_config()
        header = bytearray(encode_header(config, FileType.EDF_16BIT))
        # digital_max of signal 0 set equal to its digital_min
        start = 256 + 2 * (16 + 80 + 8 + 8 + 8 + 8)
        header[start : start + 8] = b"-2048   "
        with pytest.raises(HeaderParsingError):
            decode_header(bytes(header))


class TestReadHeader:
    """Test reading headers from files."""

    def test_read_from_stream(self):
        """Test header and format are read from a binary stream."""
        data = encode_header(make_config(), FileType.BDF_24BIT) + b"\x00" * 309
        stream = io.BytesIO(data)
        config, file_type = read_header(stream)
        assert file_type is FileType.BDF_24BIT
        assert config.num_signals == 2
        assert stream.tell() == 768

    def test_short_file(self):
        """Test a file shorter than the fixed block is rejected."""
        with pytest.raises(HeaderParsingError):
            read_header(io.BytesIO(b"0   "))

    def test_empty_file(self):
        """Test an empty file is rejected."""
        with pytest.raises(HeaderParsingError):
            read_header(io.BytesIO(b""))

    def test_header_to_string(self):
        """Test description lists signals and format."""
        text = header_to_string(make_config(), FileType.EDF_16BIT)
        assert "EDF_16BIT" in text
        assert "EEG Fpz-Cz" in text
        assert "Number of signals = 2" in text

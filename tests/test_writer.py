import json
import pytest
from unittest.mock import patch, MagicMock

import ndef

from tests.conftest import CARD_URL, SAMPLE_PROFILE


SAMPLE_CONFIG = {
    "card_host": "tap-card-site.vercel.app",
    "nfc_mode": "mock",
    "mock_capacity": 504,
}

OK_RESULT = {"success": True, "tag_id": "04A1", "capacity": 504, "tag_name": "NTAG215",
             "payload_type": "dual", "bytes_written": 197, "error": None}


@pytest.fixture
def config_file(tmp_path):
    p = tmp_path / "config.json"
    p.write_text(json.dumps(SAMPLE_CONFIG))
    return str(p)


@pytest.fixture
def profile_file(tmp_path):
    p = tmp_path / "profile.json"
    p.write_text(json.dumps(SAMPLE_PROFILE))
    return str(p)


class TestSimulateMode:
    def test_ntag213_is_url_only(self, config_file, profile_file):
        from writer import simulate
        summary = simulate(144, config_path=config_file, profile_path=profile_file)
        assert summary["type"] == "url"
        assert summary["url"] == CARD_URL

    def test_ntag215_is_dual(self, config_file, profile_file):
        from writer import simulate
        assert simulate(504, config_path=config_file, profile_path=profile_file)["type"] == "dual"

    def test_prints_summary(self, config_file, profile_file, capsys):
        from writer import simulate
        simulate(504, config_path=config_file, profile_path=profile_file)
        assert json.loads(capsys.readouterr().out)["tag_name"] == "NTAG215"

    def test_missing_name_raises(self, config_file, tmp_path):
        from payload import InvalidContact
        from writer import simulate
        p = tmp_path / "empty.json"
        p.write_text(json.dumps({"id": "abc", "name": ""}))
        with pytest.raises(InvalidContact):
            simulate(504, config_path=config_file, profile_path=str(p))

    def test_invalid_capacity_raises(self, config_file, profile_file):
        from payload import InvalidCapacity
        from writer import simulate
        with pytest.raises(InvalidCapacity):
            simulate(0, config_path=config_file, profile_path=profile_file)


    def test_missing_config_uses_defaults(self, tmp_path, profile_file):
        from writer import simulate
        summary = simulate(504, config_path=str(tmp_path / "absent.json"), profile_path=profile_file)
        assert summary["url"] == CARD_URL

    def test_matches_web_preview(self, config_file, profile_file, client, temp_config, temp_profile):
        from writer import simulate
        cli = simulate(144, config_path=config_file, profile_path=profile_file)
        web = client.get("/payload?capacity=144").get_json()
        assert cli == web


class TestSizes:
    def test_one_line_per_model(self, config_file, profile_file, capsys):
        from writer import print_sizes
        summaries = print_sizes(config_path=config_file, profile_path=profile_file)
        assert [s["type"] for s in summaries] == ["url", "dual", "dual"]
        out = capsys.readouterr().out
        assert "NTAG213 (144 bytes): url" in out
        assert "NTAG216 (888 bytes): dual" in out


class TestLoopMode:
    def test_writes_on_each_tag(self, config_file, profile_file):
        from writer import run
        mock_nfc = MagicMock()
        mock_nfc.write_card.side_effect = [OK_RESULT, KeyboardInterrupt]
        with patch("writer.MockNFC", return_value=mock_nfc):
            run(config_path=config_file, profile_path=profile_file)
        assert mock_nfc.write_card.call_count == 2

    def test_choose_uses_profile(self, config_file, profile_file):
        from writer import run
        mock_nfc = MagicMock()
        mock_nfc.write_card.side_effect = [OK_RESULT, KeyboardInterrupt]
        with patch("writer.MockNFC", return_value=mock_nfc):
            run(config_path=config_file, profile_path=profile_file)
        choose = mock_nfc.write_card.call_args_list[0][0][0]
        assert choose(504).url == CARD_URL.encode("utf-8")

    def test_continues_after_failed_write(self, config_file, profile_file):
        from writer import run
        mock_nfc = MagicMock()
        mock_nfc.write_card.side_effect = [
            {**OK_RESULT, "success": False, "error": "This tag is too small for your card"},
            OK_RESULT,
            KeyboardInterrupt,
        ]
        with patch("writer.MockNFC", return_value=mock_nfc):
            run(config_path=config_file, profile_path=profile_file)
        assert mock_nfc.write_card.call_count == 3

    def test_continues_after_reader_error(self, config_file, profile_file):
        from writer import run
        mock_nfc = MagicMock()
        mock_nfc.write_card.side_effect = [OSError("tag lost"), OK_RESULT, KeyboardInterrupt]
        with patch("writer.MockNFC", return_value=mock_nfc):
            run(config_path=config_file, profile_path=profile_file)
        assert mock_nfc.write_card.call_count == 3

    def test_uses_nfcpy_when_configured(self, tmp_path, profile_file):
        from writer import run
        config_file = tmp_path / "nfcpy.json"
        config_file.write_text(json.dumps({**SAMPLE_CONFIG, "nfc_mode": "nfcpy"}))
        mock_nfc = MagicMock()
        mock_nfc.write_card.side_effect = KeyboardInterrupt
        with patch("writer.NfcpyNFC", return_value=mock_nfc) as mock_cls:
            run(config_path=str(config_file), profile_path=profile_file)
        mock_cls.assert_called_once_with("usb")


class TestReadMode:
    def test_read_returns_card(self, config_file):
        from writer import read_tag_once
        mock_nfc = MagicMock()
        mock_nfc.read_tag.return_value = [ndef.UriRecord(CARD_URL)]
        with patch("writer.MockNFC", return_value=mock_nfc):
            card = read_tag_once(config_path=config_file)
        assert card["card_url"] == CARD_URL

    def test_read_prints_url(self, config_file, capsys):
        from writer import read_tag_once
        mock_nfc = MagicMock()
        mock_nfc.read_tag.return_value = [ndef.UriRecord(CARD_URL)]
        with patch("writer.MockNFC", return_value=mock_nfc):
            read_tag_once(config_path=config_file)
        assert CARD_URL in capsys.readouterr().out

    def test_read_does_not_write(self, config_file):
        from writer import read_tag_once
        mock_nfc = MagicMock()
        mock_nfc.read_tag.return_value = [ndef.UriRecord(CARD_URL)]
        with patch("writer.MockNFC", return_value=mock_nfc):
            read_tag_once(config_path=config_file)
        mock_nfc.write_card.assert_not_called()

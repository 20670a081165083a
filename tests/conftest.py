import json
import pytest
from unittest.mock import MagicMock


PROFILE_ID = "3f2b8c1e-7a4d-4e9b-9c1a-5d6e7f8a9b0c"
CARD_URL = f"https://tap-card-site.vercel.app/share/{PROFILE_ID}"

JANE = {"name": "Jane Doe", "phone": "+15551234567", "email": "jane@x.com"}

FULL_CONTACT = {
    "name": "Ada Lovelace",
    "title": "Analyst",
    "company": "Analytical Engines",
    "phone": "+442071234567",
    "email": "ada@engines.example",
    "website": "https://ada.example",
    "social": {"github": "ada", "twitter": "@ada", "mastodon": "ada"},
}

SAMPLE_PROFILE = {
    "id": PROFILE_ID,
    "type": "professional",
    **JANE,
    "social": {},
}


# --- Flask test client ---

@pytest.fixture
def client():
    from app import app
    app.config["TESTING"] = True
    with app.test_client() as client:
        yield client


# --- Temp config, profile and history files ---

@pytest.fixture
def temp_config(tmp_path, monkeypatch):
    config_file = tmp_path / "config.json"
    config_file.write_text(json.dumps({
        "card_host": "tap-card-site.vercel.app",
        "nfc_mode": "mock",
        "mock_capacity": 504,
    }))
    import app
    monkeypatch.setattr(app, "CONFIG_PATH", str(config_file))
    return config_file


@pytest.fixture
def temp_profile(tmp_path, monkeypatch):
    profile_file = tmp_path / "profile.json"
    profile_file.write_text(json.dumps(SAMPLE_PROFILE))
    import app
    monkeypatch.setattr(app, "PROFILE_PATH", str(profile_file))
    app.PAYLOAD_CACHE.invalidate()
    return profile_file


@pytest.fixture
def temp_history(tmp_path, monkeypatch):
    history_file = tmp_path / "history.json"
    import app
    monkeypatch.setattr(app, "HISTORY_PATH", str(history_file))
    return history_file


# --- Mock nfcpy frontend ---

@pytest.fixture
def mock_frontend(mocker):
    clf = MagicMock()
    mocker.patch("nfc_interface._open_frontend", return_value=clf)
    return clf

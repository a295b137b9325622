"""
Pytest configuration and shared fixtures for SignalBoard tests.
"""

import json
import sys
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from core.models import StockRecord
from core.store import MemoryStore


def write_json(path, payload):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def make_record(ticker, signal="Buy", price="10.00", date="2024-01-02", source=None):
    return StockRecord(ticker_name=ticker, signal_type=signal, stock_price=price, date=date, source_file=source)


def signal_payload(ticker, signal="Buy", price="10.00", date="2024-01-02"):
    return {"tickerName": ticker, "signalType": signal, "stockPrice": price, "date": date}


@pytest.fixture
def data_dir(tmp_path):
    """
    Data folder with a master directory, a nested year/quarter layout,
    an empty branch and a non-data file.
    """
    root = tmp_path / "data"
    write_json(
        root / "master" / "all_signals.json",
        [
            signal_payload("AAPL", "Buy", "190.50", "2024-01-02"),
            signal_payload("MSFT", "Sell", "370.10", "2024-01-03"),
        ],
    )
    write_json(root / "master" / "extra.json", signal_payload("NVDA", "Strong Buy", "495.00", "2024-01-04"))
    write_json(
        root / "2024" / "q1" / "january.json",
        [
            signal_payload("TSLA", "Sell", "248.42", "2024-01-05"),
            signal_payload("AMZN", "Buy", "151.94", "2024-01-05"),
            signal_payload("GOOG", "Buy", "140.93", "2024-01-08"),
        ],
    )
    write_json(root / "2024" / "q1" / "february.json", [signal_payload("META", "Buy", "474.99", "2024-02-01")])
    (root / "2024" / "q2").mkdir(parents=True)
    (root / "2024" / "q2" / "readme.txt").write_text("not data", encoding="utf-8")
    (root / "empty").mkdir()
    write_json(root / "sector" / "tech.json", [signal_payload("ORCL", "Buy", "105.20", "2024-01-09")])
    return root


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def app(tmp_path, data_dir, store):
    from ui.app import create_app

    flask_app = create_app(
        store=store,
        data_dir=data_dir,
        preferences_path=tmp_path / "preferences.json",
        logs_dir=tmp_path / "logs",
    )
    flask_app.config["TESTING"] = True
    return flask_app


@pytest.fixture
def client(app):
    return app.test_client()

"""Test that the project setup is working correctly."""

import solana_buy_tracker


def test_version() -> None:
    """Test that version is defined."""
    assert solana_buy_tracker.__version__ == "0.1.0"


def test_import_modules() -> None:
    """Test that all submodules can be imported."""
    from solana_buy_tracker import alerter, classifier, enrich, ledger, tracker

    # Just verify imports work
    assert ledger is not None
    assert tracker is not None
    assert enrich is not None
    assert classifier is not None
    assert alerter is not None

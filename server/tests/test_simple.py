"""Simple test to verify pytest setup."""


def test_import_app():
    """Test that we can import the app module."""
    from evrental.main import create_app
    app = create_app()
    assert app is not None
    assert app.title == "EV Rental API"

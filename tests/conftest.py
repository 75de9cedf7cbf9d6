import os

# Keep the module-level engine off the working directory
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from mailscan.database import get_db, init_db
from mailscan.services.analysis_service import AnalysisService


GMAIL_OPEN_EMAIL = """
<html><body>
<div role="main">
  <h2 class="hP">Your account has been limited</h2>
  <span class="gD" email="service@PayPal.com" name="PayPal">PayPal</span>
  <table>
    <tr>
      <td><span class="gI">reply-to:</span></td>
      <td><span class="gI"><span email="help@evil.com">help@evil.com</span></span></td>
    </tr>
  </table>
  <div class="a3s">
    <p>Please confirm your details.</p>
    <a href="http://paypal-login-verify.fake.com/x">Verify now</a>
    <a href="mailto:help@paypal.com">Mail us</a>
    <a href="https://www.paypal.com/help">Help</a>
    <a href="https://www.paypal.com/help">Help</a>
    <a href="not a url">junk</a>
  </div>
  <a href="https://mail.google.com/mail/u/0/#inbox">Inbox</a>
</div>
</body></html>
"""

GMAIL_INBOX = """
<html><body>
<div role="main">
  <table class="inbox"><tr><td>Some thread</td></tr></table>
</div>
</body></html>
"""


@pytest.fixture
def open_email_html():
    return GMAIL_OPEN_EMAIL


@pytest.fixture
def inbox_html():
    return GMAIL_INBOX


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def service(session_factory):
    return AnalysisService(session_factory=session_factory)


@pytest.fixture
def client(session_factory, service):
    from mailscan.api.routes import get_analysis_service
    from mailscan.main import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_analysis_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()

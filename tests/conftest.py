import pytest

from giftdraw import create_app
from giftdraw.extensions import db
from giftdraw.services.groups import create_group, join_group


@pytest.fixture
def app():
    app = create_app({
        "TESTING": True,
        "SECRET_KEY": "test-secret",
        "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
        "ASSIGNMENT_ENC_KEY": "",
        "RESULT_BASE_URL": "https://santa.example.com",
    })
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_group(app):
    """make_group(["Ann", "Bob", ...]) -> (group, admin_secret, {name: (participant, access_key)})"""

    def _make(names, **group_kwargs):
        group_kwargs.setdefault("budget_limit", 20)
        group, admin_secret = create_group("Office party", **group_kwargs)
        members = {}
        for name in names:
            members[name] = join_group(group.join_code, name, f"{name.lower()}@example.com", wishlist=f"{name}'s list")
        return group, admin_secret, members

    return _make

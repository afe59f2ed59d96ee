# ===============================================================================
# PYTEST CONFIGURATION FOR THE STOREFRONT PLATFORM
# ===============================================================================
"""
Global test configuration.

Test Structure:
- tests/ mirrors apps/ structure for app-specific tests
- tests/factories/ holds plain builder functions shared by TestCase classes
- Naming convention: test_{app}_{feature}.py

Run specific app tests: pytest tests/orders/
"""

import os

import django


def pytest_configure():
    """Configure Django settings for pytest"""
    os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings.test')
    django.setup()

# ===============================================================================
# PYTEST FIXTURES
# ===============================================================================

import pytest  # noqa: E402
from rest_framework.test import APIClient  # noqa: E402

from apps.notifications.connections import InMemoryConnectionDirectory  # noqa: E402


@pytest.fixture
def user(db):
    """Customer with enough bonuses for the bonus limit to matter"""
    from tests.factories.checkout import create_user  # noqa: PLC0415

    return create_user(bonus_balance=500)


@pytest.fixture
def admin_user(db):
    from tests.factories.checkout import create_admin  # noqa: PLC0415

    return create_admin()


@pytest.fixture
def product(db):
    from tests.factories.checkout import create_product  # noqa: PLC0415

    return create_product()


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def connection_directory():
    """Isolated directory so tests never share live sessions"""
    return InMemoryConnectionDirectory()

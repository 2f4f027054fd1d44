import datetime

import pytest
from django.contrib.auth import get_user_model

from .factories import make_chart


@pytest.fixture
def user(db):
    return get_user_model().objects.create_user(
        username="bookkeeper", password="testpass123")


@pytest.fixture
def chart(db):
    return make_chart()


@pytest.fixture
def today():
    return datetime.date(2024, 2, 1)

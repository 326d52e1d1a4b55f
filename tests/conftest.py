"""Pytest configuration for django-facility-dm tests."""

import pytest


def _make_user(username, full_name, user_type):
    from django.contrib.auth import get_user_model

    from django_facility_dm.models import MessagingProfile

    user = get_user_model().objects.create_user(
        username=username,
        email=f"{username}@example.com",
        password="testpass123",
    )
    MessagingProfile.objects.create(user=user, full_name=full_name, user_type=user_type)
    return user


@pytest.fixture
def consumer(db):
    """Create a consumer account with a profile."""
    return _make_user("hanako", "Yamada Hanako", "consumer")


@pytest.fixture
def consumer2(db):
    """Create a second consumer account."""
    return _make_user("taro", "Suzuki Taro", "consumer")


@pytest.fixture
def operator(db):
    """Create a facility operator account."""
    return _make_user("himawari-staff", "Sato Kenji", "facility")


@pytest.fixture
def operator2(db):
    """Create an operator for a second facility."""
    return _make_user("sakura-staff", "Tanaka Yui", "facility")


@pytest.fixture
def facility(operator):
    """Create a facility run by `operator`."""
    from django_facility_dm.models import Facility

    return Facility.objects.create(
        name="Himawari Support Center",
        district="Setagaya",
        address="1-2-3 Sangenjaya, Setagaya-ku, Tokyo",
        operator=operator,
    )


@pytest.fixture
def facility2(operator2):
    """Create a second facility."""
    from django_facility_dm.models import Facility

    return Facility.objects.create(
        name="Sakura Work Place",
        district="Nerima",
        operator=operator2,
    )


@pytest.fixture
def consumer_identity(consumer):
    from django_facility_dm.identity import Identity

    return Identity.for_user(consumer)


@pytest.fixture
def operator_identity(operator):
    from django_facility_dm.identity import Identity

    return Identity.for_user(operator)


@pytest.fixture
def conversation(consumer, facility):
    """Create the conversation between `consumer` and `facility`."""
    from django_facility_dm.models import Conversation

    return Conversation.objects.create(consumer=consumer, facility=facility)


@pytest.fixture(autouse=True)
def clean_notifier():
    """Release subscriptions left open by a test."""
    yield
    from django_facility_dm.realtime import notifier

    notifier.close_all()

from events.tests.conftest import confirmed_registration, credential, pending_registration  # noqa: F401

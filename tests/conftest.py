import pytest

from tests.fakes import make_row


@pytest.fixture
def row_factory():
    return make_row

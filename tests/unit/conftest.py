import pytest

from fakes import COMMITMENTS, FakeChain, make_contract


@pytest.fixture
def chain():
    return FakeChain(COMMITMENTS)


@pytest.fixture
def contract(chain):
    return make_contract(chain)

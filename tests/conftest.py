import pytest

from dirconlab import KinematicDataSet

from .point_mass import make_ground_contact, make_point_mass


@pytest.fixture
def point_mass():
    return make_point_mass()


@pytest.fixture
def stance_manifold(point_mass):
    return KinematicDataSet(point_mass, [make_ground_contact(point_mass, mu=1.0)])


@pytest.fixture
def flight_manifold(point_mass):
    return KinematicDataSet(point_mass)

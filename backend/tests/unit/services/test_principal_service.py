"""Unit tests for resolving users into principals."""

import pytest

from fitcenter.core.exceptions import NotFoundError, UnauthorizedError
from fitcenter.domain.entities import Role, User
from fitcenter.services.principal_service import PrincipalService
from tests.factories.repository_factories import DirectoryRepositoryFactory


@pytest.fixture
def user_repo():
    return DirectoryRepositoryFactory.create_user_reader()


@pytest.fixture
def member_repo():
    return DirectoryRepositoryFactory.create_member_reader()


@pytest.fixture
def service(user_repo, member_repo):
    return PrincipalService(user_repo, member_repo)


@pytest.mark.unit
@pytest.mark.security
class TestResolvePrincipal:
    def test_member_gets_profile_and_home_location(
        self, service, user_repo, member_repo, sample_member
    ):
        user_repo.get_by_id.return_value = User(id=3, email="anna@fit.test", role=Role.MEMBER)
        member_repo.get_by_user_id.return_value = sample_member

        principal = service.resolve(3)

        assert principal.role is Role.MEMBER
        assert principal.member_id == 100
        assert principal.location_id == 10

    def test_member_without_profile(self, service, user_repo):
        user_repo.get_by_id.return_value = User(id=4, email="new@fit.test", role=Role.MEMBER)

        principal = service.resolve(4)

        assert principal.member_id is None
        assert principal.location_id is None

    def test_employee_gets_assigned_location(self, service, user_repo, member_repo):
        user_repo.get_by_id.return_value = User(
            id=2, email="staff@fit.test", role=Role.EMPLOYEE, location_id=10
        )

        principal = service.resolve(2)

        assert principal.is_employee
        assert principal.location_id == 10
        member_repo.get_by_user_id.assert_not_called()

    def test_unknown_user(self, service):
        with pytest.raises(NotFoundError):
            service.resolve(99)

    def test_inactive_user(self, service, user_repo):
        user_repo.get_by_id.return_value = User(
            id=5, email="gone@fit.test", role=Role.ADMIN, is_active=False
        )
        with pytest.raises(UnauthorizedError, match="inactive"):
            service.resolve(5)

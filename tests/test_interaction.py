"""
Tests for the Interaction Driver.
"""

import pytest

from patent_engine.core.errors import LocatorNotFound
from patent_engine.core.interaction import InteractionDriver
from patent_engine.core.models import AuthResult, Credentials, LocatorSet, SourceDescriptor, SubmissionResult

from fakes import LOGIN_URL, SEARCH_URL, FakeController, FakeSite, results_page

LOGIN_LOCATORS = LocatorSet(
    login_field='input[name="T_Login"]',
    password_field='input[name="T_Senha"]',
    submit_selector='input[name="Submit"]',
)
SEARCH_LOCATORS = LocatorSet(query_field="#q", submit_selector='input[value="Search"]')


@pytest.fixture
def descriptor():
    return SourceDescriptor(
        name="INPI",
        search_url=SEARCH_URL,
        requires_auth=True,
        login_url=LOGIN_URL,
        step_timeout=1.0,
    )


async def open_at(site, descriptor, url):
    controller = FakeController(site)
    handle = await controller.open(descriptor)
    await controller.navigate(handle, url)
    return controller, handle


class TestAuthenticate:
    """Tests for InteractionDriver.authenticate."""

    @pytest.mark.asyncio
    async def test_success(self, descriptor):
        """Test a login the site accepts."""
        site = FakeSite([], credentials=("alice", "s3cret"))
        controller, handle = await open_at(site, descriptor, LOGIN_URL)

        outcome = await InteractionDriver(controller).authenticate(
            handle, LOGIN_LOCATORS, Credentials("alice", "s3cret")
        )

        assert outcome == AuthResult.SUCCESS
        assert site.filled == {"T_Login": "alice", "T_Senha": "s3cret"}
        assert site.state == "home"

    @pytest.mark.asyncio
    async def test_rejected_credentials(self, descriptor):
        """Test a login the site rejects."""
        site = FakeSite([], credentials=("alice", "s3cret"))
        controller, handle = await open_at(site, descriptor, LOGIN_URL)

        outcome = await InteractionDriver(controller).authenticate(
            handle, LOGIN_LOCATORS, Credentials("alice", "wrong")
        )

        assert outcome == AuthResult.FAILED_CREDENTIALS
        assert site.login_attempts == 1

    @pytest.mark.asyncio
    async def test_source_specific_failure_marker(self, descriptor):
        """Test extra failure phrases supplied by the source."""
        site = FakeSite([], credentials=("alice", "s3cret"))
        controller, handle = await open_at(site, descriptor, LOGIN_URL)
        driver = InteractionDriver(controller, failure_markers=("Bem-vindo",))

        outcome = await driver.authenticate(handle, LOGIN_LOCATORS, Credentials("alice", "s3cret"))

        assert outcome == AuthResult.FAILED_CREDENTIALS

    @pytest.mark.asyncio
    async def test_no_credentials(self, descriptor):
        """Test a login form with nothing to type."""
        site = FakeSite([])
        controller, handle = await open_at(site, descriptor, LOGIN_URL)

        outcome = await InteractionDriver(controller).authenticate(handle, LOGIN_LOCATORS, None)

        assert outcome == AuthResult.FAILED_CREDENTIALS
        assert site.login_attempts == 0

    @pytest.mark.asyncio
    async def test_no_login_field_skips(self, descriptor):
        """Test pages without a login form."""
        site = FakeSite([])
        controller, handle = await open_at(site, descriptor, SEARCH_URL)

        outcome = await InteractionDriver(controller).authenticate(
            handle, SEARCH_LOCATORS, Credentials("alice", "s3cret")
        )

        assert outcome == AuthResult.SKIPPED

    @pytest.mark.asyncio
    async def test_missing_password_field(self, descriptor):
        """Test a login locator that resolves to nothing."""
        site = FakeSite([])
        controller, handle = await open_at(site, descriptor, LOGIN_URL)
        locators = LocatorSet(login_field='input[name="T_Login"]', password_field="#nope")

        with pytest.raises(LocatorNotFound):
            await InteractionDriver(controller).authenticate(handle, locators, Credentials("alice", "s3cret"))

    @pytest.mark.asyncio
    async def test_enter_without_submit_control(self, descriptor):
        """Test submitting the login with Enter."""
        site = FakeSite([], credentials=("alice", "s3cret"))
        controller, handle = await open_at(site, descriptor, LOGIN_URL)
        locators = LocatorSet(login_field='input[name="T_Login"]', password_field='input[name="T_Senha"]')

        outcome = await InteractionDriver(controller).authenticate(handle, locators, Credentials("alice", "s3cret"))

        assert outcome == AuthResult.SUCCESS


class TestSubmitQuery:
    """Tests for InteractionDriver.submit_query."""

    @pytest.mark.asyncio
    async def test_success(self, descriptor):
        """Test typing and submitting a query."""
        site = FakeSite([results_page([1], has_next=False)])
        controller, handle = await open_at(site, descriptor, SEARCH_URL)

        outcome = await InteractionDriver(controller).submit_query(handle, SEARCH_LOCATORS, "ibuprofen")

        assert outcome == SubmissionResult.SUCCESS
        assert site.filled == {"query": "ibuprofen"}
        assert site.state == "results"

    @pytest.mark.asyncio
    async def test_field_not_found(self, descriptor):
        """Test a query field that is not on the page."""
        site = FakeSite([])
        controller, handle = await open_at(site, descriptor, SEARCH_URL)
        locators = LocatorSet(query_field="#missing", submit_selector='input[value="Search"]')

        outcome = await InteractionDriver(controller).submit_query(handle, locators, "ibuprofen")

        assert outcome == SubmissionResult.FIELD_NOT_FOUND

    @pytest.mark.asyncio
    async def test_submit_not_found(self, descriptor):
        """Test a submit control that is not on the page."""
        site = FakeSite([])
        controller, handle = await open_at(site, descriptor, SEARCH_URL)
        locators = LocatorSet(query_field="#q", submit_selector="#missing")

        outcome = await InteractionDriver(controller).submit_query(handle, locators, "ibuprofen")

        assert outcome == SubmissionResult.SUBMIT_NOT_FOUND
        assert site.submissions == 0

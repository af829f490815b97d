"""Tests for the tellet-admin command line."""

import httpx
import orjson
import pytest
import respx
from httpx import Response
from typer.testing import CliRunner

from telletadmin import __version__
from telletadmin.cli import common
from telletadmin.cli.commands import api as api_commands
from telletadmin.cli.commands import auth as auth_commands
from telletadmin.cli.commands import cache as cache_commands
from telletadmin.cli.commands import download as download_commands
from telletadmin.cli.main import app
from tests.conftest import BASE_URL

ORGS = [
    {"_id": "5f1a2b3c4d5e6f7a8b9c0d1e", "name": "Acme Research"},
    {"_id": "6a1b2c3d4e5f6a7b8c9d0e1f", "name": "Globex"},
]


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def workspace(tmp_path, monkeypatch):
    """Config file pointing caches and the token file into tmp_path."""
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        "api:\n"
        f"  base_url: {BASE_URL}\n"
        "  retries: 0\n"
        "  retry_delay: 0\n"
        "cache:\n"
        f"  dir: {tmp_path / 'cache'}\n"
        "auth:\n"
        f"  token_path: {tmp_path / 'auth.json'}\n"
        "logging:\n"
        "  level: WARNING\n"
    )
    monkeypatch.setenv("TELLET_CONFIG", str(config_path))
    for module in (api_commands, auth_commands, cache_commands, download_commands):
        monkeypatch.setattr(module.console, "width", 200)
    monkeypatch.setattr(common.err_console, "width", 200)
    return tmp_path


def mock_login(router, token):
    return router.post("/users/login").mock(return_value=Response(200, json={"token": token}))


def credentials():
    return ["--email", "me@example.com", "--password", "secret"]


class TestRoot:
    def test_version(self, runner):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_invalid_config_exit_code(self, runner, tmp_path, monkeypatch):
        config_path = tmp_path / "config.yaml"
        config_path.write_text("api:\n  retries: 99\n")
        monkeypatch.setenv("TELLET_CONFIG", str(config_path))

        result = runner.invoke(app, ["logout"])

        assert result.exit_code == 7
        assert "CONFIG_ERROR" in result.output


class TestAuthCommands:
    """Tests for login and logout."""

    def test_login_caches_token(self, runner, workspace, valid_token):
        with respx.mock(base_url=BASE_URL) as router:
            mock_login(router, valid_token)
            result = runner.invoke(app, ["login", *credentials()])

        assert result.exit_code == 0, result.output
        cache = orjson.loads((workspace / "auth.json").read_bytes())
        assert cache["token"] == valid_token

    def test_login_reads_credentials_from_env(self, runner, workspace, valid_token, monkeypatch):
        monkeypatch.setenv("TELLET_EMAIL", "env@example.com")
        monkeypatch.setenv("TELLET_PASSWORD", "secret")

        with respx.mock(base_url=BASE_URL) as router:
            route = mock_login(router, valid_token)
            result = runner.invoke(app, ["login"])

        assert result.exit_code == 0, result.output
        assert orjson.loads(route.calls.last.request.content)["email"] == "env@example.com"

    def test_bad_credentials_exit_code(self, runner, workspace):
        with respx.mock(base_url=BASE_URL) as router:
            router.post("/users/login").mock(return_value=Response(401, json={"message": "Unauthorized"}))
            result = runner.invoke(app, ["login", *credentials()])

        assert result.exit_code == 3
        assert "Invalid email or password" in result.output

    def test_url_override(self, runner, workspace, valid_token):
        other = "https://eu.tellet.test"
        with respx.mock(base_url=other) as router:
            mock_login(router, valid_token)
            result = runner.invoke(app, ["--url", f"{other}/", "login", *credentials()])

        assert result.exit_code == 0, result.output
        cache = orjson.loads((workspace / "auth.json").read_bytes())
        assert cache["base_url"] == other

    def test_logout(self, runner, workspace):
        (workspace / "auth.json").write_text("{}")

        result = runner.invoke(app, ["logout"])

        assert result.exit_code == 0
        assert not (workspace / "auth.json").exists()


class TestTestApi:
    """Tests for the test-api command."""

    def test_success(self, runner, workspace, valid_token):
        with respx.mock(base_url=BASE_URL) as router:
            mock_login(router, valid_token)
            router.get("/organizations").mock(return_value=Response(200, json=ORGS))
            router.get(f"/organizations/{ORGS[0]['_id']}/workspaces").mock(
                return_value=Response(
                    200,
                    json={"privateWorkspaces": [{"_id": "w1", "name": "Mine"}], "sharedWorkspaces": []},
                )
            )
            result = runner.invoke(app, ["test-api", *credentials()])

        assert result.exit_code == 0, result.output
        assert "found 2 organization(s)" in result.output
        assert "found 1 workspace(s)" in result.output

    def test_uses_cached_token(self, runner, workspace, valid_token):
        with respx.mock(base_url=BASE_URL) as router:
            mock_login(router, valid_token)
            runner.invoke(app, ["login", *credentials()])

        with respx.mock(base_url=BASE_URL) as router:
            orgs = router.get("/organizations").mock(return_value=Response(200, json=[]))
            result = runner.invoke(app, ["test-api"])

        assert result.exit_code == 0, result.output
        assert orgs.calls.last.request.headers["Authorization"] == f"Bearer {valid_token}"

    def test_network_error_exit_code(self, runner, workspace, valid_token):
        with respx.mock(base_url=BASE_URL) as router:
            mock_login(router, valid_token)
            router.get("/organizations").mock(side_effect=httpx.ConnectError("refused"))
            result = runner.invoke(app, ["test-api", *credentials()])

        assert result.exit_code == 5
        assert "NETWORK_ERROR" in result.output

    def test_rate_limited_exit_code(self, runner, workspace, valid_token):
        with respx.mock(base_url=BASE_URL) as router:
            mock_login(router, valid_token)
            router.get("/organizations").mock(return_value=Response(429, headers={"Retry-After": "30"}))
            result = runner.invoke(app, ["test-api", *credentials()])

        assert result.exit_code == 8

    def test_redirect_loop_exit_code(self, runner, workspace, valid_token):
        with respx.mock(base_url=BASE_URL) as router:
            mock_login(router, valid_token)
            router.get("/organizations").mock(
                return_value=Response(302, headers={"Location": f"{BASE_URL}/organizations"})
            )
            result = runner.invoke(app, ["test-api", *credentials()])

        assert result.exit_code == 1
        assert "API_ERROR" in result.output

    def test_forbidden_exit_code(self, runner, workspace, valid_token):
        with respx.mock(base_url=BASE_URL) as router:
            mock_login(router, valid_token)
            router.get("/organizations").mock(return_value=Response(403, json={"message": "Forbidden"}))
            result = runner.invoke(app, ["test-api", *credentials()])

        assert result.exit_code == 4


class TestListOrgs:
    """Tests for the list-orgs command."""

    def mock_workspaces(self, router):
        router.get(f"/organizations/{ORGS[0]['_id']}/workspaces").mock(
            return_value=Response(200, json={"priv": [{"_id": "w-private-0001", "name": "Interviews"}]})
        )
        router.get(f"/organizations/{ORGS[1]['_id']}/workspaces").mock(return_value=Response(500))

    def test_lists_orgs_and_workspaces(self, runner, workspace, valid_token):
        with respx.mock(base_url=BASE_URL) as router:
            mock_login(router, valid_token)
            router.get("/organizations").mock(return_value=Response(200, json=ORGS))
            self.mock_workspaces(router)
            result = runner.invoke(app, ["list-orgs", *credentials()])

        assert result.exit_code == 0, result.output
        assert "Acme Research" in result.output
        assert "Interviews" in result.output
        assert "Failed to fetch workspaces" in result.output
        assert "5f1a2b3c..." in result.output
        assert ORGS[0]["_id"] not in result.output

    def test_show_ids(self, runner, workspace, valid_token):
        with respx.mock(base_url=BASE_URL) as router:
            mock_login(router, valid_token)
            router.get("/organizations").mock(return_value=Response(200, json=ORGS))
            result = runner.invoke(app, ["list-orgs", "--fast", "--show-ids", *credentials()])

        assert result.exit_code == 0, result.output
        assert ORGS[0]["_id"] in result.output

    def test_organizations_cached_between_runs(self, runner, workspace, valid_token):
        with respx.mock(base_url=BASE_URL) as router:
            mock_login(router, valid_token)
            orgs = router.get("/organizations").mock(return_value=Response(200, json=ORGS))

            first = runner.invoke(app, ["list-orgs", "--fast", *credentials()])
            second = runner.invoke(app, ["list-orgs", "--fast"])
            assert orgs.call_count == 1

            refreshed = runner.invoke(app, ["list-orgs", "--fast", "--refresh"])
            assert orgs.call_count == 2

        assert first.exit_code == second.exit_code == refreshed.exit_code == 0
        assert "Globex" in second.output

    def test_no_organizations(self, runner, workspace, valid_token):
        with respx.mock(base_url=BASE_URL) as router:
            mock_login(router, valid_token)
            router.get("/organizations").mock(return_value=Response(200, json=[]))
            result = runner.invoke(app, ["list-orgs", "--refresh", *credentials()])

        assert result.exit_code == 0
        assert "No organizations found" in result.output


class TestDownload:
    def test_download_without_auth(self, runner, workspace):
        destination = workspace / "out" / "report.csv"

        with respx.mock(base_url=BASE_URL) as router:
            router.get("/files/report.csv").mock(return_value=Response(200, content=b"a,b\n1,2\n"))
            result = runner.invoke(
                app,
                ["download", f"{BASE_URL}/files/report.csv", "--output", str(destination), "--no-auth"],
            )

        assert result.exit_code == 0, result.output
        assert destination.read_bytes() == b"a,b\n1,2\n"

    def test_download_not_found(self, runner, workspace):
        with respx.mock(base_url=BASE_URL) as router:
            router.get("/files/missing.csv").mock(return_value=Response(404))
            result = runner.invoke(
                app,
                ["download", "/files/missing.csv", "-o", str(workspace / "x.csv"), "--no-auth"],
            )

        assert result.exit_code == 1
        assert not (workspace / "x.csv").exists()


class TestCacheCommands:
    def test_stats(self, runner, workspace):
        result = runner.invoke(app, ["cache", "stats"])

        assert result.exit_code == 0, result.output
        assert "organizations" in result.output
        assert "projects" in result.output

    def test_clear(self, runner, workspace):
        org_dir = workspace / "cache" / "organizations"
        org_dir.mkdir(parents=True)
        (org_dir / "abc.json").write_text('{"value": [], "expires": 0}')

        result = runner.invoke(app, ["cache", "clear", "--name", "organizations"])

        assert result.exit_code == 0, result.output
        assert list(org_dir.glob("*.json")) == []

    def test_clear_unknown(self, runner, workspace):
        result = runner.invoke(app, ["cache", "clear", "--name", "nope"])
        assert result.exit_code == 1

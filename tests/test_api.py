import unittest
from pathlib import Path
from unittest.mock import MagicMock
from urllib.parse import parse_qs, urlparse

import fakeredis
from fastapi.testclient import TestClient

from gitswitch.core.config import Settings
from gitswitch.main import create_app
from gitswitch.services.auth_service import create_access_token
from tests.fakes import CONTENT_ROOT, DETACHED_HEAD, NOT_A_REPO, FakeGit, make_service

DEPLOY_SECRET = "s3cret"


class ApiTestCase(unittest.TestCase):
    deploy_secret = DEPLOY_SECRET

    def setUp(self):
        self.settings = Settings(
            paths={"content_root": "/srv/wp-content", "app_root": "/srv"},
            repos={"themes/foo": {}},
            security={
                "secret_key": "test-secret",
                "deploy_secret": self.deploy_secret,
            },
        )
        self.redis = fakeredis.FakeRedis(
            server=fakeredis.FakeServer(), decode_responses=True
        )
        self.git = FakeGit()
        self.purge_callback = MagicMock()
        self.service = make_service(
            self.redis, self.git, callbacks=[self.purge_callback]
        )
        self.app = create_app(
            self.settings, redis_client=self.redis, service=self.service
        )
        self.client = TestClient(self.app)

    def auth(self, *capabilities, subject="alice"):
        token = create_access_token(subject, capabilities, self.settings)
        return {"Authorization": f"Bearer {token}"}

    @property
    def admin(self):
        return self.auth("manage_options", "switch_themes")


class TestHealth(ApiTestCase):
    def test_health(self):
        response = self.client.get("/api/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"status": "ok"})
        self.assertIn("X-Request-ID", response.headers)

    def test_incoming_request_id_is_kept(self):
        response = self.client.get("/api/health", headers={"X-Request-ID": "abc123"})
        self.assertEqual(response.headers["X-Request-ID"], "abc123")

    def test_access_log_names_operator_without_query(self):
        with self.assertLogs("gitswitch.request", level="INFO") as logs:
            self.client.get(
                "/api/git-switch/repos", params={"page": "2"}, headers=self.admin
            )
        (record,) = logs.records
        self.assertEqual(record.operator_sub, "alice")
        self.assertEqual(record.path, "/api/git-switch/repos")
        self.assertEqual(record.status, 200)


class TestListRepos(ApiTestCase):
    def test_requires_login(self):
        response = self.client.get("/api/git-switch/repos")
        self.assertEqual(response.status_code, 401)

    def test_requires_capability(self):
        response = self.client.get(
            "/api/git-switch/repos", headers=self.auth("switch_themes")
        )
        self.assertEqual(response.status_code, 403)

    def test_invalid_operator_token(self):
        response = self.client.get(
            "/api/git-switch/repos", headers={"Authorization": "Bearer nonsense"}
        )
        self.assertEqual(response.status_code, 401)

    def test_lists_status_and_branches(self):
        response = self.client.get("/api/git-switch/repos", headers=self.admin)
        self.assertEqual(response.status_code, 200)

        body = response.json()
        self.assertEqual(body["total"], 1)
        (item,) = body["items"]
        self.assertEqual(item["repo"], "themes/foo")
        self.assertEqual(item["branch"], "main")
        self.assertEqual(item["label"], "git(main)")
        self.assertFalse(item["dirty"])
        self.assertEqual(
            [b["name"] for b in item["remote_branches"]], ["main", "develop", "release"]
        )
        self.assertEqual(
            [b["current"] for b in item["remote_branches"]], [True, False, False]
        )

        switch_url = urlparse(item["remote_branches"][1]["switch_url"])
        self.assertEqual(switch_url.path, "/api/git-switch/switch-branch")
        query = parse_qs(switch_url.query)
        self.assertEqual(query["repo"], ["themes/foo"])
        self.assertEqual(query["branch"], ["develop"])
        self.assertTrue(query["nonce"][0])

        pull_query = parse_qs(urlparse(item["pull_url"]).query)
        self.assertEqual(pull_query["git-pull"], [DEPLOY_SECRET])
        self.assertEqual(pull_query["repo"], ["themes/foo"])

    def test_repo_with_hung_git_is_omitted(self):
        self.git.hung_paths.add(CONTENT_ROOT / "themes/foo")
        response = self.client.get("/api/git-switch/repos", headers=self.admin)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"total": 0, "items": []})

    def test_non_git_directories_are_omitted(self):
        self.git.status = NOT_A_REPO
        response = self.client.get("/api/git-switch/repos", headers=self.admin)
        self.assertEqual(response.json(), {"total": 0, "items": []})


class TestSwitchBranch(ApiTestCase):
    def switch_query(self, branch="develop"):
        response = self.client.get("/api/git-switch/repos", headers=self.admin)
        for option in response.json()["items"][0]["remote_branches"]:
            if option["name"] == branch:
                return {
                    k: v[0]
                    for k, v in parse_qs(urlparse(option["switch_url"]).query).items()
                }
        raise AssertionError(f"no switch link for {branch}")

    def test_switch_redirects_to_referer(self):
        params = self.switch_query()
        response = self.client.get(
            "/api/git-switch/switch-branch",
            params=params,
            headers={**self.admin, "Referer": "http://testserver/wp-admin/themes.php"},
            follow_redirects=False,
        )

        self.assertEqual(response.status_code, 303)
        self.assertEqual(
            response.headers["location"], "http://testserver/wp-admin/themes.php"
        )
        self.assertIn(["checkout", "-f", "develop"], self.git.commands())

    def test_foreign_referer_is_ignored(self):
        params = self.switch_query()
        response = self.client.get(
            "/api/git-switch/switch-branch",
            params=params,
            headers={**self.admin, "Referer": "https://evil.example/"},
            follow_redirects=False,
        )
        self.assertEqual(response.status_code, 303)
        self.assertEqual(response.headers["location"], "/")

    def test_requires_switch_capability(self):
        params = self.switch_query()
        response = self.client.get(
            "/api/git-switch/switch-branch",
            params=params,
            headers=self.auth("manage_options"),
            follow_redirects=False,
        )
        self.assertEqual(response.status_code, 403)
        self.assertFalse(self.git.ran("checkout"))

    def test_nonce_for_other_branch(self):
        params = self.switch_query("develop")
        params["branch"] = "release"
        response = self.client.get(
            "/api/git-switch/switch-branch",
            params=params,
            headers=self.admin,
            follow_redirects=False,
        )
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.text, "You can't do this.")
        self.assertFalse(self.git.ran("checkout"))

    def test_nonce_issued_to_another_operator(self):
        params = self.switch_query()
        response = self.client.get(
            "/api/git-switch/switch-branch",
            params=params,
            headers=self.auth("manage_options", "switch_themes", subject="bob"),
            follow_redirects=False,
        )
        self.assertEqual(response.status_code, 403)

    def test_unknown_repo(self):
        token = self.service.nonces.create("themes/other", "develop", subject="alice")
        response = self.client.get(
            "/api/git-switch/switch-branch",
            params={"repo": "themes/other", "branch": "develop", "nonce": token},
            headers=self.admin,
        )
        self.assertEqual(response.status_code, 404)

    def test_not_a_git_repo(self):
        params = self.switch_query()
        self.service.cache.clear()
        self.git.status = NOT_A_REPO
        response = self.client.get(
            "/api/git-switch/switch-branch",
            params=params,
            headers=self.admin,
            follow_redirects=False,
        )
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.text, "Can't interact with Git.")

    def test_purge_runs_on_next_request_only(self):
        params = self.switch_query()
        self.client.get(
            "/api/git-switch/switch-branch",
            params=params,
            headers=self.admin,
            follow_redirects=False,
        )
        self.purge_callback.assert_not_called()

        self.client.get("/api/health")
        self.client.get("/api/health")
        self.purge_callback.assert_called_once_with("default")


class TestDeployTriggers(ApiTestCase):
    def test_auto_deploy(self):
        response = self.client.get(
            "/api/health", params={"git-switch-auto-deploy": DEPLOY_SECRET}
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.text, "Refreshed.")
        self.assertIn(["pull", "-f", "origin", "main"], self.git.commands())

    def test_auto_deploy_on_any_path(self):
        response = self.client.get(
            "/some/page", params={"git-switch-auto-deploy": DEPLOY_SECRET}
        )
        self.assertEqual(response.text, "Refreshed.")

    def test_pull_redirects_without_trigger_params(self):
        response = self.client.get(
            "/api/health",
            params={"git-pull": DEPLOY_SECRET, "repo": "themes/foo", "page": "2"},
            follow_redirects=False,
        )
        self.assertEqual(response.status_code, 303)
        self.assertEqual(
            response.headers["location"], "http://testserver/api/health?page=2"
        )
        self.assertIn(["fetch", "origin"], self.git.commands())

    def test_pull_unknown_repo(self):
        response = self.client.get(
            "/api/health",
            params={"git-pull": DEPLOY_SECRET, "repo": "themes/other"},
            follow_redirects=False,
        )
        self.assertEqual(response.status_code, 404)

    def test_detached_head_is_fetched_not_reset(self):
        self.git.status = DETACHED_HEAD
        response = self.client.get(
            "/api/health", params={"git-switch-auto-deploy": DEPLOY_SECRET}
        )
        self.assertEqual(response.text, "Refreshed.")
        self.assertTrue(self.git.ran("fetch"))
        self.assertFalse(self.git.ran("reset"))

    def test_wrong_secret_passes_through(self):
        response = self.client.get(
            "/api/health", params={"git-switch-auto-deploy": "guess"}
        )
        self.assertEqual(response.json(), {"status": "ok"})
        self.assertEqual(self.git.calls, [])

    def test_refresh_schedules_purge(self):
        self.client.get("/api/health", params={"git-switch-auto-deploy": DEPLOY_SECRET})
        self.purge_callback.assert_not_called()
        self.client.get("/api/health")
        self.purge_callback.assert_called_once_with("default")


class TestDeployTriggersDisabled(ApiTestCase):
    deploy_secret = None

    def test_triggers_are_ignored(self):
        response = self.client.get(
            "/api/health", params={"git-switch-auto-deploy": ""}
        )
        self.assertEqual(response.json(), {"status": "ok"})
        self.assertEqual(self.git.calls, [])

    def test_no_pull_link(self):
        response = self.client.get("/api/git-switch/repos", headers=self.admin)
        self.assertIsNone(response.json()["items"][0]["pull_url"])


if __name__ == "__main__":
    unittest.main()

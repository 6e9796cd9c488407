import os
import tempfile
import unittest
from urllib.parse import quote

# Keep the app on local, deterministic collaborators.
_TMP = tempfile.mkdtemp()
os.environ["DB_PATH"] = os.path.join(_TMP, "api_test.db")
os.environ["PG_DSN"] = ""
os.environ["ENABLE_LOAD_SHEDDING"] = "false"

from database import DatabaseError  # noqa: E402
from newscurator.contracts.categories import DEFAULT_CATEGORIES  # noqa: E402
from newscurator.storage.memory_articles import InMemoryArticleStore  # noqa: E402
from web_app import create_app  # noqa: E402


GITHUB = "https://github.com/blog"
TEST_CONFIG = {"TESTING": True, "RATELIMIT_ENABLED": False, "ADMIN_API_TOKENS": ["test-admin-token"]}


def _article(slug, source=GITHUB, category="Technology", published=True, published_at="2024-01-15T00:00:00Z", **extra):
    data = {
        "id": slug,
        "slug": slug,
        "title": f"Article {slug}",
        "category": category,
        "primary_source": source,
        "published": published,
        "published_at": published_at,
    }
    data.update(extra)
    return data


def _store():
    return InMemoryArticleStore([
        _article("github-1", published_at="2024-01-15T00:00:00Z"),
        _article("github-2", published_at="2024-01-20T00:00:00Z"),
        _article("github-3", published_at="2024-01-10T00:00:00Z"),
        _article("nature", source="https://www.nature.com/articles/x", category="Science"),
        _article("world", source="UN Report", category="World", published_at="2024-01-25T00:00:00Z"),
        _article("draft", published=False),
    ])


class _BrokenStore(InMemoryArticleStore):
    def get_published_articles(self, category=None):
        raise DatabaseError("database is locked")


class TestApi(unittest.TestCase):
    def setUp(self):
        self.store = _store()
        self.app = create_app(
            store=self.store,
            categories=DEFAULT_CATEGORIES,
            cache_config={"CACHE_TYPE": "NullCache"},
            config=TEST_CONFIG,
        )
        self.client = self.app.test_client()

    def test_health(self):
        resp = self.client.get("/api/health")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.get_json()["status"], "healthy")
        self.assertEqual(resp.headers["X-Content-Type-Options"], "nosniff")

    def test_categories_in_config_order_with_counts(self):
        data = self.client.get("/api/categories").get_json()
        self.assertEqual([c["name"] for c in data][:2], ["World", "Technology"])
        counts = {c["name"]: c["count"] for c in data}
        self.assertEqual(counts["Technology"], 3)
        self.assertEqual(counts["Politics"], 0)

    def test_list_primary_sources(self):
        data = self.client.get("/api/primary-sources").get_json()
        self.assertEqual(data[0]["sourceId"], GITHUB)
        self.assertEqual(data[0]["count"], 3)
        self.assertEqual(data[0]["latestArticle"]["slug"], "github-2")
        self.assertEqual(len(data), 3)

    def test_list_primary_sources_by_category(self):
        data = self.client.get("/api/primary-sources?category=science").get_json()
        self.assertEqual([g["sourceId"] for g in data], ["https://www.nature.com/articles/x"])

    def test_search(self):
        data = self.client.get("/api/primary-sources/search?q=GitHub").get_json()
        self.assertEqual([g["sourceId"] for g in data], [GITHUB])
        self.assertEqual(self.client.get("/api/primary-sources/search?q=zzzz").get_json(), [])

    def test_search_requires_query(self):
        for url in ("/api/primary-sources/search", "/api/primary-sources/search?q=%20%20"):
            resp = self.client.get(url)
            self.assertEqual(resp.status_code, 400)
            self.assertEqual(resp.get_json(), {"error": "Search query is required"})

    def test_source_articles_with_encoded_url(self):
        resp = self.client.get(f"/api/primary-sources/{quote(GITHUB, safe='')}/articles?page=1&limit=2")
        self.assertEqual(resp.status_code, 200)
        data = resp.get_json()
        self.assertEqual(data["source"], GITHUB)
        self.assertEqual([a["slug"] for a in data["articles"]], ["github-2", "github-1"])
        self.assertEqual(data["pagination"], {
            "total": 3, "page": 1, "limit": 2, "totalPages": 2, "hasNextPage": True, "hasPrevPage": False,
        })

    def test_source_label_with_literal_percent_escape(self):
        label = "Ref%3A 2024"
        self.store.add(_article("escaped", source=label, category="Science"))
        resp = self.client.get(f"/api/primary-sources/{quote(label, safe='')}/articles")
        data = resp.get_json()
        self.assertEqual(data["source"], label)
        self.assertEqual([a["slug"] for a in data["articles"]], ["escaped"])

    def test_source_articles_plain_label(self):
        data = self.client.get(f"/api/primary-sources/{quote('UN Report', safe='')}/articles").get_json()
        self.assertEqual([a["slug"] for a in data["articles"]], ["world"])

    def test_source_articles_clamps_pagination(self):
        data = self.client.get(f"/api/primary-sources/{quote(GITHUB, safe='')}/articles?page=-1&limit=1000").get_json()
        self.assertEqual(data["pagination"]["page"], 1)
        self.assertEqual(data["pagination"]["limit"], 100)

    def test_unknown_source_is_empty(self):
        resp = self.client.get("/api/primary-sources/nothing-here/articles")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.get_json()["pagination"]["total"], 0)

    def test_homepage(self):
        data = self.client.get("/api/homepage").get_json()
        self.assertEqual([s["category"] for s in data["sections"]], ["World", "Technology", "Science"])
        spots = [a["spot"] for s in data["sections"] for a in s["articles"]]
        self.assertEqual(spots, list(range(10, 10 + len(spots))))
        self.assertEqual(data["sections"][0]["displayName"], "World News")

    def test_unknown_route(self):
        resp = self.client.get("/api/does-not-exist")
        self.assertEqual(resp.status_code, 404)
        self.assertEqual(resp.get_json(), {"error": "Endpoint not found"})

    def test_database_errors_become_503(self):
        app = create_app(
            store=_BrokenStore(),
            categories=DEFAULT_CATEGORIES,
            cache_config={"CACHE_TYPE": "NullCache"},
            config=TEST_CONFIG,
        )
        resp = app.test_client().get("/api/primary-sources")
        self.assertEqual(resp.status_code, 503)
        self.assertEqual(resp.get_json(), {"error": "Database temporarily unavailable", "retry": True})


class TestApiCaching(unittest.TestCase):
    def setUp(self):
        self.store = _store()
        self.app = create_app(
            store=self.store,
            categories=DEFAULT_CATEGORIES,
            cache_config={"CACHE_TYPE": "SimpleCache", "CACHE_DEFAULT_TIMEOUT": 300},
            config=TEST_CONFIG,
        )
        self.client = self.app.test_client()
        self.admin = {"Authorization": "Bearer test-admin-token"}

    def _count(self, **kwargs):
        return len(self.client.get("/api/primary-sources", **kwargs).get_json())

    def test_cached_until_cleared(self):
        self.assertEqual(self._count(), 3)
        self.store.add(_article("new-source", source="https://new.example.com"))
        self.assertEqual(self._count(), 3)
        # admins always see fresh data
        self.assertEqual(self._count(headers=self.admin), 4)

        resp = self.client.post("/api/admin/cache/clear", headers=self.admin)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(self._count(), 4)

    def test_query_string_is_part_of_the_key(self):
        all_groups = self.client.get("/api/primary-sources").get_json()
        science = self.client.get("/api/primary-sources?category=Science").get_json()
        self.assertNotEqual(len(all_groups), len(science))

    def test_cache_clear_requires_admin(self):
        self.assertEqual(self.client.post("/api/admin/cache/clear").status_code, 401)
        resp = self.client.post("/api/admin/cache/clear", headers={"Authorization": "Bearer wrong"})
        self.assertEqual(resp.status_code, 401)


if __name__ == "__main__":
    unittest.main()

import random
from collections.abc import Callable
from unittest.mock import AsyncMock, MagicMock

from fastapi.testclient import TestClient

from shelfrank.backfill import CoverBackfillWorker
from shelfrank.csv_io import EXPORT_COLUMNS
from shelfrank.models import BookRecord
from shelfrank.services.catalog import CatalogService


def _import(client: TestClient, text: str, **params: str):
    return client.post(
        "/api/catalog/import",
        content=text.encode("utf-8"),
        params=params,
        headers={"Content-Type": "text/csv"},
    )


class TestImportExport:
    def test_import_detects_library_export(
        self, app_client: TestClient, library_export: str
    ) -> None:
        response = _import(app_client, library_export)

        assert response.status_code == 200
        data = response.json()
        assert data["format"] == "library"
        assert data["created"] == 2
        assert data["total"] == 2

    def test_import_accepts_byte_order_mark(
        self, app_client: TestClient, library_export: str
    ) -> None:
        response = app_client.post(
            "/api/catalog/import",
            content=b"\xef\xbb\xbf" + library_export.encode("utf-8"),
        )

        assert response.status_code == 200
        assert response.json()["created"] == 2

    def test_forced_format_mismatch_is_rejected(
        self, app_client: TestClient, library_export: str
    ) -> None:
        response = _import(app_client, library_export, format="rankings")

        assert response.status_code == 400
        assert "ELO" in response.json()["detail"]

    def test_unknown_format_is_rejected(
        self, app_client: TestClient, library_export: str
    ) -> None:
        assert _import(app_client, library_export, format="xlsx").status_code == 422

    def test_empty_and_binary_bodies_are_rejected(self, app_client: TestClient) -> None:
        assert _import(app_client, "").status_code == 400
        response = app_client.post("/api/catalog/import", content=b"\xff\xfe\x00")
        assert response.status_code == 400

    def test_export_is_a_csv_attachment(
        self, app_client: TestClient, seeded_service: CatalogService
    ) -> None:
        response = app_client.get("/api/catalog/export")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert "attachment" in response.headers["content-disposition"]
        lines = response.text.splitlines()
        assert lines[0] == ",".join(EXPORT_COLUMNS)
        assert len(lines) == 3


class TestBooks:
    def test_lists_active_books_by_rating(
        self, app_client: TestClient, seeded_service: CatalogService
    ) -> None:
        dune, hyperion = sorted(seeded_service.load(), key=lambda r: r.title)
        seeded_service.record_outcome(hyperion.id, dune.id)

        response = app_client.get("/api/books")

        assert response.status_code == 200
        assert [book["title"] for book in response.json()] == ["Hyperion", "Dune"]

    def test_include_inactive(
        self, app_client: TestClient, seeded_service: CatalogService
    ) -> None:
        seeded_service.import_library_export(
            "Title,Author,Exclusive Shelf\nHyperion,Dan Simmons,to-read\n"
        )

        active = app_client.get("/api/books").json()
        everything = app_client.get("/api/books", params={"include_inactive": "true"}).json()

        assert len(active) == 1
        assert len(everything) == 2


class TestMatchups:
    def test_next_matchup(
        self, app_client: TestClient, seeded_service: CatalogService
    ) -> None:
        response = app_client.post("/api/matchups", json={"limit_enabled": False})

        assert response.status_code == 200
        data = response.json()
        assert data["book1"]["id"] != data["book2"]["id"]

    def test_next_matchup_without_body(
        self, app_client: TestClient, seeded_service: CatalogService
    ) -> None:
        response = app_client.post("/api/matchups")

        assert response.status_code == 200
        assert response.json()["book1"] is not None

    def test_empty_catalog_has_no_pair(self, app_client: TestClient) -> None:
        response = app_client.post("/api/matchups", json={})

        assert response.json() == {"book1": None, "book2": None}

    def test_matchup_fetches_missing_covers(
        self,
        app_client: TestClient,
        catalog_service: CatalogService,
        mock_finder: MagicMock,
        make_book: Callable[..., BookRecord],
    ) -> None:
        cover = "https://covers.example.com/found.jpg"
        catalog_service.repository.save(
            [make_book(title="Dune"), make_book(title="Hyperion")]
        )
        mock_finder.find_cover = AsyncMock(return_value=cover)
        app_client.app.state.matchup_cover_worker = CoverBackfillWorker(  # type: ignore[attr-defined]
            catalog_service, mock_finder, rng=random.Random(3)
        )

        response = app_client.post("/api/matchups")

        assert response.status_code == 200
        assert response.json()["book1"]["cover_url"] is None
        assert mock_finder.find_cover.await_count == 2
        assert {r.cover_url for r in catalog_service.load()} == {cover}

    def test_record_result(
        self, app_client: TestClient, seeded_service: CatalogService
    ) -> None:
        dune, hyperion = sorted(seeded_service.load(), key=lambda r: r.title)

        response = app_client.post(
            "/api/matchups/result",
            json={"winner_id": hyperion.id, "loser_id": dune.id},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["winner"]["rating"] == 1516
        assert data["loser"]["rating"] == 1484
        assert data["winner"]["comparison_count"] == 1

    def test_unknown_book_is_404(
        self, app_client: TestClient, seeded_service: CatalogService
    ) -> None:
        dune = seeded_service.load()[0]

        response = app_client.post(
            "/api/matchups/result", json={"winner_id": dune.id, "loser_id": "nope"}
        )

        assert response.status_code == 404

    def test_self_comparison_is_400(
        self, app_client: TestClient, seeded_service: CatalogService
    ) -> None:
        dune = seeded_service.load()[0]

        response = app_client.post(
            "/api/matchups/result", json={"winner_id": dune.id, "loser_id": dune.id}
        )

        assert response.status_code == 400

from fastapi.testclient import TestClient

from studyrag.api import create_app
from studyrag.ingestion.dispatcher import ReindexDispatcher
from studyrag.vector_dbs.local_db import LocalVectorDB
from tests.fakes import FakeLLMChat, UnavailableEmbedder

USER_A = {"X-User-Id": "user-a"}


def test_health(test_client: TestClient) -> None:
    response = test_client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


def test_search_requires_identity(test_client: TestClient) -> None:
    response = test_client.post("/api/search", json={"query": "derivative"})

    assert response.status_code == 401


def test_semantic_search(test_client: TestClient) -> None:
    response = test_client.post(
        "/api/search", json={"query": "derivative", "mode": "semantic"}, headers=USER_A
    )

    assert response.status_code == 200
    body = response.json()
    assert body["chunks"][0]["note_id"] == "note-1"
    assert body["chunks"][0]["section_path"][0] == "Derivatives"
    assert all(chunk["owner_user_id"] == "user-a" for chunk in body["chunks"])
    assert "latency_ms" in body


def test_hybrid_search_with_filters(test_client: TestClient) -> None:
    response = test_client.post(
        "/api/search",
        json={"query": "oven", "limit": 5, "filters": {"course_tag": "cooking"}},
        headers=USER_A,
    )

    assert response.status_code == 200
    chunks = response.json()["chunks"]
    assert chunks[0]["section_path"] == ["Bread", "Baking"]
    assert {chunk["course_tag"] for chunk in chunks} == {"cooking"}


def test_search_validates_request(test_client: TestClient) -> None:
    response = test_client.post("/api/search", json={"query": "", "limit": 0}, headers=USER_A)

    assert response.status_code == 422


def test_search_for_user_without_notes(test_client: TestClient) -> None:
    response = test_client.post(
        "/api/search", json={"query": "anything"}, headers={"X-User-Id": "user-c"}
    )

    assert response.status_code == 200
    assert response.json()["chunks"] == []


def test_ask_returns_cited_answer(test_client: TestClient, fake_chat: FakeLLMChat) -> None:
    response = test_client.post(
        "/api/ask", json={"query": "What is a derivative?"}, headers=USER_A
    )

    assert response.status_code == 200
    body = response.json()
    assert body["answer"] == fake_chat.response
    assert body["insufficient_context"] is False
    assert body["cited_chunks"]
    assert len(fake_chat.received) == 1


def test_ask_without_notes_does_not_call_llm(
    test_client: TestClient, fake_chat: FakeLLMChat
) -> None:
    response = test_client.post(
        "/api/ask", json={"query": "What is a derivative?"}, headers={"X-User-Id": "user-c"}
    )

    assert response.status_code == 200
    assert response.json()["insufficient_context"] is True
    assert fake_chat.received == []


def test_embedding_outage_maps_to_bad_gateway(
    indexed_corpus: LocalVectorDB, fake_chat: FakeLLMChat, dispatcher: ReindexDispatcher
) -> None:
    app = create_app(
        vector_db=indexed_corpus,
        embedder=UnavailableEmbedder(),
        chatbot=fake_chat,
        dispatcher=dispatcher,
    )
    client = TestClient(app)

    response = client.post("/api/search", json={"query": "derivative"}, headers=USER_A)

    assert response.status_code == 502


def test_content_changed_event_is_indexed_in_background(
    test_client: TestClient, indexed_corpus: LocalVectorDB, dispatcher: ReindexDispatcher
) -> None:
    event = {
        "kind": "created",
        "note_id": "note-9",
        "owner_user_id": "user-a",
        "title": "Integrals",
        "content": "# Integrals\n\nAn integral accumulates area under a curve.",
        "course_tag": "calculus",
    }

    response = test_client.post("/api/events/note-content-changed", json=event, headers=USER_A)
    dispatcher.shutdown(wait=True)

    assert response.status_code == 202
    assert response.json() == {"accepted": True, "note_id": "note-9"}
    chunks = indexed_corpus.get_chunks_for_note("user-a", "note-9")
    assert [chunk.section_path for chunk in chunks] == [["Integrals"]]


def test_note_deleted_event(
    test_client: TestClient, indexed_corpus: LocalVectorDB, dispatcher: ReindexDispatcher
) -> None:
    response = test_client.post(
        "/api/events/note-deleted",
        json={"note_id": "note-2", "owner_user_id": "user-a"},
        headers=USER_A,
    )
    dispatcher.shutdown(wait=True)

    assert response.status_code == 202
    assert indexed_corpus.get_chunks_for_note("user-a", "note-2") == []


def test_events_for_another_owner_are_rejected(
    test_client: TestClient, indexed_corpus: LocalVectorDB
) -> None:
    response = test_client.post(
        "/api/events/note-deleted",
        json={"note_id": "note-3", "owner_user_id": "user-b"},
        headers=USER_A,
    )

    assert response.status_code == 403
    assert len(indexed_corpus.get_chunks_for_note("user-b", "note-3")) == 1


def test_lexical_search(test_client: TestClient) -> None:
    response = test_client.post(
        "/api/search", json={"query": "oven crust", "mode": "lexical"}, headers=USER_A
    )

    assert response.status_code == 200
    body = response.json()
    assert [chunk["section_path"] for chunk in body["chunks"]] == [["Bread", "Baking"]]
    assert body["query_vector"] == []


def test_lexical_search_is_owner_scoped(test_client: TestClient) -> None:
    response = test_client.post(
        "/api/search", json={"query": "treaty", "mode": "lexical"}, headers=USER_A
    )

    assert response.status_code == 200
    assert response.json()["chunks"] == []


def test_min_similarity_drops_weak_semantic_matches(test_client: TestClient) -> None:
    unfiltered = test_client.post(
        "/api/search", json={"query": "derivative", "mode": "semantic"}, headers=USER_A
    )
    filtered = test_client.post(
        "/api/search",
        json={"query": "derivative", "mode": "semantic", "min_similarity": 0.9},
        headers=USER_A,
    )

    assert {chunk["note_id"] for chunk in unfiltered.json()["chunks"]} == {"note-1", "note-2"}
    chunks = filtered.json()["chunks"]
    assert chunks
    assert {chunk["note_id"] for chunk in chunks} == {"note-1"}
    assert all(chunk["similarity"] >= 0.9 for chunk in chunks)


def test_min_similarity_must_be_a_cosine_value(test_client: TestClient) -> None:
    response = test_client.post(
        "/api/search", json={"query": "derivative", "min_similarity": 1.5}, headers=USER_A
    )

    assert response.status_code == 422

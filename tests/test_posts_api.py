import server
from tests.helpers import ORIGIN, create


async def test_root_health_string(client):
    resp = await client.get("/")
    assert resp.status == 200
    assert (await resp.json()) == {"message": "Backend is working ✅"}


async def test_health_reports_every_shard(client):
    resp = await client.get("/health")
    assert resp.status == 200
    body = await resp.json()
    assert body["status"] == "ok"
    assert [s["index"] for s in body["shards"]] == [0, 1, 2]


async def test_health_degraded_when_a_shard_is_down(make_client, shard_urls, broken_url):
    client = await make_client(urls=[shard_urls(1)[0], broken_url])
    resp = await client.get("/health")
    assert resp.status == 503
    assert (await resp.json())["status"] == "degraded"


async def test_create_then_read_by_email(client):
    await create(client, text="hello")
    resp = await client.get("/posts", params={"email": "a@x.com"})
    assert resp.status == 200
    rows = await resp.json()
    assert len(rows) == 1
    assert rows[0]["post"] == {"text": "hello"}
    assert rows[0]["username"] == "a"
    assert rows[0]["avatar"] == "🐱"
    assert rows[0]["email"] == "a@x.com"
    assert rows[0]["created_at"]


async def test_create_accepts_structured_post(client):
    resp = await client.post("/post", json={
        "user": {"username": "a", "email": "a@x.com"},
        "post": {"text": "hi", "image": "https://img/1.png"},
    })
    assert resp.status == 200
    body = await resp.json()
    assert body["message"] == "Post Created"
    assert body["post"]["post"]["image"] == "https://img/1.png"
    assert body["post"]["avatar"] == ""


async def test_create_requires_fields(client):
    for payload in (
        {"user": {"username": "a", "email": "a@x.com"}},
        {"user": {"username": "a"}, "text": "x"},
        {"text": "x"},
        {"user": "a", "text": "x"},
    ):
        resp = await client.post("/post", json=payload)
        assert resp.status == 400, payload


async def test_malformed_json_is_a_400(client):
    resp = await client.post("/post", data="{nope", headers={"Content-Type": "application/json"})
    assert resp.status == 400

    resp = await client.post("/post", data=b'{"text": "\xff\xfe"}',
                             headers={"Content-Type": "application/json; charset=utf-8"})
    assert resp.status == 400
    assert (await resp.json()) == {"message": "Invalid JSON body"}


async def test_posts_requires_email(client):
    resp = await client.get("/posts")
    assert resp.status == 400


async def test_global_read_is_newest_first_across_shards(client, repo_of):
    emails = [f"user{i}@x.com" for i in range(12)]
    created = [await create(client, email=e, username=e.split("@")[0]) for e in emails]
    router = repo_of(client).router
    assert len({router.route_for(e) for e in emails}) > 1

    resp = await client.get("/post")
    assert resp.status == 200
    rows = await resp.json()
    assert {r["id"] for r in rows} == {p["id"] for p in created}
    stamps = [r["created_at"] for r in rows]
    assert stamps == sorted(stamps, reverse=True)
    assert rows[0]["id"] == created[-1]["id"]


async def test_update_post(client):
    post = await create(client)
    resp = await client.put(f"/post/a@x.com/{post['id']}", json={"text": "edited"})
    assert resp.status == 200
    body = await resp.json()
    assert body["message"] == "Post updated successfully"
    assert body["post"]["post"] == {"text": "edited"}
    assert body["post"]["id"] == post["id"]


async def test_update_requires_content(client):
    post = await create(client)
    resp = await client.put(f"/post/a@x.com/{post['id']}", json={})
    assert resp.status == 400


async def test_update_with_wrong_email_is_404_and_leaves_row(client):
    post = await create(client, text="original")
    resp = await client.put(f"/post/b@x.com/{post['id']}", json={"text": "hijack"})
    assert resp.status == 404
    assert (await resp.json()) == {"message": "Post not found or unauthorized"}

    rows = await (await client.get("/posts", params={"email": "a@x.com"})).json()
    assert rows[0]["post"] == {"text": "original"}


async def test_delete_with_wrong_email_is_404_and_leaves_row(client):
    post = await create(client)
    resp = await client.delete(f"/post/b@x.com/{post['id']}")
    assert resp.status == 404
    rows = await (await client.get("/posts", params={"email": "a@x.com"})).json()
    assert len(rows) == 1


async def test_delete_post(client):
    post = await create(client)
    resp = await client.delete(f"/post/a@x.com/{post['id']}")
    assert resp.status == 200
    assert (await resp.json()) == {"message": "Post deleted successfully"}
    resp = await client.delete(f"/post/a@x.com/{post['id']}")
    assert resp.status == 404


async def test_unknown_id_is_404(client):
    resp = await client.put("/post/a@x.com/not-a-uuid", json={"text": "x"})
    assert resp.status == 404


async def test_ring_mode_round_trip(make_client):
    client = await make_client(mode="ring")
    post = await create(client, email="ring@x.com")
    rows = await (await client.get("/posts", params={"email": "ring@x.com"})).json()
    assert [r["id"] for r in rows] == [post["id"]]


async def test_store_errors_are_not_leaked(make_client, broken_url):
    client = await make_client(urls=[broken_url])
    resp = await client.get("/post")
    assert resp.status == 500
    assert (await resp.json()) == {"message": "Server error"}


async def test_cors_preflight_for_allowed_origin(client):
    resp = await client.options("/post", headers={
        "Origin": ORIGIN, "Access-Control-Request-Method": "POST",
    })
    assert resp.status == 204
    assert resp.headers["Access-Control-Allow-Origin"] == ORIGIN
    assert "PUT" in resp.headers["Access-Control-Allow-Methods"]


async def test_cors_ignores_unknown_origin(client):
    resp = await client.get("/", headers={"Origin": "https://evil.example"})
    assert "Access-Control-Allow-Origin" not in resp.headers
    assert resp.headers["X-Content-Type-Options"] == "nosniff"


async def test_unknown_route_is_json_404(client):
    resp = await client.get("/nope")
    assert resp.status == 404
    assert "message" in await resp.json()


async def test_single_mode_only_builds_the_first_shard(make_client, repo_of, monkeypatch):
    built = []
    real_build = server.build_shards

    def recording_build(urls, **kwargs):
        built.append(list(urls))
        return real_build(urls, **kwargs)

    monkeypatch.setattr(server, "build_shards", recording_build)
    client = await make_client(n=3, mode="single")
    assert [len(urls) for urls in built] == [1]
    assert len(repo_of(client).shards) == 1
    body = await (await client.get("/health")).json()
    assert [s["index"] for s in body["shards"]] == [0]

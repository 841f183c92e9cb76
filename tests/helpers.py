ORIGIN = "http://localhost:8080"


async def create(client, email="a@x.com", username="a", text="hello", avatar="🐱"):
    resp = await client.post("/post", json={
        "user": {"username": username, "email": email},
        "text": text,
        "avatar": avatar,
    })
    assert resp.status == 200, await resp.text()
    return (await resp.json())["post"]

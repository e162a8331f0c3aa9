import os
import unittest
from unittest.mock import patch

from fastapi.testclient import TestClient

from graphblog.app import create_app
from graphblog.dependencies import get_db_client, get_image_storage, reset_dependencies
from graphblog.storage import InMemoryImageStorage

TEST_ENV = {
    "GRAPHBLOG_USE_IN_MEMORY_BACKENDS": "true",
    "BCRYPT_ROUNDS": "4",
    "JWT_SECRET": "app-tests-secret-that-is-long-enough",
}

CREATE_USER = """
mutation CreateUser($input: UserInputData!) {
  createUser(userInput: $input) { _id email name status posts }
}
"""

LOGIN = """
query Login($email: String!, $password: String!) {
  login(email: $email, password: $password) { token userId }
}
"""

CREATE_POST = """
mutation CreatePost($input: PostInputData!) {
  createPost(postInput: $input) {
    _id title content imageUrl createdAt updatedAt
    creator { _id name }
  }
}
"""

POSTS = """
query Posts($page: Int) {
  posts(page: $page) { totalPosts posts { _id title creator { name } } }
}
"""

POST = """
query Post($postId: ID!) { post(postId: $postId) { _id title } }
"""

UPDATE_POST = """
mutation UpdatePost($postId: ID!, $input: PostInputData!) {
  updatePost(postId: $postId, postInput: $input) { _id title imageUrl }
}
"""

DELETE_POST = """
mutation DeletePost($postId: ID!) { deletePost(postId: $postId) }
"""

USER = "{ user { _id email status posts } }"

UPDATE_STATUS = """
mutation UpdateStatus($status: String!) { updateStatus(status: $status) { status } }
"""


class BackendApiTests(unittest.TestCase):
    def setUp(self):
        self.env = patch.dict(os.environ, TEST_ENV)
        self.env.start()
        reset_dependencies()
        self.client = TestClient(create_app())

    def tearDown(self):
        self.env.stop()
        reset_dependencies()

    def graphql(self, query, variables=None, token=None):
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        response = self.client.post(
            "/graphql",
            json={"query": query, "variables": variables or {}},
            headers=headers,
        )
        self.assertEqual(response.status_code, 200, response.text)
        return response.json()

    def register(self, email="alice@example.com", password="secret123", name="Alice"):
        body = self.graphql(
            CREATE_USER,
            {"input": {"email": email, "name": name, "password": password}},
        )
        return body["data"]["createUser"]

    def login(self, email="alice@example.com", password="secret123"):
        body = self.graphql(LOGIN, {"email": email, "password": password})
        return body["data"]["login"]

    def test_registration_and_login_scenario(self):
        user = self.register()
        self.assertEqual(user["email"], "alice@example.com")
        self.assertEqual(user["posts"], [])
        self.assertNotIn("password", user)

        duplicate = self.graphql(
            CREATE_USER,
            {"input": {"email": "alice@example.com", "name": "A", "password": "secret123"}},
        )
        self.assertIsNone(duplicate["data"])
        self.assertEqual(
            duplicate["errors"],
            [{"message": "User exists already!", "status": 500, "data": None}],
        )
        self.assertEqual(get_db_client().count_users(), 1)

        wrong = self.graphql(LOGIN, {"email": "alice@example.com", "password": "nope-nope"})
        self.assertIsNone(wrong["data"])
        self.assertEqual(wrong["errors"][0]["message"], "Invalid Password")
        self.assertEqual(wrong["errors"][0]["status"], 401)

        auth = self.login()
        self.assertEqual(auth["userId"], user["_id"])
        self.assertTrue(auth["token"])

    def test_validation_errors_carry_details(self):
        body = self.graphql(
            CREATE_USER,
            {"input": {"email": "nope", "name": "Alice", "password": "abc"}},
        )
        error = body["errors"][0]
        self.assertEqual(error["message"], "Invalid input.")
        self.assertEqual(error["status"], 422)
        self.assertEqual(
            error["data"],
            [{"message": "Email is invalid"}, {"message": "Password too short!"}],
        )

    def test_protected_fields_reject_anonymous_and_bad_tokens(self):
        anonymous = self.graphql(
            CREATE_POST, {"input": {"title": "A title", "content": "Some content"}}
        )
        self.assertEqual(
            anonymous["errors"],
            [{"message": "Not authenticated!", "status": 401, "data": None}],
        )
        bad_token = self.graphql(POSTS, {"page": 1}, token="garbage")
        self.assertEqual(bad_token["errors"][0]["status"], 401)
        self.assertEqual(get_db_client().count_posts(), 0)

    def test_post_lifecycle(self):
        user = self.register()
        token = self.login()["token"]

        ids = []
        for i in range(5):
            body = self.graphql(
                CREATE_POST,
                {"input": {"title": f"Post number {i}", "content": "Body text", "imageUrl": None}},
                token=token,
            )
            created = body["data"]["createPost"]
            self.assertEqual(created["creator"]["_id"], user["_id"])
            self.assertTrue(created["createdAt"].endswith("Z"))
            ids.append(created["_id"])

        page = self.graphql(POSTS, {"page": 1}, token=token)["data"]["posts"]
        self.assertEqual(page["totalPosts"], 5)
        self.assertEqual([post["_id"] for post in page["posts"]], ids[::-1][:2])
        self.assertEqual(page["posts"][0]["creator"]["name"], "Alice")

        updated = self.graphql(
            UPDATE_POST,
            {
                "postId": ids[0],
                "input": {"title": "Edited title", "content": "Edited body", "imageUrl": "undefined"},
            },
            token=token,
        )["data"]["updatePost"]
        self.assertEqual(updated["title"], "Edited title")
        self.assertIsNone(updated["imageUrl"])

        deleted = self.graphql(DELETE_POST, {"postId": ids[0]}, token=token)
        self.assertTrue(deleted["data"]["deletePost"])

        missing = self.graphql(POST, {"postId": ids[0]}, token=token)
        self.assertEqual(missing["errors"][0]["status"], 404)
        me = self.graphql(USER, token=token)["data"]["user"]
        self.assertEqual(me["posts"], ids[1:])

    def test_other_users_cannot_touch_a_post(self):
        self.register()
        alice = self.login()["token"]
        self.register("bob@example.com", "hunter22", "Bob")
        bob = self.login("bob@example.com", "hunter22")["token"]

        post_id = self.graphql(
            CREATE_POST,
            {"input": {"title": "Alice's post", "content": "Mine only"}},
            token=alice,
        )["data"]["createPost"]["_id"]

        update = self.graphql(
            UPDATE_POST,
            {"postId": post_id, "input": {"title": "Bob was here", "content": "Hijacked"}},
            token=bob,
        )
        self.assertEqual(update["errors"][0]["status"], 403)
        delete = self.graphql(DELETE_POST, {"postId": post_id}, token=bob)
        self.assertEqual(delete["errors"][0]["message"], "Not authorized!")

        post = self.graphql(POST, {"postId": post_id}, token=bob)["data"]["post"]
        self.assertEqual(post["title"], "Alice's post")

    def test_status_update(self):
        self.register()
        token = self.login()["token"]
        body = self.graphql(UPDATE_STATUS, {"status": "On holiday"}, token=token)
        self.assertEqual(body["data"]["updateStatus"]["status"], "On holiday")
        self.assertEqual(self.graphql(USER, token=token)["data"]["user"]["status"], "On holiday")


class PostImageTests(unittest.TestCase):
    def setUp(self):
        self.env = patch.dict(os.environ, TEST_ENV)
        self.env.start()
        reset_dependencies()
        self.client = TestClient(create_app())
        self.storage = get_image_storage()
        self.assertIsInstance(self.storage, InMemoryImageStorage)

        self.client.post(
            "/graphql",
            json={
                "query": CREATE_USER,
                "variables": {
                    "input": {"email": "alice@example.com", "name": "Alice", "password": "secret123"}
                },
            },
        )
        login = self.client.post(
            "/graphql",
            json={
                "query": LOGIN,
                "variables": {"email": "alice@example.com", "password": "secret123"},
            },
        )
        auth = login.json()["data"]["login"]
        self.user_id = auth["userId"]
        token = auth["token"]
        self.headers = {"Authorization": f"Bearer {token}"}

    def tearDown(self):
        self.env.stop()
        reset_dependencies()

    def test_requires_authentication(self):
        response = self.client.put(
            "/post-image", files={"image": ("cat.png", b"png-bytes", "image/png")}
        )
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["message"], "Not authenticated!")
        self.assertEqual(self.storage.stored_objects, {})

    def test_no_file(self):
        response = self.client.put("/post-image", data={"oldPath": ""}, headers=self.headers)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"message": "No file provided"})

    def test_unsupported_type_is_ignored(self):
        response = self.client.put(
            "/post-image",
            files={"image": ("notes.txt", b"hello", "text/plain")},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"message": "No file provided"})
        self.assertEqual(self.storage.stored_objects, {})

    def test_stores_file_and_replaces_old_one(self):
        old_path = self.storage.store(b"old-bytes", "old.jpg")
        with self.assertLogs("graphblog.routes", level="INFO") as logs:
            response = self.client.put(
                "/post-image",
                files={"image": ("cat.png", b"png-bytes", "image/png")},
                data={"oldPath": old_path},
                headers=self.headers,
            )
        self.assertEqual(response.status_code, 201)
        payload = response.json()
        self.assertEqual(payload["message"], "File stored")
        self.assertTrue(payload["filePath"].endswith("-cat.png"))
        self.assertEqual(self.storage.stored_objects[payload["filePath"]], b"png-bytes")
        self.assertNotIn(old_path, self.storage.stored_objects)
        self.assertTrue(any(self.user_id in line and old_path in line for line in logs.output))

    def test_missing_old_file_does_not_fail_upload(self):
        with self.assertLogs("graphblog.storage", level="WARNING"):
            response = self.client.put(
                "/post-image",
                files={"image": ("cat.jpeg", b"jpeg-bytes", "image/jpeg")},
                data={"oldPath": "images/never-existed.png"},
                headers=self.headers,
            )
        self.assertEqual(response.status_code, 201)


if __name__ == "__main__":
    unittest.main()

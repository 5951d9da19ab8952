"""Mojang user utilities: Yggdrasil authentication, game profiles and skins lookup,
offline UUIDs and the Mojang security questions API.
"""

from uuid import UUID, uuid4
import hashlib
import base64
import json

from .http import HttpError, http_request

from typing import Optional, Dict, List, Tuple, Any


AUTH_SERVER_URL = "https://authserver.mojang.com"
SESSION_SERVER_URL = "https://sessionserver.mojang.com"
API_URL = "https://api.mojang.com"


def offline_uuid(username: str) -> str:
    """Compute the UUID used by servers in offline mode for the given username, this is
    the same as Java's `UUID.nameUUIDFromBytes` of "OfflinePlayer:<username>".

    :return: The UUID, as 32 hex characters without dashes.
    """
    digest = bytearray(hashlib.md5(f"OfflinePlayer:{username}".encode("utf-8")).digest())
    digest[6] = (digest[6] & 0x0f) | 0x30
    digest[8] = (digest[8] & 0x3f) | 0x80
    return UUID(bytes=bytes(digest)).hex


class Session:
    """Base class of user sessions, giving the access token, username and UUID of a
    player.
    """

    def __init__(self) -> None:
        self.access_token = ""
        self.username = ""
        self.uuid = ""
        self.client_token = ""

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.username}>"


class OfflineSession(Session):
    """Offline session, with a UUID computed from the username like offline servers do.
    """

    def __init__(self, username: str) -> None:
        super().__init__()
        self.username = username[:16]
        self.uuid = offline_uuid(self.username)
        self.access_token = self.uuid


class YggdrasilSession(Session):
    """Session authenticated on a Yggdrasil server, historically known as "Mojang
    authentication".
    """

    def __init__(self) -> None:
        super().__init__()
        self.user_id: Optional[str] = None
        self.user_properties: List[dict] = []
        self.available_profiles: List[Tuple[str, str]] = []


class YggdrasilClient:
    """Client of a Yggdrasil authentication server, the default one is Mojang's but any
    compatible server can be used.
    """

    def __init__(self, api_host: str = AUTH_SERVER_URL) -> None:
        self.api_host = api_host.rstrip("/")

    def authenticate(self, username: str, password: str, *,
        client_token: Optional[str] = None,
        request_user: bool = False
    ) -> YggdrasilSession:
        """Authenticate a user with its username (or email) and password.

        :param client_token: The client token, a random one is generated if not given.
        :param request_user: Set to true to also request the user's id and properties.
        :raises AuthError: If the server refused the credentials.
        """

        res = self.request("authenticate", {
            "agent": {
                "name": "Minecraft",
                "version": 1
            },
            "username": username,
            "password": password,
            "clientToken": client_token or uuid4().hex,
            "requestUser": request_user
        })

        sess = YggdrasilSession()
        self._fill_session(sess, res)

        sess.available_profiles = [(profile["id"], profile["name"]) for profile in res.get("availableProfiles", [])]
        return sess

    def refresh(self, sess: YggdrasilSession, *, request_user: bool = False) -> None:
        """Refresh the access token of a session, the session is updated in place.
        """
        res = self.request("refresh", {
            "accessToken": sess.access_token,
            "clientToken": sess.client_token,
            "requestUser": request_user
        })
        self._fill_session(sess, res)

    def validate(self, access_token: str, client_token: Optional[str] = None) -> bool:
        """Check if an access token is still valid.
        """
        payload = {"accessToken": access_token}
        if client_token is not None:
            payload["clientToken"] = client_token
        return self.request("validate", payload, raise_error=False)[0] == 204

    def invalidate(self, access_token: str, client_token: str) -> None:
        """Invalidate an access token, the server may ignore invalid tokens.
        """
        self.request("invalidate", {
            "accessToken": access_token,
            "clientToken": client_token
        })

    def signout(self, username: str, password: str) -> None:
        """Invalidate all access tokens of a user.
        """
        self.request("signout", {
            "username": username,
            "password": password
        })

    def request(self, req: str, payload: dict, *, raise_error: bool = True) -> Any:
        """Internal function to post a request to the authentication server.

        :return: The decoded response, or a tuple (status, response) if `raise_error`
        is false.
        :raises AuthError: If the response has an error status and `raise_error` is true.
        """
        try:
            res = http_request("POST", f"{self.api_host}/{req}",
                data=json.dumps(payload).encode("utf-8"),
                accept="application/json",
                content_type="application/json")
            data = res.json() if len(res.data) else None
            return data if raise_error else (res.status, data)
        except HttpError as error:
            if raise_error:
                raise AuthError.from_http_error(error)
            return error.res.status, None

    @staticmethod
    def _fill_session(sess: YggdrasilSession, res: dict) -> None:

        sess.access_token = res["accessToken"]
        sess.client_token = res["clientToken"]

        selected_profile = res.get("selectedProfile")
        if selected_profile is not None:
            sess.uuid = selected_profile["id"]
            sess.username = selected_profile["name"]

        user = res.get("user")
        if user is not None:
            sess.user_id = user.get("id")
            sess.user_properties = user.get("properties", [])


class Texture:
    """A texture of a game profile, the metadata contains the skin model if relevant.
    """

    __slots__ = "url", "metadata"

    def __init__(self, url: str, metadata: Dict[str, str]) -> None:
        self.url = url
        self.metadata = metadata

    @property
    def slim(self) -> bool:
        return self.metadata.get("model") == "slim"

    def __repr__(self) -> str:
        return f"<Texture {self.url}>"


class GameProfile:
    """A game profile, with its decoded textures if the profile has some.
    """

    __slots__ = "id", "name", "properties", "textures"

    def __init__(self, id: str, name: str, properties: List[dict]) -> None:
        self.id = id
        self.name = name
        self.properties = properties
        self.textures: Dict[str, Texture] = {}

        for prop in properties:
            if prop.get("name") == "textures":
                value = json.loads(base64.b64decode(prop["value"]))
                for kind, texture in value.get("textures", {}).items():
                    self.textures[kind] = Texture(texture["url"], texture.get("metadata", {}))

    @property
    def skin(self) -> Optional[Texture]:
        return self.textures.get("SKIN")

    @property
    def cape(self) -> Optional[Texture]:
        return self.textures.get("CAPE")

    def __repr__(self) -> str:
        return f"<GameProfile {self.name} {self.id}>"


class ProfileService:
    """Lookup of game profiles and their skins.
    """

    def __init__(self, session_host: str = SESSION_SERVER_URL, api_host: str = API_URL) -> None:
        self.session_host = session_host.rstrip("/")
        self.api_host = api_host.rstrip("/")

    def lookup(self, uuid: str, *, unsigned: bool = True) -> Optional[GameProfile]:
        """Get the profile of the given UUID (with or without dashes).

        :return: The profile, or none if no profile exists with this UUID.
        """
        url = f"{self.session_host}/session/minecraft/profile/{uuid.replace('-', '')}"
        if not unsigned:
            url += "?unsigned=false"
        res = http_request("GET", url, accept="application/json")
        if res.status == 204 or not len(res.data):
            return None
        data = res.json()
        return GameProfile(data["id"], data["name"], data.get("properties", []))

    def lookup_by_name(self, name: str) -> Optional[GameProfile]:
        """Get the profile of the given username, its textures are also fetched.

        :return: The profile, or none if the username is unknown.
        """
        try:
            res = http_request("GET", f"{self.api_host}/users/profiles/minecraft/{name}", accept="application/json")
        except HttpError as error:
            if error.res.status == 404:
                return None
            raise
        if res.status == 204 or not len(res.data):
            return None
        return self.lookup(res.json()["id"])

    def get_skin(self, profile: GameProfile) -> Optional[bytes]:
        """Download the skin image of the given profile, if it has one.
        """
        skin = profile.skin
        if skin is None:
            return None
        return http_request("GET", skin.url).data


class MojangSecurity:
    """The Mojang security questions API, used to trust the location of a user.
    """

    def __init__(self, access_token: str, api_host: str = API_URL) -> None:
        self.access_token = access_token
        self.api_host = api_host.rstrip("/")

    def check_location(self) -> bool:
        """Return true if the current location is trusted.
        """
        try:
            res = self.request("GET", "user/security/location")
            return res.status == 204
        except HttpError:
            return False

    def get_challenges(self) -> List[dict]:
        """Return the security challenges, each one is like
        `{"answer": {"id": 123}, "question": {"id": 1, "question": "..."}}`.
        """
        return self.request("GET", "user/security/challenges").json()

    def submit_answers(self, answers: List[dict]) -> None:
        """Submit the answers (`{"id": 123, "answer": "..."}`) to the challenges.

        :raises AuthError: If answers are wrong.
        """
        try:
            self.request("POST", "user/security/location", json.dumps(answers).encode("utf-8"))
        except HttpError as error:
            raise AuthError.from_http_error(error)

    def request(self, method: str, path: str, data: Optional[bytes] = None):
        return http_request(method, f"{self.api_host}/{path}",
            data=data,
            headers={"Authorization": f"Bearer {self.access_token}"},
            accept="application/json",
            content_type=None if data is None else "application/json")


class AuthError(Exception):
    """An error returned by an authentication server, the error is the short error
    name like 'ForbiddenOperationException' and the message is human readable.
    """

    def __init__(self, error: str, message: str) -> None:
        super().__init__(error, message)
        self.error = error
        self.message = message

    @classmethod
    def from_http_error(cls, http_error: HttpError) -> "AuthError":
        try:
            data = http_error.res.json()
        except ValueError:
            data = None
        if not isinstance(data, dict):
            return cls("HttpError", str(http_error))
        return cls(data.get("error", "Unknown"), data.get("errorMessage", ""))

    def __str__(self) -> str:
        return f"{self.error}: {self.message}"

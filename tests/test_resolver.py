import json
import pathlib

import pytest
import requests

import asset_label_sheets.errors
import asset_label_sheets.resolver


AssetNotFound = asset_label_sheets.errors.AssetNotFound
ResolverUnavailable = asset_label_sheets.errors.ResolverUnavailable

SERVER = "https://homebox.example"


class FakeResponse:
	def __init__(self, status_code: int, payload=None) -> None:
		self.status_code = status_code
		self.payload = payload

	def json(self):
		if self.payload is None:
			raise ValueError("no JSON body")
		return self.payload


class FakeSession:
	"""
	Stands in for requests.Session with canned Homebox answers.
	"""

	def __init__(self, items: dict, login_status: int = 200, error: Exception | None = None) -> None:
		self.items = items
		self.login_status = login_status
		self.error = error
		self.posts = []
		self.gets = []

	def post(self, url: str, data=None, timeout=None) -> FakeResponse:
		self.posts.append((url, data))
		if self.error is not None:
			raise self.error
		if self.login_status != 200:
			return FakeResponse(self.login_status)
		return FakeResponse(200, {"token": "Bearer test-token"})

	def get(self, url: str, headers=None, timeout=None) -> FakeResponse:
		self.gets.append((url, headers))
		asset_id = url.rsplit("/", 1)[-1]
		if "/v1/items/" in url:
			return FakeResponse(404)
		item = self.items.get(asset_id)
		if item is None:
			return FakeResponse(200, {"items": [], "total": 0})
		return FakeResponse(200, {"items": [item], "total": 1})


#============================================
def build_items(*asset_ids: str) -> dict:
	return {
		asset_id: {
			"id": f"uuid-{asset_id}",
			"assetId": asset_id,
			"name": f"Item {asset_id}",
			"location": {"id": "loc", "name": "Garage"},
			"labels": [{"name": "tools"}, {"name": "power"}],
		}
		for asset_id in asset_ids
	}


#============================================
def test_homebox_resolves_in_selector_order() -> None:
	"""
	Records come back in selector order with location and labels.
	"""
	session = FakeSession(build_items("000-001", "000-002", "000-003"))
	resolver = asset_label_sheets.resolver.HomeboxResolver(SERVER, "user", "secret", session=session)
	result = resolver.resolve("000-003, 000-001--000-002")
	assert [record.asset_id for record in result.records] == ["000-003", "000-001", "000-002"]
	assert result.records[0].location == "Garage"
	assert result.records[0].attributes["labels"] == "tools, power"
	assert result.warnings == []


#============================================
def test_homebox_logs_in_once_with_form() -> None:
	"""
	Login posts the form once and the token is sent as Authorization.
	"""
	session = FakeSession(build_items("000-001", "000-002"))
	resolver = asset_label_sheets.resolver.HomeboxResolver(SERVER + "/", "user", "secret", session=session)
	resolver.resolve("000-001--000-002")
	assert len(session.posts) == 1
	url, form = session.posts[0]
	assert url == f"{SERVER}/api/v1/users/login"
	assert form == {"username": "user", "password": "secret", "stayLoggedIn": "false"}
	assert session.gets[0][0] == f"{SERVER}/api/v1/assets/000-001"
	assert session.gets[0][1] == {"Authorization": "Bearer test-token"}


#============================================
def test_asset_id_is_quoted_in_path() -> None:
	"""
	Slashes and dots in an id stay inside one path segment.
	"""
	session = FakeSession({})
	resolver = asset_label_sheets.resolver.HomeboxResolver(SERVER, "user", "secret", session=session)
	assert resolver.fetch_record("a/../b") is None
	assert session.gets[0][0] == f"{SERVER}/api/v1/assets/a%2F..%2Fb"


#============================================
def test_missing_asset_skipped_with_warning() -> None:
	"""
	The skip policy leaves out unknown ids and reports them.
	"""
	session = FakeSession(build_items("000-001", "000-003"))
	resolver = asset_label_sheets.resolver.HomeboxResolver(SERVER, "user", "secret", session=session)
	result = resolver.resolve("000-001--000-003")
	assert [record.asset_id for record in result.records] == ["000-001", "000-003"]
	assert [(warning.kind, warning.asset_id) for warning in result.warnings] == [("asset_not_found", "000-002")]


#============================================
def test_missing_asset_aborts() -> None:
	"""
	The abort policy stops on the first unknown id.
	"""
	session = FakeSession(build_items("000-001"))
	resolver = asset_label_sheets.resolver.HomeboxResolver(
		SERVER,
		"user",
		"secret",
		missing_policy="abort",
		session=session,
	)
	with pytest.raises(AssetNotFound) as excinfo:
		resolver.resolve("000-001--000-005")
	assert excinfo.value.asset_id == "000-002"


#============================================
def test_rejected_login_is_unavailable() -> None:
	"""
	Authentication failures surface as ResolverUnavailable.
	"""
	session = FakeSession({}, login_status=401)
	resolver = asset_label_sheets.resolver.HomeboxResolver(SERVER, "user", "wrong", session=session)
	with pytest.raises(ResolverUnavailable):
		resolver.resolve("000-001")


#============================================
def test_transport_error_is_unavailable() -> None:
	"""
	Connection errors surface as ResolverUnavailable and are not retried.
	"""
	session = FakeSession({}, error=requests.ConnectionError("refused"))
	resolver = asset_label_sheets.resolver.HomeboxResolver(SERVER, "user", "secret", session=session)
	with pytest.raises(ResolverUnavailable):
		resolver.resolve("000-001--000-003")
	assert len(session.posts) == 1


#============================================
def test_record_from_homebox_item_custom_fields() -> None:
	"""
	Custom fields become attributes by their type.
	"""
	item = {
		"id": "uuid",
		"assetId": "000-010",
		"name": "Router",
		"serialNumber": "SN-9",
		"fields": [
			{"name": "ip", "type": "text", "textValue": "10.0.0.1"},
			{"name": "ports", "type": "number", "numberValue": 4},
		],
	}
	record = asset_label_sheets.resolver.record_from_homebox_item(item, "000-010")
	assert record.location is None
	assert record.attributes["serialNumber"] == "SN-9"
	assert record.attributes["ip"] == "10.0.0.1"
	assert record.attributes["ports"] == "4"
	assert record.attributes["item_id"] == "uuid"


#============================================
def test_invalid_policy_rejected() -> None:
	"""
	Only skip and abort are policies.
	"""
	with pytest.raises(ValueError):
		asset_label_sheets.resolver.JsonFileResolver(pathlib.Path("records.json"), missing_policy="retry")


#============================================
def test_json_file_resolver(tmp_path: pathlib.Path) -> None:
	"""
	Offline records resolve from a JSON list.
	"""
	path = tmp_path / "records.json"
	records = [
		{"asset_id": "A001", "name": "Drill", "location": "Shed"},
		{"assetId": "A003", "name": "Saw", "location": {"name": "Garage"}, "attributes": {"serial": 7}},
	]
	path.write_text(json.dumps({"assets": records}), encoding="utf-8")
	resolver = asset_label_sheets.resolver.JsonFileResolver(path)
	result = resolver.resolve("A001--A003")
	assert [record.asset_id for record in result.records] == ["A001", "A003"]
	assert result.records[1].location == "Garage"
	assert result.records[1].attributes["serial"] == "7"
	assert [warning.asset_id for warning in result.warnings] == ["A002"]


#============================================
def test_json_file_resolver_unreadable(tmp_path: pathlib.Path) -> None:
	"""
	Missing or malformed record files make the resolver unavailable.
	"""
	missing = asset_label_sheets.resolver.JsonFileResolver(tmp_path / "missing.json")
	with pytest.raises(ResolverUnavailable):
		missing.resolve("A001")
	broken_path = tmp_path / "broken.json"
	broken_path.write_text("{not json", encoding="utf-8")
	broken = asset_label_sheets.resolver.JsonFileResolver(broken_path)
	with pytest.raises(ResolverUnavailable):
		broken.resolve("A001")

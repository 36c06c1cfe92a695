"""
Asset record resolvers: Homebox HTTP API and JSON files.
"""

# Standard Library
import abc
import dataclasses
import json
import pathlib
import urllib.parse

# PIP3 modules
import requests

# local repo modules
import asset_label_sheets as als
import asset_label_sheets.config
import asset_label_sheets.errors
import asset_label_sheets.records


AssetRecord = als.records.AssetRecord
LabelWarning = als.errors.LabelWarning
AssetNotFound = als.errors.AssetNotFound
ResolverUnavailable = als.errors.ResolverUnavailable

MISSING_SKIP = als.config.MISSING_SKIP
MISSING_ABORT = als.config.MISSING_ABORT
MISSING_POLICIES = als.config.MISSING_POLICIES
DEFAULT_TIMEOUT = als.config.DEFAULT_TIMEOUT

# Homebox item keys copied into record attributes when present.
HOMEBOX_ATTRIBUTE_KEYS = (
	"description",
	"quantity",
	"manufacturer",
	"modelNumber",
	"serialNumber",
	"purchaseFrom",
	"notes",
)


@dataclasses.dataclass
class ResolveResult:
	records: list[AssetRecord]
	warnings: list[LabelWarning] = dataclasses.field(default_factory=list)


class AssetResolver(abc.ABC):
	"""
	Turns a selector into an ordered list of asset records.

	Subclasses look up one identifier at a time; this class owns the
	ordering and the missing-identifier policy.
	"""

	def __init__(self, missing_policy: str = MISSING_SKIP) -> None:
		if missing_policy not in MISSING_POLICIES:
			raise ValueError(f"missing_policy must be one of {', '.join(MISSING_POLICIES)}")
		self.missing_policy = missing_policy

	@abc.abstractmethod
	def fetch_record(self, asset_id: str) -> AssetRecord | None:
		"""
		Return the record for asset_id, or None when it does not exist.
		"""

	#============================================
	def resolve(self, selector, verbose: bool = False) -> ResolveResult:
		"""
		Resolve a selector into records in selector order.

		Args:
			selector: Selector string, SingleId, IdRange or AssetSelector.
			verbose: Print one line per asset.

		Returns:
			ResolveResult with records and asset_not_found warnings.

		Raises:
			AssetNotFound: on the first miss with the abort policy.
			ResolverUnavailable: on transport or authentication failure.
		"""
		identifiers = als.records.as_selector(selector).identifiers()
		records: list[AssetRecord] = []
		warnings: list[LabelWarning] = []
		for asset_id in identifiers:
			if verbose:
				print(f"Getting record for asset ID: {asset_id}")
			detail = ""
			try:
				record = self.fetch_record(asset_id)
			except AssetNotFound as error:
				record = None
				detail = str(error)
			if record is not None:
				records.append(record)
				continue
			if self.missing_policy == MISSING_ABORT:
				raise AssetNotFound(asset_id)
			warnings.append(
				LabelWarning(
					kind="asset_not_found",
					asset_id=asset_id,
					message=detail or "no such asset, skipped",
				)
			)
		return ResolveResult(records=records, warnings=warnings)


#============================================
def homebox_field_value(field: dict) -> str:
	"""
	Pick the value of a Homebox custom field by its type.
	"""
	field_type = field.get("type", "text")
	if field_type == "number":
		value = field.get("numberValue")
	elif field_type == "boolean":
		value = field.get("booleanValue")
	else:
		value = field.get("textValue")
	if value is None:
		return ""
	return str(value)


#============================================
def record_from_homebox_item(item: dict, requested_id: str) -> AssetRecord:
	"""
	Convert a Homebox item JSON object into an AssetRecord.

	Args:
		item: Item summary or full item from the API.
		requested_id: Asset id used for the lookup.

	Returns:
		AssetRecord.
	"""
	asset_id = str(item.get("assetId") or requested_id)
	location = item.get("location")
	location_name = None
	if isinstance(location, dict):
		location_name = location.get("name")
	attributes: dict[str, str] = {}
	if item.get("id"):
		attributes["item_id"] = str(item["id"])
	for key in HOMEBOX_ATTRIBUTE_KEYS:
		value = item.get(key)
		if value is None or value == "":
			continue
		attributes[key] = str(value)
	labels = item.get("labels") or []
	label_names = [str(label.get("name", "")) for label in labels if isinstance(label, dict)]
	if label_names:
		attributes["labels"] = ", ".join(label_names)
	for field in item.get("fields") or []:
		if isinstance(field, dict) and field.get("name"):
			attributes[str(field["name"])] = homebox_field_value(field)
	return AssetRecord(
		asset_id=asset_id,
		name=str(item.get("name") or ""),
		location=location_name,
		attributes=attributes,
	)


class HomeboxResolver(AssetResolver):
	"""
	Resolve assets through the Homebox REST API.

	Authenticates once on first use. Failures are not retried.
	"""

	def __init__(
		self,
		server: str,
		username: str,
		password: str,
		missing_policy: str = MISSING_SKIP,
		session: requests.Session | None = None,
		timeout: float = DEFAULT_TIMEOUT,
		fetch_details: bool = True,
	) -> None:
		super().__init__(missing_policy)
		self.base_url = f"{server.rstrip('/')}/api"
		self.username = username
		self.password = password
		self.session = session if session is not None else requests.Session()
		self.timeout = timeout
		self.fetch_details = fetch_details
		self.token: str | None = None

	#============================================
	def login(self) -> str:
		"""
		Authenticate and store the session token.

		Returns:
			Authorization token.
		"""
		form = {
			"username": self.username,
			"password": self.password,
			"stayLoggedIn": "false",
		}
		try:
			response = self.session.post(
				f"{self.base_url}/v1/users/login",
				data=form,
				timeout=self.timeout,
			)
		except requests.RequestException as error:
			raise ResolverUnavailable(f"Failed to authenticate: {error}") from error
		if response.status_code in (401, 403):
			raise ResolverUnavailable("Authentication rejected, check username and password")
		if response.status_code >= 400:
			raise ResolverUnavailable(f"Failed to authenticate: HTTP {response.status_code}")
		try:
			payload = response.json()
		except ValueError as error:
			raise ResolverUnavailable("Failed to parse authentication response") from error
		token = payload.get("token") if isinstance(payload, dict) else None
		if not token:
			raise ResolverUnavailable("Authentication response carried no token")
		self.token = token
		return token

	#============================================
	def get_json(self, path: str):
		"""
		GET an API path with the session token.

		Returns:
			Decoded JSON, or None on HTTP 404.
		"""
		if self.token is None:
			self.login()
		try:
			response = self.session.get(
				f"{self.base_url}{path}",
				headers={"Authorization": self.token},
				timeout=self.timeout,
			)
		except requests.RequestException as error:
			raise ResolverUnavailable(f"Request to {path} failed: {error}") from error
		if response.status_code == 404:
			return None
		if response.status_code in (401, 403):
			raise ResolverUnavailable(f"Not authorized for {path}: HTTP {response.status_code}")
		if response.status_code >= 400:
			raise ResolverUnavailable(f"Request to {path} failed: HTTP {response.status_code}")
		try:
			return response.json()
		except ValueError as error:
			raise ResolverUnavailable(f"Failed to parse response from {path}") from error

	#============================================
	def fetch_record(self, asset_id: str) -> AssetRecord | None:
		payload = self.get_json(f"/v1/assets/{urllib.parse.quote(asset_id, safe='')}")
		if not isinstance(payload, dict):
			return None
		items = payload.get("items") or []
		if not items:
			return None
		item = items[0]
		if self.fetch_details and item.get("id"):
			details = self.get_json(f"/v1/items/{urllib.parse.quote(str(item['id']), safe='')}")
			if isinstance(details, dict):
				item = {**item, **details}
		return record_from_homebox_item(item, asset_id)


#============================================
def record_from_mapping(data: dict) -> AssetRecord:
	"""
	Build a record from a plain JSON object.

	Accepts asset_id or assetId, and location as a string or {"name": ...}.
	"""
	asset_id = data.get("asset_id") or data.get("assetId")
	location = data.get("location")
	if isinstance(location, dict):
		location = location.get("name")
	attributes = data.get("attributes") or {}
	return AssetRecord(
		asset_id=str(asset_id or ""),
		name=str(data.get("name") or ""),
		location=None if location is None else str(location),
		attributes={str(key): str(value) for key, value in attributes.items()},
	)


class JsonFileResolver(AssetResolver):
	"""
	Resolve assets from a JSON file holding a list of records
	(or an object with an "assets" list).
	"""

	def __init__(self, path: pathlib.Path, missing_policy: str = MISSING_SKIP) -> None:
		super().__init__(missing_policy)
		self.path = pathlib.Path(path)
		self._records: dict[str, AssetRecord] | None = None

	#============================================
	def load(self) -> dict[str, AssetRecord]:
		if self._records is not None:
			return self._records
		try:
			data = json.loads(self.path.read_text(encoding="utf-8"))
		except (OSError, ValueError) as error:
			raise ResolverUnavailable(f"Cannot read records file {self.path}: {error}") from error
		if isinstance(data, dict):
			data = data.get("assets", [])
		if not isinstance(data, list):
			raise ResolverUnavailable(f"Records file {self.path} must hold a list of assets")
		records: dict[str, AssetRecord] = {}
		for entry in data:
			try:
				record = record_from_mapping(entry)
			except (AttributeError, ValueError) as error:
				raise ResolverUnavailable(f"Invalid record in {self.path}: {entry!r}") from error
			records[record.asset_id] = record
		self._records = records
		return records

	def fetch_record(self, asset_id: str) -> AssetRecord | None:
		return self.load().get(asset_id)

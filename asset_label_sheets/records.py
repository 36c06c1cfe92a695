"""
Asset records, identifier ordering and selector parsing.

Identifier ordering is numeric-suffix aware: an identifier is split into
alternating text and digit runs, digit runs compare as numbers and text
runs compare lexically. Ranges count through the digit runs like an
odometer with fixed widths, so "A001--A010" gives A001 ... A010 and
"000-998--001-001" gives 000-998, 000-999, 001-000, 001-001.
"""

# Standard Library
import dataclasses
import re
import types
import typing

# local repo modules
import asset_label_sheets as als
import asset_label_sheets.config
import asset_label_sheets.errors


InvalidSelector = als.errors.InvalidSelector

MAX_RANGE_SIZE = als.config.MAX_RANGE_SIZE
RANGE_SEPARATOR = "--"
LIST_SEPARATOR = ","
IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z0-9](?:[A-Za-z0-9._/-]*[A-Za-z0-9])?$")
DIGIT_RUN_PATTERN = re.compile(r"(\d+)")


@dataclasses.dataclass(frozen=True)
class AssetRecord:
	asset_id: str
	name: str
	location: str | None = None
	attributes: typing.Mapping[str, str] = dataclasses.field(default_factory=dict, hash=False)

	def __post_init__(self) -> None:
		if not isinstance(self.asset_id, str) or not self.asset_id.strip():
			raise ValueError("asset_id must be a non-empty string")
		frozen = types.MappingProxyType(dict(self.attributes))
		object.__setattr__(self, "attributes", frozen)

	#============================================
	def field_value(self, key: str) -> str:
		"""
		Text for a field key; missing attributes give an empty string.

		Args:
			key: asset_id, name, location, or an attribute key.

		Returns:
			Field text.
		"""
		if key == "asset_id":
			return self.asset_id
		if key == "name":
			return self.name or ""
		if key == "location":
			return self.location or ""
		value = self.attributes.get(key)
		if value is None:
			return ""
		return str(value)


#============================================
def tokenize_identifier(value: str) -> list[str]:
	"""
	Split an identifier into alternating text and digit runs.

	Args:
		value: Identifier string.

	Returns:
		Non-empty runs in order, e.g. "A-01b" -> ["A-", "01", "b"].
	"""
	return [token for token in DIGIT_RUN_PATTERN.split(value) if token]


#============================================
def identifier_sort_key(value: str) -> tuple:
	"""
	Sort key implementing the numeric-suffix aware ordering.
	"""
	key = []
	for token in tokenize_identifier(value):
		if token.isdigit():
			key.append((1, int(token), token))
		else:
			key.append((0, 0, token))
	return tuple(key)


#============================================
def check_identifier(value: str) -> str:
	"""
	Validate a single identifier.

	Returns:
		The identifier unchanged.
	"""
	if not IDENTIFIER_PATTERN.match(value):
		raise InvalidSelector(f"Invalid asset identifier: {value!r}")
	return value


#============================================
def digit_run_value(tokens: list[str]) -> int:
	"""
	Read the digit runs of a tokenized identifier as one mixed-radix number.
	"""
	value = 0
	for token in tokens:
		if token.isdigit():
			value = value * (10 ** len(token)) + int(token)
	return value


#============================================
def format_digit_runs(template_tokens: list[str], value: int) -> str:
	"""
	Write a mixed-radix number back into the digit runs of a shape.

	Args:
		template_tokens: Tokens giving the text runs and digit widths.
		value: Number to write.

	Returns:
		Identifier string.
	"""
	pieces: list[str] = []
	for token in reversed(template_tokens):
		if token.isdigit():
			width = len(token)
			radix = 10 ** width
			pieces.append(str(value % radix).zfill(width))
			value //= radix
		else:
			pieces.append(token)
	return "".join(reversed(pieces))


@dataclasses.dataclass(frozen=True)
class SingleId:
	asset_id: str

	def identifiers(self) -> list[str]:
		return [self.asset_id]


@dataclasses.dataclass(frozen=True)
class IdRange:
	"""
	Inclusive range of identifiers sharing one shape.
	"""
	start: str
	end: str

	#============================================
	def check(self) -> None:
		"""
		Check that both ends share a shape and start <= end.
		"""
		start_tokens = tokenize_identifier(self.start)
		end_tokens = tokenize_identifier(self.end)
		if not any(token.isdigit() for token in start_tokens):
			raise InvalidSelector(f"Range {self} has no numeric part to count through")
		same_shape = len(start_tokens) == len(end_tokens)
		if same_shape:
			for start_token, end_token in zip(start_tokens, end_tokens):
				if start_token.isdigit() != end_token.isdigit():
					same_shape = False
				elif start_token.isdigit() and len(start_token) != len(end_token):
					same_shape = False
				elif not start_token.isdigit() and start_token != end_token:
					same_shape = False
		if not same_shape:
			raise InvalidSelector(f"Range {self} has ends of different shapes")
		start_value = digit_run_value(start_tokens)
		end_value = digit_run_value(end_tokens)
		if end_value < start_value:
			raise InvalidSelector(
				f"The start of a range must not be after its end: {self}"
			)
		if end_value - start_value + 1 > MAX_RANGE_SIZE:
			raise InvalidSelector(f"Range {self} covers more than {MAX_RANGE_SIZE} identifiers")

	#============================================
	def identifiers(self) -> list[str]:
		"""
		Expand the range in ascending order.
		"""
		self.check()
		tokens = tokenize_identifier(self.start)
		start_value = digit_run_value(tokens)
		end_value = digit_run_value(tokenize_identifier(self.end))
		return [format_digit_runs(tokens, value) for value in range(start_value, end_value + 1)]

	def __str__(self) -> str:
		return f"{self.start}{RANGE_SEPARATOR}{self.end}"


@dataclasses.dataclass(frozen=True)
class AssetSelector:
	entries: tuple

	#============================================
	def identifiers(self) -> list[str]:
		"""
		All identifiers in entry order, duplicates dropped after the first.
		"""
		seen: set[str] = set()
		ordered: list[str] = []
		for entry in self.entries:
			for asset_id in entry.identifiers():
				if asset_id in seen:
					continue
				seen.add(asset_id)
				ordered.append(asset_id)
		return ordered


#============================================
def parse_selector(text: str) -> AssetSelector:
	"""
	Parse an asset list such as "000-000--000-010, 000-015".

	Entries are separated by commas, ranges join two identifiers with
	"--", and spaces are ignored.

	Args:
		text: Asset list string.

	Returns:
		AssetSelector.

	Raises:
		InvalidSelector: on malformed entries or inverted ranges.
	"""
	cleaned = text.replace(" ", "").strip()
	if not cleaned:
		raise InvalidSelector("The asset list is empty")
	entries = []
	for chunk in cleaned.split(LIST_SEPARATOR):
		if not chunk:
			raise InvalidSelector(f"Empty entry in asset list: {text!r}")
		parts = chunk.split(RANGE_SEPARATOR)
		if len(parts) == 1:
			entries.append(SingleId(check_identifier(parts[0])))
		elif len(parts) == 2:
			entry = IdRange(check_identifier(parts[0]), check_identifier(parts[1]))
			entry.check()
			entries.append(entry)
		else:
			raise InvalidSelector(f"Invalid range in asset list: {chunk!r}")
	return AssetSelector(tuple(entries))


#============================================
def as_selector(value) -> AssetSelector:
	"""
	Accept a selector string, a single entry, or an AssetSelector.
	"""
	if isinstance(value, AssetSelector):
		return value
	if isinstance(value, (SingleId, IdRange)):
		if isinstance(value, IdRange):
			value.check()
		return AssetSelector((value,))
	if isinstance(value, str):
		return parse_selector(value)
	raise InvalidSelector(f"Unsupported selector: {value!r}")
